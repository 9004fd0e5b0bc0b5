import pytest

from command_handlers.cancel_handler import CancelHandler
from command_handlers.conversations.change_name_conversation import ChangeNameConversation
from command_handlers.conversations.transfer_balance_conversation import TransferBalanceConversation
from command_handlers.start_handler import StartHandler
from command_handlers.user_manager_handler import UserManagerHandler
from controllers.access_controller import FakeAccessManager
from controllers.user_controller import FakeUserController
from flow_engine import Dispatcher, DispatcherMessages, FlowRegistry, SessionStore
from models.enums import AccessCategory
from templates import Key

ADMIN_ID = 1000
MEMBER_ID = 2000


@pytest.fixture
def users():
    return FakeUserController()


@pytest.fixture
def access_manager():
    return FakeAccessManager(default_category=AccessCategory.MEMBER, admin_user_ids=[ADMIN_ID])


@pytest.fixture
def app(users, access_manager, replies):
    """Dispatcher wired the way the bot wires it, with fake collaborators."""
    registry = FlowRegistry()
    dispatcher = Dispatcher(
        SessionStore(registry, replies, access=access_manager),
        messages=DispatcherMessages(
            permission_denied=Key.permission_denied,
            generic_error=Key.generic_error,
            flow_exit=Key.flow_exit,
        ),
    )
    StartHandler.register(dispatcher)
    CancelHandler.register(dispatcher)
    UserManagerHandler(controller=users).register(dispatcher)
    dispatcher.register_flow(ChangeNameConversation(controller=users).flow)
    dispatcher.register_flow(TransferBalanceConversation(controller=users).flow)
    registry.freeze()
    return dispatcher
