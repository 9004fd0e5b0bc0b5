import logging
from decimal import Decimal

from command_handlers.conversations import change_name_conversation, transfer_balance_conversation
from command_handlers.keyboards import UserKeyboards
from controllers.user_controller import TransferError, UserControlling
from flow_engine import Dispatcher, FlowContext
from models.enums import Capability
from models.models import CENT
from templates import Key

logger = logging.getLogger(__name__)


class UserManagerHandler:
    """
    Stateless handlers of the user manager: the user list, user details, the
    status toggle, and the entry points of the two conversations.

    Callback handlers receive the part of the callback data that follows the
    registered prefix, which for the per-user buttons is the user id.
    """

    def __init__(self, controller: UserControlling):
        self.controller = controller

    def register(self, dispatcher: Dispatcher) -> None:
        data = UserKeyboards.callback_data
        dispatcher.add_text(Key.buttons.user_manager, self.show_user_list, capability=Capability.MANAGE_USERS.value)
        dispatcher.add_callback(data.back_to_list, self.show_user_list, capability=Capability.MANAGE_USERS.value)
        dispatcher.add_callback(data.close_menu, self.close_menu)
        dispatcher.add_callback(data.user_select, self.show_user_details, capability=Capability.MANAGE_USERS.value)
        dispatcher.add_callback(
            data.change_name, self.start_change_name, capability=Capability.EDIT_USER_NAMES.value
        )
        dispatcher.add_callback(
            data.toggle_status, self.toggle_status, capability=Capability.TOGGLE_USER_STATUS.value
        )
        dispatcher.add_callback(data.transfer, self.start_transfer, capability=Capability.TRANSFER_BALANCE.value)

    async def show_user_list(self, ctx: FlowContext, payload: str) -> None:
        users = await self.controller.get_all_users()
        active = [user for user in users if user.enabled]
        rows = "\n\n".join(
            Key.user_list_row.format(name=user.html_name, icon=user.status_icon, balance=user.balance)
            for user in users
        )
        await ctx.reply(
            Key.user_list.format(total=len(users), active=len(active), rows=rows),
            UserKeyboards.user_list(users),
        )

    async def close_menu(self, ctx: FlowContext, payload: str) -> None:
        await ctx.reply(Key.menu_closed, UserKeyboards.main_menu())

    async def show_user_details(self, ctx: FlowContext, payload: str) -> None:
        user_id = await self._parse_user_id(ctx, payload)
        if user_id is None:
            return
        user = await self.controller.get_user(user_id)
        await ctx.reply(
            Key.user_details.format(
                name=user.html_name,
                id=user.id,
                status=Key.status_enabled if user.enabled else Key.status_disabled,
                balance=user.balance,
            ),
            UserKeyboards.user_actions(user),
        )

    async def start_change_name(self, ctx: FlowContext, payload: str) -> None:
        user_id = await self._parse_user_id(ctx, payload)
        if user_id is None:
            return
        # fail fast on a stale button instead of inside the flow
        await self.controller.get_user(user_id)
        await ctx.start_flow(
            change_name_conversation.FLOW_NAME,
            initial={change_name_conversation.TARGET_USER_ID: user_id},
        )

    async def toggle_status(self, ctx: FlowContext, payload: str) -> None:
        user_id = await self._parse_user_id(ctx, payload)
        if user_id is None:
            return
        user = await self.controller.toggle_user_status(user_id)
        logger.info(f"User {ctx.user_id} set user {user.id} enabled={user.enabled}")
        await ctx.reply(
            Key.status_toggle_success.format(
                name=user.html_name,
                status=Key.status_enabled if user.enabled else Key.status_disabled,
            ),
            UserKeyboards.back_to_list(),
        )

    async def start_transfer(self, ctx: FlowContext, payload: str) -> None:
        sender_id = await self._parse_user_id(ctx, payload)
        if sender_id is None:
            return
        sender = await self.controller.get_user(sender_id)
        if sender.balance <= Decimal("0"):
            await ctx.reply(
                Key.errors.insufficient_balance.format(name=sender.html_name, balance=sender.balance, amount=CENT)
            )
            return
        if not sender.enabled:
            raise TransferError("sender account is disabled")

        await ctx.start_flow(
            transfer_balance_conversation.FLOW_NAME,
            initial={transfer_balance_conversation.SENDER_ID: sender_id},
        )

    @staticmethod
    async def _parse_user_id(ctx: FlowContext, payload: str):
        try:
            return int(payload)
        except ValueError:
            logger.warning(f"User {ctx.user_id} sent a malformed user id '{payload}'")
            await ctx.reply(Key.errors.invalid_selection)
            return None
