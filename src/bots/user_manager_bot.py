from typing import Optional

from bots.bot_core import BotCore
from command_handlers.cancel_handler import CancelHandler
from command_handlers.conversations.change_name_conversation import ChangeNameConversation
from command_handlers.conversations.transfer_balance_conversation import TransferBalanceConversation
from command_handlers.start_handler import StartHandler
from command_handlers.user_manager_handler import UserManagerHandler
from config.settings import Settings
from controllers.access_controller import FakeAccessManager
from controllers.user_controller import FakeUserController, UserControlling, UserController
from flow_engine import Dispatcher, DispatcherMessages, FlowRegistry, SessionStore
from services.ReplyService import TelegramReplyService
from templates import Key

import logging

logger = logging.getLogger(__name__)

class UserManagerBot:
    """
    User management bot built on the flow engine.

    This bot is responsible for:
    1. Building the engine (registry, session store, dispatcher) from settings
    2. Registering the stateless handlers and the conversation flows
    3. Managing the bot lifecycle
    """

    def __init__(self, settings: Settings, controller: Optional[UserControlling] = None):
        """
        Initialize the user manager bot.

        Args:
            settings: Application settings
            controller: Record store, defaults to the fake or real one per settings
        """
        logger.info("Initializing user manager bot...")
        self.settings = settings
        self.core = BotCore(
            token=settings.telegram_bot_token,
            reap_interval_seconds=settings.session_reap_interval_seconds,
            idle_timeout_seconds=settings.session_idle_timeout_seconds,
        )
        if controller is None:
            controller = FakeUserController() if settings.use_fake_data else UserController()
        self.controller = controller
        self.access = FakeAccessManager(
            default_category=settings.default_access_category,
            admin_user_ids=settings.admin_user_ids,
        )
        self.replies = TelegramReplyService(
            self.core.application.bot,
            max_retries=settings.reply_max_retries,
            retry_backoff_seconds=settings.reply_retry_backoff_seconds,
        )
        self.registry = FlowRegistry()
        self.store = SessionStore(
            self.registry,
            self.replies,
            access=self.access,
            conflict_policy=settings.flow_conflict_policy,
        )
        self.dispatcher = Dispatcher(
            self.store,
            exit_commands=settings.exit_commands,
            allow_global_commands=settings.allow_global_commands,
            global_commands=settings.help_commands,
            messages=DispatcherMessages(
                permission_denied=Key.permission_denied,
                generic_error=Key.generic_error,
                flow_exit=Key.flow_exit,
            ),
        )
        self._setup_handlers()
        self.core.attach(self.dispatcher)
        logger.info("User manager bot initialized")

    def _setup_handlers(self):
        """Register handlers and flows, then freeze the flow registry."""
        logger.info("Setting up handlers...")
        StartHandler.register(self.dispatcher)
        CancelHandler.register(self.dispatcher)
        UserManagerHandler(controller=self.controller).register(self.dispatcher)

        conversations = [
            ChangeNameConversation(controller=self.controller),
            TransferBalanceConversation(controller=self.controller),
        ]
        for conversation in conversations:
            self.dispatcher.register_flow(conversation.flow)

        self.registry.freeze()
        logger.info(f"Handlers set up, flows: {', '.join(self.registry.names())}")

    def run(self):
        """Run the bot"""
        logger.info("Starting user manager bot...")
        self.core.run()

    def stop(self):
        """Stop the bot"""
        logger.info("Stopping user manager bot...")
        self.core.stop()
