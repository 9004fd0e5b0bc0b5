from telegram import BotCommand, Update
from telegram.error import TelegramError
from telegram.ext import Application, CallbackQueryHandler, ContextTypes, MessageHandler, filters
from typing import Optional
import asyncio
import logging

from bots.update_translator import UpdateTranslator
from flow_engine import Dispatcher, SessionStore
from templates import Key

logger = logging.getLogger(__name__)

class BotCore:
    """
    Core bot implementation with common functionality.

    This class handles:
    1. Bot initialization (concurrent updates; the engine serialises per user)
    2. Bridging text messages and button presses into the flow dispatcher
    3. Expiring idle conversations in the background
    """

    def __init__(self, token: str, *, reap_interval_seconds: float = 60.0, idle_timeout_seconds: float = 0.0):
        """
        Initialize the bot core.

        Args:
            token: Telegram bot token
            reap_interval_seconds: How often idle conversations are looked for
            idle_timeout_seconds: Idle time after which a conversation is cancelled, 0 disables
        """
        logger.info("Initializing bot core...")
        self.reap_interval_seconds = reap_interval_seconds
        self.idle_timeout_seconds = idle_timeout_seconds
        self.dispatcher: Optional[Dispatcher] = None
        self.store: Optional[SessionStore] = None
        self._reaper: Optional[asyncio.Task] = None

        builder = Application.builder().token(token).concurrent_updates(True)
        builder.post_init(self._post_init)
        builder.post_shutdown(self._post_shutdown)
        self.application = builder.build()
        logger.info("Bot core initialized")

    def attach(self, dispatcher: Dispatcher) -> None:
        """Route every text message and callback query to ``dispatcher``."""
        self.dispatcher = dispatcher
        self.store = dispatcher.store
        self.application.add_handler(MessageHandler(filters.TEXT, self._on_message))
        self.application.add_handler(CallbackQueryHandler(self._on_callback_query))

    def run(self):
        """Run the bot"""
        logger.info("Starting bot...")
        self.application.run_polling(allowed_updates=Update.ALL_TYPES)

    def stop(self):
        """Stop the bot"""
        logger.info("Stopping bot...")
        self.application.stop_running()

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._dispatch(update)

    async def _on_callback_query(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        # stop the button's loading spinner before handling
        try:
            await update.callback_query.answer()
        except TelegramError as e:
            logger.warning(f"Could not answer callback query {update.callback_query.id}: {str(e)}")
        await self._dispatch(update)

    async def _dispatch(self, update: Update) -> None:
        user_id = UpdateTranslator.user_id(update)
        event = UpdateTranslator.to_event(update)
        if user_id is None or event is None:
            logger.debug(f"Ignoring update {update.update_id}")
            return
        await self.dispatcher.handle_event(user_id, event)

    async def _post_init(self, application: Application):
        await self._register_bot_commands(application)
        if self.store is not None and self.idle_timeout_seconds > 0:
            # not Application.create_task: those are awaited on shutdown
            self._reaper = asyncio.create_task(self._reap_idle_sessions())
            logger.info(f"Idle conversations expire after {self.idle_timeout_seconds:.0f}s")

    async def _post_shutdown(self, application: Application):
        if self._reaper is not None:
            self._reaper.cancel()
            try:
                await self._reaper
            except asyncio.CancelledError:
                pass
            self._reaper = None

    async def _reap_idle_sessions(self):
        while True:
            await asyncio.sleep(self.reap_interval_seconds)
            try:
                expired = await self.store.expire_idle(self.idle_timeout_seconds)
            except Exception as e:
                logger.error(f"Error expiring idle sessions: {str(e)}", exc_info=True)
                continue
            if expired:
                logger.info(f"Expired {len(expired)} idle conversation(s)")

    async def _register_bot_commands(self, application: Application):
        """Register bot commands once the application is ready."""

        bot_commands = [
            BotCommand("start", Key.commands.start),
            BotCommand("help", Key.commands.help),
            BotCommand("cancel", Key.commands.cancel),
        ]

        await application.bot.set_my_commands(commands=bot_commands)
