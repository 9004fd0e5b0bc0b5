import logging

from command_handlers.keyboards import UserKeyboards
from flow_engine import Dispatcher, FlowContext
from templates import Key

logger = logging.getLogger(__name__)


class StartHandler:
    """Handler for the /start and /help commands and the "❓ Help" menu button."""

    @staticmethod
    def register(dispatcher: Dispatcher) -> None:
        """Register the start and help triggers.

        Args:
            dispatcher: The dispatcher to register with
        """
        dispatcher.add_command("start", StartHandler._start_command)
        dispatcher.add_command("help", StartHandler._help_command)
        dispatcher.add_text(Key.buttons.help, StartHandler._help_command)

    @staticmethod
    async def _start_command(ctx: FlowContext, payload: str) -> None:
        """Handle the /start command.

        Args:
            ctx: The flow context of the user
            payload: Arguments after the command, unused
        """
        logger.info(f"Start command received from user {ctx.user_id}")
        await ctx.reply(Key.welcome, UserKeyboards.main_menu())

    @staticmethod
    async def _help_command(ctx: FlowContext, payload: str) -> None:
        logger.info(f"Help requested by user {ctx.user_id}")
        await ctx.reply(Key.help, UserKeyboards.main_menu())
