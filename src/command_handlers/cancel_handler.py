import logging

from command_handlers.keyboards import UserKeyboards
from flow_engine import Dispatcher, FlowContext
from templates import Key

logger = logging.getLogger(__name__)


class CancelHandler:
    """Handler for the /cancel command and for text nobody else handles."""

    @staticmethod
    def register(dispatcher: Dispatcher) -> None:
        """Register /cancel and the fallback text handler.

        Inside a flow /cancel is an exit command and never reaches this handler,
        so here there is nothing to cancel.

        Args:
            dispatcher: The dispatcher to register with
        """
        dispatcher.add_command("cancel", CancelHandler._cancel_command)
        dispatcher.set_fallback(CancelHandler._unrecognized)

    @staticmethod
    async def _cancel_command(ctx: FlowContext, payload: str) -> None:
        logger.info(f"Cancel command received from user {ctx.user_id}")
        await ctx.reply(Key.operation_cancelled, UserKeyboards.main_menu())

    @staticmethod
    async def _unrecognized(ctx: FlowContext, text: str) -> None:
        logger.debug(f"Unrecognized text from user {ctx.user_id}")
        await ctx.reply(Key.unrecognized, UserKeyboards.main_menu())
