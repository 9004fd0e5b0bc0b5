from abc import ABC, abstractmethod

from command_handlers.keyboards import UserKeyboards
from flow_engine import CancelReason, Flow, FlowContext
from templates import Key


class ConversationFlow(ABC):
    """
    Abstract base class for all conversations of the bot.

    Each conversation describes one guided, multi-step interaction with the
    user, such as renaming a user or transferring balance, as an engine
    :class:`Flow` that the bot registers with its dispatcher at startup.
    """

    @property
    @abstractmethod
    def flow(self) -> Flow:
        """
        The flow definition for this conversation.

        It is a characteristic of the conversation rather than a method that
        takes arguments: its name, ordered steps and completion/cancel hooks.

        Returns:
            Flow: The immutable flow registered under its name
        """
        pass

    @staticmethod
    async def announce_cancel(ctx: FlowContext, cancelled_message: str) -> None:
        """Tell the user why the conversation ended early."""
        if ctx.cancel_reason == CancelReason.USER:
            await ctx.reply(cancelled_message, UserKeyboards.back_to_list())
        elif ctx.cancel_reason == CancelReason.EXPIRED:
            await ctx.reply(Key.flow_expired)
        # EXIT and ERROR: the dispatcher already replied; SUPERSEDED: the new flow introduces itself
