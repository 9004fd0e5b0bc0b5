from typing import Optional

from telegram import Update

from flow_engine import Event


class UpdateTranslator:
    """Turns a python-telegram-bot ``Update`` into an engine ``Event``."""

    @staticmethod
    def to_event(update: Update) -> Optional[Event]:
        """
        Returns:
            Event: a CALLBACK event for button presses, COMMAND for text that
                starts with "/", TEXT otherwise; None for updates the engine
                does not handle (stickers, edits, ...)
        """
        query = update.callback_query
        if query is not None:
            message = query.message
            return Event.callback(
                query.data or "",
                chat_id=message.chat_id if message is not None else None,
                message_id=message.message_id if message is not None else None,
            )

        message = update.message
        if message is None or message.text is None:
            return None
        return Event.message(message.text, chat_id=message.chat_id, message_id=message.message_id)

    @staticmethod
    def user_id(update: Update) -> Optional[int]:
        user = update.effective_user
        return user.id if user is not None else None
