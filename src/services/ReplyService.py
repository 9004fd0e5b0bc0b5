import asyncio
import logging
from typing import Any, Mapping, Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import (
    BadRequest,
    ChatMigrated,
    Forbidden,
    NetworkError,
    RetryAfter,
    TelegramError,
    TimedOut,
)

from flow_engine import ReplyFailedError, ReplySending
from templates import TemplateStore
from templates import store as default_templates


class TelegramReplyService(ReplySending):
    """
    Sends engine replies through the Telegram Bot API.

    Messages go out in HTML parse mode. Transient transport failures are retried
    with backoff; a permanent failure raises ``ReplyFailedError`` for the caller
    to log.
    """

    def __init__(
        self,
        bot: Bot,
        *,
        templates: Optional[TemplateStore] = None,
        logger: Optional[logging.Logger] = None,
        max_retries: int = 2,
        retry_backoff_seconds: float = 1.5,
        parse_mode: Optional[str] = ParseMode.HTML,
    ):
        self.bot = bot
        self.templates = templates or default_templates
        self.logger = logger or logging.getLogger(__name__)
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.parse_mode = parse_mode
        # chats that migrated to a supergroup, old id -> new id
        self._migrated_chats = {}

    async def reply(self, user_id: int, text: str, keyboard: Optional[Any] = None) -> None:
        await self._send_with_retry(user_id, text, keyboard)

    async def reply_template(
        self,
        user_id: int,
        template_name: str,
        data: Optional[Mapping[str, Any]] = None,
        keyboard: Optional[Any] = None,
    ) -> None:
        text = self.templates.render(template_name, **dict(data or {}))
        await self._send_with_retry(user_id, text, keyboard)

    async def _send_with_retry(self, user_id: int, text: str, keyboard: Optional[Any]) -> None:
        chat_id = self._migrated_chats.get(user_id, user_id)
        attempts = 0

        while True:
            try:
                await self.bot.send_message(chat_id, text, reply_markup=keyboard, parse_mode=self.parse_mode)
                return
            # BadRequest subclasses NetworkError, so permanent failures are matched first
            except (Forbidden, BadRequest) as exc:
                self._give_up(user_id, chat_id, exc)
            except ChatMigrated as exc:
                chat_id = exc.new_chat_id or chat_id
                self._migrated_chats[user_id] = chat_id
                self.logger.info("Chat %s migrated to %s", user_id, chat_id)
            except RetryAfter as exc:
                await asyncio.sleep(self._retry_after_seconds(exc))
            except (TimedOut, NetworkError):
                await asyncio.sleep(self.retry_backoff_seconds * (attempts + 1))
            except TelegramError as exc:
                self._give_up(user_id, chat_id, exc)

            attempts += 1
            if attempts > self.max_retries:
                self.logger.error("Exceeded retries sending reply to user %s", chat_id)
                raise ReplyFailedError(user_id, "retries exhausted")

    def _retry_after_seconds(self, exc: RetryAfter) -> float:
        delay = getattr(exc, "retry_after", self.retry_backoff_seconds)
        # PTB >= 21 may report a timedelta
        if hasattr(delay, "total_seconds"):
            delay = delay.total_seconds()
        return delay

    def _give_up(self, user_id: int, chat_id: int, exc: TelegramError) -> None:
        self.logger.warning("Permanent failure sending reply to user %s: %s", chat_id, exc)
        raise ReplyFailedError(user_id, str(exc)) from exc
