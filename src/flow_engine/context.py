import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from flow_engine.context_data import ContextKey, T
from flow_engine.errors import ReplyFailedError
from flow_engine.events import Event
from flow_engine.ports import AccessManaging, ReplySending
from flow_engine.session import CancelReason

if TYPE_CHECKING:
    from flow_engine.session_store import SessionStore

logger = logging.getLogger(__name__)


class FlowContext:
    """
    Everything a hook or handler may touch while processing one event.

    Services are handed in explicitly by whoever builds the Dispatcher; there
    is no global lookup. ``services`` is the application's own bundle (record
    store and friends) and is opaque to the engine.
    """

    def __init__(
        self,
        user_id: int,
        store: "SessionStore",
        replies: ReplySending,
        *,
        access: Optional[AccessManaging] = None,
        services: Any = None,
        event: Optional[Event] = None,
        cancel_reason: Optional[CancelReason] = None,
    ):
        self.user_id = user_id
        self.store = store
        self.replies = replies
        self.access = access
        self.services = services
        self.event = event
        self.cancel_reason = cancel_reason

    # Session context

    def get(self, key: ContextKey[T], default: Optional[T] = None) -> Optional[T]:
        return self.store.get_context(self.user_id, key, default)

    def set(self, key: ContextKey[T], value: T) -> None:
        self.store.set_context(self.user_id, key, value)

    # Flow control

    def is_in_flow(self) -> bool:
        return self.store.is_user_in_flow(self.user_id)

    async def start_flow(self, flow_name: str, initial: Optional[Mapping[ContextKey, Any]] = None) -> None:
        await self.store.start_flow(self.user_id, flow_name, initial=initial, event=self.event)

    async def cancel_flow(self, reason: CancelReason = CancelReason.USER) -> bool:
        return await self.store.cancel(self.user_id, reason=reason, event=self.event)

    # Replies

    async def reply(self, text: str, keyboard: Optional[Any] = None) -> None:
        try:
            await self.replies.reply(self.user_id, text, keyboard)
        except ReplyFailedError as exc:
            logger.warning(f"Reply to user {self.user_id} was not delivered: {exc}")

    async def reply_template(self, template_name: str, keyboard: Optional[Any] = None, **data: Any) -> None:
        try:
            await self.replies.reply_template(self.user_id, template_name, data, keyboard)
        except ReplyFailedError as exc:
            logger.warning(f"Template '{template_name}' for user {self.user_id} was not delivered: {exc}")

    async def log_access(self, action: str) -> None:
        if self.access is not None:
            await self.access.log_access(self.user_id, action)
