import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from flow_engine.context import FlowContext
from flow_engine.context_data import ContextKey, T
from flow_engine.errors import (
    FlowAlreadyActiveError,
    FlowNotFoundError,
    NoActiveFlowError,
    UnknownFlowError,
)
from flow_engine.events import Event
from flow_engine.flow import Flow, FlowHook
from flow_engine.locks import UserLock
from flow_engine.ports import AccessManaging, ReplySending
from flow_engine.registry import FlowRegistry
from flow_engine.session import CancelReason, Session

logger = logging.getLogger(__name__)


class FlowConflictPolicy(str, Enum):
    """What ``start_flow`` does when the user is already in a flow."""

    REPLACE = "replace"
    REJECT = "reject"


class SessionStore:
    """
    Owns every user's Session and performs the flow transitions on them.

    Sessions are created lazily on first access and never removed, only reset
    to Idle. Each transition runs under the user's :class:`UserLock`, so one
    user's read-modify-write sequence never interleaves with another event for
    the same user, while different users proceed independently.
    """

    def __init__(
        self,
        registry: FlowRegistry,
        replies: ReplySending,
        *,
        access: Optional[AccessManaging] = None,
        services: Any = None,
        conflict_policy: FlowConflictPolicy = FlowConflictPolicy.REPLACE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.replies = replies
        self.access = access
        self.services = services
        self.conflict_policy = conflict_policy
        self._clock = clock
        self._sessions: Dict[int, Session] = {}
        self._locks: Dict[int, UserLock] = {}
        # user id -> generation of the flow whose closing hook is running
        self._closing: Dict[int, int] = {}

    def lock(self, user_id: int) -> UserLock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = UserLock()
        return lock

    def _session(self, user_id: int) -> Session:
        session = self._sessions.get(user_id)
        if session is None:
            session = self._sessions[user_id] = Session(user_id=user_id, last_active=self._clock())
        return session

    def get(self, user_id: int) -> Session:
        """Return a snapshot of the user's session; an unseen user gets an Idle one."""
        return self._session(user_id).snapshot()

    def is_user_in_flow(self, user_id: int) -> bool:
        session = self._sessions.get(user_id)
        return session is not None and session.is_active

    def active_flow(self, user_id: int) -> Optional[Flow]:
        session = self._sessions.get(user_id)
        if session is None or not session.is_active:
            return None
        return self.registry.lookup(session.flow_name)

    def touch(self, user_id: int) -> None:
        self._session(user_id).last_active = self._clock()

    def set_context(self, user_id: int, key: ContextKey[T], value: T) -> None:
        # writes while Idle are allowed; the next start_flow discards them
        self._session(user_id).context.set(key, value)

    def get_context(self, user_id: int, key: ContextKey[T], default: Optional[T] = None) -> Optional[T]:
        return self._session(user_id).context.get(key, default)

    def context_for(
        self,
        user_id: int,
        event: Optional[Event] = None,
        cancel_reason: Optional[CancelReason] = None,
    ) -> FlowContext:
        return FlowContext(
            user_id,
            self,
            self.replies,
            access=self.access,
            services=self.services,
            event=event,
            cancel_reason=cancel_reason,
        )

    async def start_flow(
        self,
        user_id: int,
        flow_name: str,
        initial: Optional[Mapping[ContextKey, Any]] = None,
        event: Optional[Event] = None,
    ) -> None:
        """
        Put the user at step 0 of ``flow_name`` and run that step's ``on_enter``.

        ``initial`` seeds the freshly cleared context before ``on_enter`` runs.
        An already active flow is cancelled first (REPLACE) or causes
        :class:`FlowAlreadyActiveError` (REJECT).
        """
        try:
            flow = self.registry.lookup(flow_name)
        except FlowNotFoundError:
            raise UnknownFlowError(flow_name) from None

        initial = dict(initial or {})
        for key, value in initial.items():
            key.check(value)

        async with self.lock(user_id):
            session = self._session(user_id)
            if session.is_active and not self._is_closing(session):
                if self.conflict_policy == FlowConflictPolicy.REJECT:
                    raise FlowAlreadyActiveError(user_id, session.flow_name, flow_name)
                logger.info(f"User {user_id}: flow '{session.flow_name}' superseded by '{flow_name}'")
                try:
                    await self._finish(session, CancelReason.SUPERSEDED, event)
                except Exception as e:
                    logger.error(f"Error in cancel hook while superseding user {user_id}: {str(e)}", exc_info=True)

            session.activate(flow.name, self._clock())
            for key, value in initial.items():
                session.context.set(key, value)
            logger.info(f"User {user_id} started flow '{flow.name}'")
            await self._enter_current_step(session, flow, event)

    async def advance(self, user_id: int, event: Optional[Event] = None) -> None:
        """Move to the next step, or complete the flow when on the last one."""
        async with self.lock(user_id):
            session = self._session(user_id)
            if not session.is_active or self._is_closing(session):
                raise NoActiveFlowError(user_id)
            flow = self.registry.lookup(session.flow_name)

            if session.step_index >= flow.last_index:
                await self._finish(session, None, event)
                return

            session.step_index += 1
            session.last_active = self._clock()
            logger.debug(f"User {user_id} advanced to step '{flow.step_at(session.step_index).name}' of '{flow.name}'")
            await self._enter_current_step(session, flow, event)

    async def go_to(self, user_id: int, step_name: str, event: Optional[Event] = None) -> None:
        """
        Jump to ``step_name`` of the active flow and run its ``on_enter``.

        Jumping to the current step shows its prompt again. The context is kept.
        """
        async with self.lock(user_id):
            session = self._session(user_id)
            if not session.is_active or self._is_closing(session):
                raise NoActiveFlowError(user_id)
            flow = self.registry.lookup(session.flow_name)

            session.step_index = flow.index_of(step_name)
            session.last_active = self._clock()
            logger.debug(f"User {user_id} jumped to step '{step_name}' of '{flow.name}'")
            await self._enter_current_step(session, flow, event)

    async def cancel(
        self,
        user_id: int,
        reason: CancelReason = CancelReason.USER,
        event: Optional[Event] = None,
    ) -> bool:
        """
        Cancel the user's active flow.

        Returns False, doing nothing, when the user is Idle (or the flow is
        already being closed by one of its own hooks).
        """
        async with self.lock(user_id):
            session = self._session(user_id)
            if not session.is_active or self._is_closing(session):
                return False
            await self._finish(session, reason, event)
            return True

    async def expire_idle(self, max_idle_seconds: float) -> List[int]:
        """Cancel every active session idle for longer than ``max_idle_seconds``."""
        expired: List[int] = []
        for user_id, session in list(self._sessions.items()):
            if not self._is_stale(session, max_idle_seconds):
                continue
            async with self.lock(user_id):
                if not self._is_stale(session, max_idle_seconds):
                    continue
                logger.info(f"User {user_id}: flow '{session.flow_name}' expired after {max_idle_seconds:.0f}s idle")
                try:
                    await self._finish(session, CancelReason.EXPIRED, None)
                except Exception as e:
                    logger.error(f"Error in cancel hook while expiring user {user_id}: {str(e)}", exc_info=True)
                expired.append(user_id)
        return expired

    def _is_closing(self, session: Session) -> bool:
        return self._closing.get(session.user_id) == session.generation

    def _is_stale(self, session: Session, max_idle_seconds: float) -> bool:
        return session.is_active and self._clock() - session.last_active >= max_idle_seconds

    async def _enter_current_step(self, session: Session, flow: Flow, event: Optional[Event]) -> None:
        step = flow.step_at(session.step_index)
        if step.on_enter is None:
            return

        generation = session.generation
        try:
            await step.on_enter(self.context_for(session.user_id, event))
        except Exception:
            logger.warning(
                f"on_enter of step '{step.name}' in flow '{flow.name}' failed for user {session.user_id}; cancelling"
            )
            if session.generation == generation:
                await self._finish(session, CancelReason.ERROR, event)
            raise

    async def _finish(self, session: Session, reason: Optional[CancelReason], event: Optional[Event]) -> None:
        """
        Run ``on_complete`` (reason None) or ``on_cancel`` and reset to Idle.

        The hook still sees the flow's context. If the hook itself starts
        another flow, that new flow is kept.
        """
        flow = self.registry.lookup(session.flow_name)
        hook: Optional[FlowHook] = flow.on_complete if reason is None else flow.on_cancel
        generation = session.generation

        outer = self._closing.get(session.user_id)
        self._closing[session.user_id] = generation
        try:
            if hook is not None:
                await hook(self.context_for(session.user_id, event, cancel_reason=reason))
        finally:
            if outer is None:
                del self._closing[session.user_id]
            else:
                self._closing[session.user_id] = outer
            if session.generation == generation:
                session.reset()

        if reason is None:
            logger.info(f"User {session.user_id} completed flow '{flow.name}'")
        else:
            logger.info(f"User {session.user_id} left flow '{flow.name}' ({reason.value})")
