import bisect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from flow_engine.context import FlowContext
from flow_engine.context_data import ContextKey, T
from flow_engine.errors import (
    DuplicateHandlerError,
    FlowEngineError,
    FlowError,
    PermissionDeniedError,
    ValidationError,
)
from flow_engine.events import Event, EventKind, normalize_command
from flow_engine.flow import Flow
from flow_engine.session import CancelReason
from flow_engine.session_store import SessionStore
from flow_engine.steps import GoTo, StepInput, StepOutcome

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[FlowContext, str], Awaitable[None]]
"""Stateless handler: receives the context and the payload (command args, text, or callback suffix)."""


@dataclass(frozen=True)
class Handler:
    callback: HandlerFunc
    capability: Optional[str] = None


@dataclass(frozen=True)
class DispatcherMessages:
    permission_denied: str = PermissionDeniedError.default_message
    generic_error: str = "An error occurred. Please try again."
    flow_exit: str = "Operation cancelled."


class Dispatcher:
    """
    Routes every inbound event either to a stateless handler or to the current
    step of the user's active flow.

    Routing order:
    1. User in a flow: exit commands cancel it, whitelisted global commands
       pass through, everything else goes to the current step.
    2. Otherwise: exact command, exact text (then the fallback text handler),
       callback data by longest matching prefix.
    3. Nothing matched: ignored.

    All handler tables are filled at startup. ``handle_event`` never raises;
    per-event errors become replies.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        exit_commands: Iterable[str] = ("cancel", "exit"),
        allow_global_commands: bool = False,
        global_commands: Iterable[str] = ("help",),
        messages: Optional[DispatcherMessages] = None,
    ):
        self.store = store
        self.exit_commands = {normalize_command(cmd) for cmd in exit_commands}
        self.allow_global_commands = allow_global_commands
        self.global_commands = {normalize_command(cmd) for cmd in global_commands}
        self.messages = messages or DispatcherMessages()

        self._commands: Dict[str, Handler] = {}
        self._texts: Dict[str, Handler] = {}
        self._callbacks: Dict[str, Handler] = {}
        # kept sorted by descending length so the first hit is the longest prefix
        self._callback_prefixes: List[Tuple[int, str]] = []
        self._fallback: Optional[Handler] = None

    # Registration

    def register_flow(self, flow: Flow) -> None:
        self.store.registry.register(flow)

    def add_command(self, command: str, callback: HandlerFunc, capability: Optional[str] = None) -> None:
        key = normalize_command(command)
        if key in self._commands:
            raise DuplicateHandlerError("command", key)
        self._commands[key] = self._make_handler(callback, capability)

    def add_text(self, text: str, callback: HandlerFunc, capability: Optional[str] = None) -> None:
        if text in self._texts:
            raise DuplicateHandlerError("text", text)
        self._texts[text] = self._make_handler(callback, capability)

    def add_callback(self, prefix: str, callback: HandlerFunc, capability: Optional[str] = None) -> None:
        if not prefix:
            raise ValueError("Callback prefix must not be empty")
        if prefix in self._callbacks:
            raise DuplicateHandlerError("callback", prefix)
        self._callbacks[prefix] = self._make_handler(callback, capability)
        bisect.insort(self._callback_prefixes, (-len(prefix), prefix))

    def set_fallback(self, callback: HandlerFunc, capability: Optional[str] = None) -> None:
        """Handler for free text that matched no text trigger."""
        self._fallback = self._make_handler(callback, capability)

    def _make_handler(self, callback: HandlerFunc, capability: Optional[str]) -> Handler:
        if capability and self.store.access is None:
            raise FlowEngineError(f"Handler gated by '{capability}' needs an access manager")
        return Handler(callback=callback, capability=capability)

    # Engine API for handlers outside a flow

    async def start_flow(self, user_id: int, flow_name: str, initial: Optional[Mapping[ContextKey, Any]] = None) -> None:
        await self.store.start_flow(user_id, flow_name, initial=initial)

    async def cancel_flow(self, user_id: int) -> bool:
        return await self.store.cancel(user_id)

    def is_user_in_flow(self, user_id: int) -> bool:
        return self.store.is_user_in_flow(user_id)

    def set_context(self, user_id: int, key: ContextKey[T], value: T) -> None:
        self.store.set_context(user_id, key, value)

    def get_context(self, user_id: int, key: ContextKey[T], default: Optional[T] = None) -> Optional[T]:
        return self.store.get_context(user_id, key, default)

    # Event handling

    async def handle_event(self, user_id: int, event: Event) -> None:
        async with self.store.lock(user_id):
            self.store.touch(user_id)
            ctx = self.store.context_for(user_id, event)
            try:
                if self.store.is_user_in_flow(user_id):
                    await self._route_in_flow(ctx, event)
                else:
                    await self._route_idle(ctx, event)
            except FlowError as e:
                logger.info(f"User {user_id}: {type(e).__name__}: {e}")
                await ctx.reply(e.user_message)
            except Exception as e:
                logger.error(f"Error handling {event.kind.value} event from user {user_id}: {str(e)}", exc_info=True)
                await ctx.reply(self.messages.generic_error)

    async def _route_in_flow(self, ctx: FlowContext, event: Event) -> None:
        command = event.command_name
        if command in self.exit_commands:
            logger.info(f"User {ctx.user_id} left their flow with /{command}")
            await self.store.cancel(ctx.user_id, reason=CancelReason.EXIT, event=event)
            await ctx.reply(self.messages.flow_exit)
            return

        if command and self.allow_global_commands and command in self.global_commands:
            handler = self._commands.get(command)
            if handler is not None:
                await self._invoke(handler, ctx, event.command_args)
                return

        await self._handle_step_input(ctx, event)

    async def _handle_step_input(self, ctx: FlowContext, event: Event) -> None:
        before = self.store.get(ctx.user_id)
        flow = self.store.registry.lookup(before.flow_name)
        step = flow.step_at(before.step_index)
        step_input = StepInput.from_event(event)

        if step.validator is not None and step_input.has_text:
            result = step.validator(step_input.text)
            if not result.accepted:
                raise ValidationError(user_message=result.message)

        outcome = await step.on_input(ctx, step_input)

        after = self.store.get(ctx.user_id)
        if after.generation != before.generation or after.step_index != before.step_index:
            # the step moved the session itself (cancelled, restarted, ...)
            logger.debug(f"User {ctx.user_id}: step '{step.name}' changed the session, ignoring {outcome}")
            return

        if isinstance(outcome, GoTo):
            await self.store.go_to(ctx.user_id, outcome.step, event=event)
        elif outcome == StepOutcome.RETRY:
            await self.store.go_to(ctx.user_id, step.name, event=event)
        elif outcome == StepOutcome.CONTINUE:
            await self.store.advance(ctx.user_id, event=event)
        elif outcome == StepOutcome.CANCEL:
            await self.store.cancel(ctx.user_id, reason=CancelReason.USER, event=event)
        elif outcome == StepOutcome.ERROR:
            logger.warning(f"User {ctx.user_id}: step '{step.name}' of '{flow.name}' reported a recoverable error")
        elif outcome != StepOutcome.STAY:
            raise TypeError(f"Step '{step.name}' of '{flow.name}' returned {outcome!r}, expected a StepOutcome or GoTo")

    async def _route_idle(self, ctx: FlowContext, event: Event) -> None:
        handler, payload = self._resolve(event)
        if handler is None:
            logger.debug(f"No handler for {event.kind.value} event from user {ctx.user_id}")
            return
        await self._invoke(handler, ctx, payload)

    def _resolve(self, event: Event) -> Tuple[Optional[Handler], str]:
        if event.kind == EventKind.COMMAND:
            return self._commands.get(event.command_name), event.command_args

        if event.kind == EventKind.TEXT:
            text = event.text or ""
            return self._texts.get(text, self._fallback), text

        if event.kind == EventKind.CALLBACK:
            data = event.callback_data or ""
            for _, prefix in self._callback_prefixes:
                if data.startswith(prefix):
                    return self._callbacks[prefix], data[len(prefix):]

        return None, ""

    async def _invoke(self, handler: Handler, ctx: FlowContext, payload: str) -> None:
        if handler.capability:
            allowed = await self.store.access.check_capability(ctx.user_id, handler.capability)
            if not allowed:
                logger.info(f"User {ctx.user_id} denied '{handler.capability}'")
                await ctx.reply(self.messages.permission_denied)
                return
            await self.store.access.log_access(ctx.user_id, handler.capability)
        await handler.callback(ctx, payload)
