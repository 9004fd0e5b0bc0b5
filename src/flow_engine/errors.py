from typing import Optional


class FlowEngineError(Exception):
    """Base class for every error raised by the flow engine."""


class FlowError(FlowEngineError):
    """
    Recoverable, per-event error.

    The Dispatcher turns these into a reply to the user instead of letting them
    escape. ``user_message`` is the text that reply carries.
    """

    default_message = "❌ Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, *, user_message: Optional[str] = None):
        super().__init__(message or user_message or self.default_message)
        self.user_message = user_message or message or self.default_message


class ValidationError(FlowError):
    """Raised when a step's validator rejects the user's input."""

    default_message = "❌ Invalid input. Please try again."


class NotFoundError(FlowError):
    default_message = "❌ Not found"


class FlowNotFoundError(NotFoundError):
    def __init__(self, flow_name: str):
        super().__init__(f"Flow '{flow_name}' is not registered", user_message=self.default_message)
        self.flow_name = flow_name


class UnknownFlowError(FlowNotFoundError):
    """Raised by ``start_flow`` for a flow name that was never registered."""


class PermissionDeniedError(FlowError):
    default_message = "❌ You don't have permission to perform this action."

    def __init__(self, action: str, user_message: Optional[str] = None):
        super().__init__(f"Permission denied for action '{action}'", user_message=user_message or self.default_message)
        self.action = action


class BusinessRuleError(FlowError):
    """Domain rule violation (e.g. insufficient balance); the user may retry."""


class FlowAlreadyActiveError(FlowError):
    default_message = "❌ Please finish or /cancel the current operation first."

    def __init__(self, user_id: int, active_flow: str, requested_flow: str):
        super().__init__(
            f"User {user_id} is in flow '{active_flow}', cannot start '{requested_flow}'",
            user_message=self.default_message,
        )
        self.active_flow = active_flow
        self.requested_flow = requested_flow


class NoActiveFlowError(FlowError):
    default_message = "❌ There is no operation in progress."

    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} has no active flow", user_message=self.default_message)
        self.user_id = user_id


class ContextTypeError(FlowEngineError, TypeError):
    """A value of the wrong type was written under a typed context key."""


class DuplicateFlowError(FlowEngineError):
    """Startup-fatal: a flow with the same name is already registered."""

    def __init__(self, flow_name: str):
        super().__init__(f"Flow '{flow_name}' is already registered")
        self.flow_name = flow_name


class DuplicateHandlerError(FlowEngineError):
    def __init__(self, kind: str, key: str):
        super().__init__(f"A {kind} handler for '{key}' is already registered")
        self.kind = kind
        self.key = key


class FlowDefinitionError(FlowEngineError):
    """The flow definition itself is inconsistent (no steps, duplicate step names...)."""


class FlowRegistryFrozenError(FlowEngineError):
    def __init__(self, flow_name: str):
        super().__init__(f"Cannot register '{flow_name}': the flow registry is frozen")
        self.flow_name = flow_name


class ReplyFailedError(FlowEngineError):
    """Raised by a reply sink when a message could not be delivered."""

    def __init__(self, user_id: int, reason: str = ""):
        super().__init__(f"Failed to deliver reply to user {user_id}" + (f": {reason}" if reason else ""))
        self.user_id = user_id
        self.reason = reason
