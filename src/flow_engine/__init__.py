"""
Conversational flow engine.

Turns a sequence of incoming messages and button presses into guided,
multi-step interactions:

- validation: pure input validators
- steps / flow: immutable flow definitions and the fluent FlowBuilder
- registry: name -> Flow, frozen after startup
- session / session_store: per-user state and the start/advance/cancel transitions
- dispatcher: routes events to stateless handlers or the active step
"""
from flow_engine.context import FlowContext
from flow_engine.context_data import ContextData, ContextKey
from flow_engine.dispatcher import Dispatcher, DispatcherMessages, Handler, HandlerFunc
from flow_engine.errors import (
    BusinessRuleError,
    ContextTypeError,
    DuplicateFlowError,
    DuplicateHandlerError,
    FlowAlreadyActiveError,
    FlowDefinitionError,
    FlowEngineError,
    FlowError,
    FlowNotFoundError,
    FlowRegistryFrozenError,
    NoActiveFlowError,
    NotFoundError,
    PermissionDeniedError,
    ReplyFailedError,
    UnknownFlowError,
    ValidationError,
)
from flow_engine.events import Event, EventKind
from flow_engine.flow import Flow, FlowBuilder
from flow_engine.ports import AccessManaging, ReplySending
from flow_engine.registry import FlowRegistry
from flow_engine.session import CancelReason, Session, SessionStatus
from flow_engine.session_store import FlowConflictPolicy, SessionStore
from flow_engine.steps import GoTo, Step, StepInput, StepOutcome, StepResult
from flow_engine.validation import ValidationResult, Validator, accept, reject

__all__ = [
    "AccessManaging",
    "BusinessRuleError",
    "CancelReason",
    "ContextData",
    "ContextKey",
    "ContextTypeError",
    "Dispatcher",
    "DispatcherMessages",
    "DuplicateFlowError",
    "DuplicateHandlerError",
    "Event",
    "EventKind",
    "Flow",
    "FlowAlreadyActiveError",
    "FlowBuilder",
    "FlowConflictPolicy",
    "FlowContext",
    "FlowDefinitionError",
    "FlowEngineError",
    "FlowError",
    "FlowNotFoundError",
    "FlowRegistry",
    "FlowRegistryFrozenError",
    "GoTo",
    "Handler",
    "HandlerFunc",
    "NoActiveFlowError",
    "NotFoundError",
    "PermissionDeniedError",
    "ReplyFailedError",
    "ReplySending",
    "Session",
    "SessionStatus",
    "SessionStore",
    "Step",
    "StepInput",
    "StepOutcome",
    "StepResult",
    "UnknownFlowError",
    "ValidationError",
    "ValidationResult",
    "Validator",
    "accept",
    "reject",
]
