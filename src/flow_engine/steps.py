from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Union

from flow_engine.events import Event, EventKind
from flow_engine.validation import Validator

if TYPE_CHECKING:
    from flow_engine.context import FlowContext


class StepOutcome(str, Enum):
    CONTINUE = "continue"
    STAY = "stay"
    CANCEL = "cancel"
    ERROR = "error"
    # stay on the step and show its prompt again
    RETRY = "retry"


@dataclass(frozen=True)
class GoTo:
    """Step result that jumps to another step of the same flow by name."""

    step: str


@dataclass(frozen=True)
class StepInput:
    """
    What the current step receives for one inbound event.

    ``text`` is None when the event carries no text (a button press), so a step
    that expects free text can test ``has_text`` and decide to ignore or reject.
    """

    text: Optional[str] = None
    callback_data: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return self.text is not None

    @property
    def is_callback(self) -> bool:
        return self.callback_data is not None

    @classmethod
    def from_event(cls, event: Event) -> "StepInput":
        if event.kind == EventKind.CALLBACK:
            return cls(text=None, callback_data=event.callback_data)
        return cls(text=event.text)


StepResult = Union[StepOutcome, GoTo]

EnterHook = Callable[["FlowContext"], Awaitable[None]]
InputHook = Callable[["FlowContext", StepInput], Awaitable[StepResult]]


@dataclass(frozen=True)
class Step:
    name: str
    on_input: InputHook
    on_enter: Optional[EnterHook] = None
    validator: Optional[Validator] = None
