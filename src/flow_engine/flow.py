from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple

from flow_engine.errors import FlowDefinitionError
from flow_engine.steps import EnterHook, InputHook, Step
from flow_engine.validation import Validator

if TYPE_CHECKING:
    from flow_engine.context import FlowContext

FlowHook = Callable[["FlowContext"], Awaitable[None]]


@dataclass(frozen=True)
class Flow:
    """
    An ordered, immutable sequence of steps plus flow-level hooks.

    A Flow is plain data: build one with :class:`FlowBuilder` or as a literal.
    ``on_complete`` runs after the last step signals CONTINUE, ``on_cancel``
    whenever the flow is left any other way. Both see the session context
    before it is cleared.
    """

    name: str
    steps: Tuple[Step, ...]
    on_complete: Optional[FlowHook] = None
    on_cancel: Optional[FlowHook] = None

    def __post_init__(self):
        if not self.name:
            raise FlowDefinitionError("A flow needs a name")
        # lists are accepted for convenience but stored as a tuple
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise FlowDefinitionError(f"Flow '{self.name}' has no steps")
        names = [step.name for step in self.steps]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise FlowDefinitionError(f"Flow '{self.name}' has duplicate step names: {', '.join(duplicates)}")

    @property
    def last_index(self) -> int:
        return len(self.steps) - 1

    def step_at(self, index: int) -> Step:
        return self.steps[index]

    def index_of(self, step_name: str) -> int:
        for index, step in enumerate(self.steps):
            if step.name == step_name:
                return index
        raise KeyError(f"Flow '{self.name}' has no step named '{step_name}'")


@dataclass
class FlowBuilder:
    """
    Fluent construction of a :class:`Flow`::

        flow = (
            FlowBuilder("change_name")
            .step("enter_name", on_enter=prompt, on_input=store_name, validator=name_validator)
            .step("confirm", on_enter=ask, on_input=apply)
            .on_cancel(say_cancelled)
            .build()
        )
    """

    name: str
    _steps: List[Step] = field(default_factory=list)
    _on_complete: Optional[FlowHook] = None
    _on_cancel: Optional[FlowHook] = None

    def step(
        self,
        name: str,
        *,
        on_input: InputHook,
        on_enter: Optional[EnterHook] = None,
        validator: Optional[Validator] = None,
    ) -> "FlowBuilder":
        self._steps.append(Step(name=name, on_input=on_input, on_enter=on_enter, validator=validator))
        return self

    def on_complete(self, hook: FlowHook) -> "FlowBuilder":
        self._on_complete = hook
        return self

    def on_cancel(self, hook: FlowHook) -> "FlowBuilder":
        self._on_cancel = hook
        return self

    def build(self) -> Flow:
        return Flow(
            name=self.name,
            steps=tuple(self._steps),
            on_complete=self._on_complete,
            on_cancel=self._on_cancel,
        )
