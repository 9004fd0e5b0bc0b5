from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from flow_engine.context_data import ContextData


class SessionStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class CancelReason(str, Enum):
    USER = "user"
    # left with an exit command; the dispatcher sends the exit message
    EXIT = "exit"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"
    ERROR = "error"


@dataclass
class Session:
    """
    Per-user flow state.

    ``flow_name`` is None while Idle; ``step_index`` is only meaningful while
    Active. ``generation`` increases on every start and reset, which lets a
    caller notice that a hook changed the flow underneath it.
    """

    user_id: int
    flow_name: Optional[str] = None
    step_index: int = 0
    context: ContextData = field(default_factory=ContextData)
    started_at: Optional[float] = None
    last_active: float = 0.0
    generation: int = 0

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.ACTIVE if self.flow_name is not None else SessionStatus.IDLE

    @property
    def is_active(self) -> bool:
        return self.flow_name is not None

    def activate(self, flow_name: str, now: float) -> None:
        self.flow_name = flow_name
        self.step_index = 0
        self.context.clear()
        self.started_at = now
        self.last_active = now
        self.generation += 1

    def reset(self) -> None:
        self.flow_name = None
        self.step_index = 0
        self.context.clear()
        self.started_at = None
        self.generation += 1

    def snapshot(self) -> "Session":
        return Session(
            user_id=self.user_id,
            flow_name=self.flow_name,
            step_index=self.step_index,
            context=self.context.copy(),
            started_at=self.started_at,
            last_active=self.last_active,
            generation=self.generation,
        )
