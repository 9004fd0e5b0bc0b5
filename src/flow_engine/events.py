from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    COMMAND = "command"
    TEXT = "text"
    CALLBACK = "callback"


@dataclass(frozen=True)
class Event:
    """
    A transport-independent inbound event.

    ``text`` is set for commands and free-text messages, ``callback_data`` for
    button presses. ``chat_id`` and ``message_id`` are passed through untouched
    for the transport layer.
    """

    kind: EventKind
    text: Optional[str] = None
    callback_data: Optional[str] = None
    chat_id: Optional[int] = None
    message_id: Optional[int] = None

    @classmethod
    def command(cls, text: str, **kwargs) -> "Event":
        return cls(kind=EventKind.COMMAND, text=text, **kwargs)

    @classmethod
    def message(cls, text: str, **kwargs) -> "Event":
        kind = EventKind.COMMAND if text.startswith("/") else EventKind.TEXT
        return cls(kind=kind, text=text, **kwargs)

    @classmethod
    def callback(cls, data: str, **kwargs) -> "Event":
        return cls(kind=EventKind.CALLBACK, callback_data=data, **kwargs)

    @property
    def command_name(self) -> Optional[str]:
        """``"/start@my_bot arg"`` -> ``"start"``; None for non-command events."""
        if self.kind != EventKind.COMMAND or not self.text:
            return None
        head = self.text.split(maxsplit=1)[0]
        return normalize_command(head)

    @property
    def command_args(self) -> str:
        if self.kind != EventKind.COMMAND or not self.text:
            return ""
        parts = self.text.split(maxsplit=1)
        return parts[1].strip() if len(parts) > 1 else ""


def normalize_command(command: str) -> str:
    return command.lstrip("/").split("@", 1)[0].lower()
