from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class ReplySending(ABC):
    """
    Outbound message sink used by the engine and by handlers.

    Fire-and-forget from the engine's point of view: a failed send raises
    ``ReplyFailedError`` and the caller logs it, nothing is retried here.
    """

    @abstractmethod
    async def reply(self, user_id: int, text: str, keyboard: Optional[Any] = None) -> None:
        pass

    @abstractmethod
    async def reply_template(
        self,
        user_id: int,
        template_name: str,
        data: Optional[Mapping[str, Any]] = None,
        keyboard: Optional[Any] = None,
    ) -> None:
        pass


class AccessManaging(ABC):

    @abstractmethod
    async def check_capability(self, user_id: int, action: str) -> bool:
        """Return True when the user may perform ``action``."""
        pass

    @abstractmethod
    async def log_access(self, user_id: int, action: str) -> None:
        """Audit hook, called after a capability check succeeds and for notable actions."""
        pass
