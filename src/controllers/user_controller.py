from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from flow_engine import BusinessRuleError, NotFoundError
from models.models import CENT, MAX_NAME_LENGTH, MIN_NAME_LENGTH, User
from templates import Key


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(f"user with ID {user_id} not found", user_message=Key.errors.user_not_found)
        self.user_id = user_id


class InvalidUserNameError(BusinessRuleError):
    def __init__(self, reason: str):
        super().__init__(reason, user_message=Key.errors.name_update_failed.format(reason=reason))


class TransferError(BusinessRuleError):
    def __init__(self, reason: str):
        super().__init__(reason, user_message=Key.errors.transfer_failed.format(reason=reason))


class InsufficientBalanceError(TransferError):
    def __init__(self, sender: User, amount: Decimal):
        super().__init__(
            f"insufficient balance: sender has ${sender.balance:.2f}, transfer amount is ${amount:.2f}"
        )
        self.sender = sender
        self.amount = amount


class UserControlling(ABC):
    """Record store for the users managed by the bot."""

    @abstractmethod
    async def get_all_users(self) -> List[User]:
        pass

    @abstractmethod
    async def get_active_users(self) -> List[User]:
        """Return only enabled users."""
        pass

    @abstractmethod
    async def get_user(self, user_id: int) -> User:
        """Return the user or raise ``UserNotFoundError``."""
        pass

    @abstractmethod
    async def update_user_name(self, user_id: int, new_name: str) -> User:
        """
        Rename a user.

        The name is trimmed and must be 2-50 characters long; otherwise
        ``InvalidUserNameError`` is raised.
        """
        pass

    @abstractmethod
    async def toggle_user_status(self, user_id: int) -> User:
        """Flip the enabled flag and return the updated user."""
        pass

    @abstractmethod
    async def transfer_balance(self, from_id: int, to_id: int, amount: Decimal) -> Tuple[User, User]:
        """
        Move ``amount`` from one user to another and return (sender, receiver).

        Raises:
            TransferError: non-positive amount, same user, or a disabled account.
            InsufficientBalanceError: the sender's balance is below ``amount``.
            UserNotFoundError: either user does not exist.
        """
        pass


class UserController(UserControlling):

    async def get_all_users(self) -> List[User]:
        raise NotImplementedError

    async def get_active_users(self) -> List[User]:
        raise NotImplementedError

    async def get_user(self, user_id: int) -> User:
        raise NotImplementedError

    async def update_user_name(self, user_id: int, new_name: str) -> User:
        raise NotImplementedError

    async def toggle_user_status(self, user_id: int) -> User:
        raise NotImplementedError

    async def transfer_balance(self, from_id: int, to_id: int, amount: Decimal) -> Tuple[User, User]:
        raise NotImplementedError


def sample_users() -> List[User]:
    """Demo data: mixed balances from $0 to $500, some accounts disabled."""
    return [
        User(id=1, name="Alice Smith", enabled=True, balance=Decimal("150.50")),
        User(id=2, name="Bob Johnson", enabled=True, balance=Decimal("75.25")),
        User(id=3, name="Carol Williams", enabled=False, balance=Decimal("200.00")),
        User(id=4, name="Dave Brown", enabled=True, balance=Decimal("0.00")),
        User(id=5, name="Eve Davis", enabled=True, balance=Decimal("325.75")),
        User(id=6, name="Frank Wilson", enabled=False, balance=Decimal("50.00")),
        User(id=7, name="Grace Miller", enabled=True, balance=Decimal("500.00")),
        User(id=8, name="Henry Taylor", enabled=True, balance=Decimal("12.50")),
    ]


class FakeUserController(UserControlling):
    """In-memory user store seeded with sample data."""

    def __init__(self, users: Optional[List[User]] = None):
        seed = users if users is not None else sample_users()
        self._users: Dict[int, User] = {user.id: user.model_copy() for user in seed}

    async def get_all_users(self) -> List[User]:
        return [user.model_copy() for user in self._users.values()]

    async def get_active_users(self) -> List[User]:
        return [user.model_copy() for user in self._users.values() if user.enabled]

    async def get_user(self, user_id: int) -> User:
        return self._find(user_id).model_copy()

    async def update_user_name(self, user_id: int, new_name: str) -> User:
        new_name = new_name.strip()
        if not new_name:
            raise InvalidUserNameError("name cannot be empty")
        if len(new_name) < MIN_NAME_LENGTH:
            raise InvalidUserNameError(f"name must be at least {MIN_NAME_LENGTH} characters long")
        if len(new_name) > MAX_NAME_LENGTH:
            raise InvalidUserNameError(f"name must be less than {MAX_NAME_LENGTH} characters")

        user = self._find(user_id)
        user.name = new_name
        return user.model_copy()

    async def toggle_user_status(self, user_id: int) -> User:
        user = self._find(user_id)
        user.enabled = not user.enabled
        return user.model_copy()

    async def transfer_balance(self, from_id: int, to_id: int, amount: Decimal) -> Tuple[User, User]:
        if amount <= 0:
            raise TransferError("transfer amount must be positive")
        if from_id == to_id:
            raise TransferError("cannot transfer to the same user")

        sender = self._find(from_id)
        receiver = self._find(to_id)

        if not sender.enabled:
            raise TransferError("sender account is disabled")
        if not receiver.enabled:
            raise TransferError("receiver account is disabled")
        if not sender.can_transfer(amount):
            raise InsufficientBalanceError(sender, amount)

        amount = amount.quantize(CENT)
        sender.balance -= amount
        receiver.balance += amount
        return sender.model_copy(), receiver.model_copy()

    def _find(self, user_id: int) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user
