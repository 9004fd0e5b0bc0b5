from decimal import Decimal
from html import escape

from pydantic import BaseModel, field_validator

MAX_NAME_LENGTH = 50
MIN_NAME_LENGTH = 2
CENT = Decimal("0.01")


class User(BaseModel):
    id: int
    name: str
    enabled: bool = True
    balance: Decimal = Decimal("0.00")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("user name cannot be empty")
        if len(value) > MAX_NAME_LENGTH:
            raise ValueError(f"user name must be less than {MAX_NAME_LENGTH} characters")
        return value

    @field_validator("balance")
    @classmethod
    def _balance_not_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("user balance cannot be negative")
        return value.quantize(CENT)

    @property
    def status_icon(self) -> str:
        return "✅" if self.enabled else "❌"

    @property
    def html_name(self) -> str:
        """Name escaped for HTML parse mode."""
        return escape(self.name)

    def can_transfer(self, amount: Decimal) -> bool:
        return self.enabled and amount > 0 and self.balance >= amount

    def __str__(self) -> str:
        return f"{self.status_icon} {self.name} (${self.balance:.2f})"
