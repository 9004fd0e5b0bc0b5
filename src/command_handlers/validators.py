import re
from decimal import Decimal

from flow_engine import ValidationResult, accept, reject
from models.models import MAX_NAME_LENGTH, MIN_NAME_LENGTH
from templates import Key

MAX_TRANSFER_AMOUNT = Decimal("10000")
MAX_AMOUNT_DECIMALS = 2

# plain ASCII decimal notation: no exponent, digit separators or non-ASCII digits
AMOUNT_PATTERN = re.compile(r"[+-]?[0-9]+(\.[0-9]+)?")


def name_validator(text: str) -> ValidationResult:
    """Accept a trimmed name of 2-50 printable ASCII characters."""
    name = text.strip()
    if not name:
        return reject(Key.validation.name_empty)
    if len(name) < MIN_NAME_LENGTH:
        return reject(Key.validation.name_too_short)
    if len(name) > MAX_NAME_LENGTH:
        return reject(Key.validation.name_too_long)
    if any(ord(char) < 32 or ord(char) > 126 for char in name):
        return reject(Key.validation.name_invalid_characters)
    return accept()


def parse_amount(text: str) -> Decimal:
    """Parse a plain decimal transfer amount, raising ``ValueError`` for anything else."""
    text = text.strip()
    if not AMOUNT_PATTERN.fullmatch(text):
        raise ValueError(f"'{text}' is not a plain decimal number")
    return Decimal(text)


def amount_validator(text: str) -> ValidationResult:
    """Accept a positive amount of at most $10,000 with no more than two decimals."""
    try:
        amount = parse_amount(text)
    except ValueError:
        return reject(Key.validation.amount_not_a_number)

    if amount <= 0:
        return reject(Key.validation.amount_not_positive)
    if amount > MAX_TRANSFER_AMOUNT:
        return reject(Key.validation.amount_too_large)
    # normalize() drops trailing zeros, so "10.50" counts as one decimal place
    if -amount.normalize().as_tuple().exponent > MAX_AMOUNT_DECIMALS:
        return reject(Key.validation.amount_too_precise)
    return accept()
