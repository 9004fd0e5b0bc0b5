from typing import Callable, NamedTuple


class ValidationResult(NamedTuple):
    accepted: bool
    message: str = ""


Validator = Callable[[str], ValidationResult]
"""A pure predicate over the raw input text of a step."""


def accept() -> ValidationResult:
    return ValidationResult(accepted=True)


def reject(message: str) -> ValidationResult:
    return ValidationResult(accepted=False, message=message)
