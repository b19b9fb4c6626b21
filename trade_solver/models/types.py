"""Shared type definitions for pool snapshot models."""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field


def validate_amount(value: Any) -> int:
    """Validate that a value is a non-negative integer amount.

    Args:
        value: Value to validate (int or decimal string)

    Returns:
        The amount as int

    Raises:
        ValueError: If value is not a non-negative integer
    """
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool):
        raise ValueError("Amount must be an integer, got bool")

    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Amount cannot be negative: {value}")
        return value

    if not isinstance(value, str):
        raise ValueError(f"Amount must be string or int, got {type(value).__name__}")

    if not value.isdigit():
        raise ValueError(f"Amount must be a decimal integer string: '{value}'")

    return int(value)


# Non-negative balance in base units, accepted as int or decimal string
Amount = Annotated[
    int,
    BeforeValidator(validate_amount),
    Field(description="Non-negative integer amount in base units"),
]

# Token category id (32 bytes = 64 lowercase hex chars)
TokenId = Annotated[str, Field(pattern=r"^[a-f0-9]{64}$")]
