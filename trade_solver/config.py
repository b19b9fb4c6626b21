"""Solver configuration."""

from __future__ import annotations

from dataclasses import dataclass

from trade_solver.constants import (
    DEFAULT_NATIVE_MIN_RESERVE,
    DEFAULT_TOKEN_MIN_RESERVE,
    POOL_SIZE_IN_EXCHANGE_TX,
    STEPPER_SIZE,
)
from trade_solver.errors import InvalidInput


@dataclass(frozen=True)
class SolverConfig:
    """Centralized configuration for trade construction.

    The rate denominator has no default. Rates produced with different
    denominators cannot be compared directly, so every integration states
    the precision it works with.

    Attributes:
        rate_denominator: Fixed-point denominator of every rate fraction
            (10**13 in the legacy table, 10**10 in newer builds)
        native_min_reserve: Floor for the native side of a pool (default: 693)
        token_min_reserve: Floor for the token side of a pool (default: 1)
        stepper_size: Number of increments the stepper splits a shortfall into
        pool_size_in_exchange_tx: Bytes one pool adds to an exchange transaction
    """

    rate_denominator: int
    native_min_reserve: int = DEFAULT_NATIVE_MIN_RESERVE
    token_min_reserve: int = DEFAULT_TOKEN_MIN_RESERVE
    stepper_size: int = STEPPER_SIZE
    pool_size_in_exchange_tx: int = POOL_SIZE_IN_EXCHANGE_TX

    def __post_init__(self) -> None:
        for name in (
            "rate_denominator",
            "native_min_reserve",
            "token_min_reserve",
            "stepper_size",
            "pool_size_in_exchange_tx",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise InvalidInput(f"{name} must be a positive integer, got {value!r}")
