"""Error classes for trade construction.

Only InsufficientCapitalInPools and InsufficientFunds (with its subclass
InsufficientLiquidity) are meant to reach a user. InvalidInput reports a
caller mistake, InvariantViolation a defect in the solver, and
NotApplicable tells the orchestrator to skip an optimization step.
"""

from __future__ import annotations


class TradeSolverError(Exception):
    """Base error for trade construction."""

    pass


class InvalidInput(TradeSolverError, ValueError):
    """A caller precondition was violated (negative fee, non-positive amount, token mismatch)."""

    pass


class InvariantViolation(TradeSolverError):
    """An assertion about the pool math failed. Never caught inside the package."""

    pass


class NotApplicable(TradeSolverError):
    """The optimization step has nothing to do and should be skipped."""

    pass


class InsufficientCapitalInPools(TradeSolverError):
    """The pool set is empty or has no usable liquidity for the request."""

    def __init__(self, message: str, required_amount: int | None = None) -> None:
        super().__init__(message)
        self.required_amount = required_amount


class InsufficientFunds(TradeSolverError):
    """Liquidity exists but cannot clear a reserve or minimum-output floor."""

    def __init__(self, message: str, required_amount: int | None = None) -> None:
        super().__init__(message)
        self.required_amount = required_amount


class InsufficientLiquidity(InsufficientFunds):
    """A single pool cannot pay the requested demand above its reserve floor."""

    pass
