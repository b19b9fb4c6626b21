"""Checked integer arithmetic for the pool solver.

Pool balances and their products are plain Python ints, so nothing can
overflow. What can go wrong is a balance going negative or a division by
an empty balance, both of which mean the solver has a bug. SafeInt turns
either into an exception at the point it happens:
- Subtraction below zero raises Underflow
- Division by zero raises DivisionByZero

Every solve rounds in the pool's favor, so ceiling division lives here too.

Usage:
    from trade_solver.safe_int import S, ceil_div

    a1 = ceil_div(k, b1)
    rate = (S(a2) - a1) * denominator // (S(b1) - b2)
"""

from __future__ import annotations


class SafeIntError(ArithmeticError):
    """Base class for checked arithmetic errors."""

    pass


class DivisionByZero(SafeIntError):
    """Division by a zero balance."""

    pass


class Underflow(SafeIntError):
    """Subtraction that would leave a negative balance."""

    pass


def _unwrap(x: SafeInt | int) -> int:
    return x._value if isinstance(x, SafeInt) else x


class SafeInt:
    """Non-negative result integer for balance arithmetic.

    Only the operators the pool math needs are provided. Results stay
    wrapped until ``.value`` is read.
    """

    __slots__ = ("_value",)
    _value: int

    def __init__(self, value: int | SafeInt) -> None:
        if isinstance(value, SafeInt):
            value = value._value
        elif not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"SafeInt requires int, got {type(value).__name__}")
        self._value = value

    @property
    def value(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"SafeInt({self._value})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (SafeInt, int)):
            return self._value == _unwrap(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __int__(self) -> int:
        return self._value

    def __add__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value + _unwrap(other))

    def __sub__(self, other: SafeInt | int) -> SafeInt:
        """Raises Underflow if ``other`` is larger."""
        other_val = _unwrap(other)
        if other_val > self._value:
            raise Underflow(f"Underflow: {self._value} - {other_val}")
        return SafeInt(self._value - other_val)

    def __mul__(self, other: SafeInt | int) -> SafeInt:
        return SafeInt(self._value * _unwrap(other))

    def __floordiv__(self, other: SafeInt | int) -> SafeInt:
        """Raises DivisionByZero if ``other`` is zero."""
        other_val = _unwrap(other)
        if other_val == 0:
            raise DivisionByZero(f"Division by zero: {self._value} // 0")
        return SafeInt(self._value // other_val)

    def ceiling_div(self, other: SafeInt | int) -> SafeInt:
        """Division rounded up, in the pool's favor.

        Raises:
            DivisionByZero: If other is zero
        """
        other_val = _unwrap(other)
        if other_val == 0:
            raise DivisionByZero(f"Ceiling division by zero: {self._value}")
        return SafeInt(-(-self._value // other_val))


def ceil_div(numerator: int, denominator: int) -> int:
    """Ceiling of ``numerator / denominator`` as a plain int."""
    return SafeInt(numerator).ceiling_div(denominator).value


S = SafeInt

__all__ = ["SafeIntError", "DivisionByZero", "Underflow", "SafeInt", "S", "ceil_div"]
