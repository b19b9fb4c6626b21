"""Value objects for trade construction.

Every object here is created and discarded within one request. Searches
never mutate them in place; refinement replaces them wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from trade_solver.errors import InvalidInput

if TYPE_CHECKING:
    from trade_solver.models.pool import PoolSnapshot


@dataclass(frozen=True)
class Fraction:
    """A rate as an integer fraction. Never reduced, never a float."""

    numerator: int
    denominator: int

    def to_denominator(self, denominator: int) -> Fraction:
        """Re-express this fraction with another denominator (floor rounding)."""
        if denominator == self.denominator:
            return self
        if self.denominator <= 0:
            raise InvalidInput(f"Fraction denominator must be positive: {self.denominator}")
        return Fraction(self.numerator * denominator // self.denominator, denominator)


@dataclass(frozen=True)
class Pair:
    """Abstract view of one pool for a single trade direction.

    Attributes:
        a: Balance of the side the trader pays into
        b: Balance of the side the trader draws from
        fee_paid_in_a: True when the fee is taken from the incoming side
        a_min_reserve: Floor of ``a``, always positive
        b_min_reserve: Floor of ``b``, always positive
        pool: Snapshot this pair was derived from, carried through every
            search stage so trades can be bound back to it
    """

    a: int
    b: int
    fee_paid_in_a: bool
    a_min_reserve: int
    b_min_reserve: int
    pool: PoolSnapshot | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.a_min_reserve <= 0 or self.b_min_reserve <= 0:
            raise InvalidInput(
                f"Min reserves must be positive: "
                f"a_min={self.a_min_reserve}, b_min={self.b_min_reserve}"
            )
        if self.a < 0 or self.b < 0:
            raise InvalidInput(f"Pair balances cannot be negative: a={self.a}, b={self.b}")

    @property
    def k(self) -> int:
        """Constant product, recomputed from the balances."""
        return self.a * self.b

    @property
    def is_tradable(self) -> bool:
        """Whether anything can be drawn from ``b`` above its floor."""
        return self.a > 0 and self.b > self.b_min_reserve


@dataclass(frozen=True)
class AbstractTrade:
    """Amounts of one trade against a pair.

    ``trade_fee`` is part of ``supply`` when the fee is paid in ``a``,
    and is left in the pool on top of ``demand`` otherwise.
    """

    demand: int
    supply: int
    trade_fee: int


@dataclass(frozen=True)
class PairTrade:
    """A pair with its current trade, or None when nothing was taken yet."""

    pair: Pair
    trade: AbstractTrade | None = None


@dataclass(frozen=True)
class PoolBounds:
    """Per-pool search window, half-open ``[lower_bound, upper_bound)``."""

    pair: Pair
    lower_bound: int
    upper_bound: int

    def narrowed(
        self, lower_bound: int | None = None, upper_bound: int | None = None
    ) -> PoolBounds:
        """Return a copy with one or both bounds replaced."""
        return replace(
            self,
            lower_bound=self.lower_bound if lower_bound is None else lower_bound,
            upper_bound=self.upper_bound if upper_bound is None else upper_bound,
        )


@dataclass(frozen=True)
class AmountGuess:
    """Result of a per-pool search: the best amount and the trade it yields."""

    best_guess: int
    trade: AbstractTrade


@dataclass(frozen=True)
class RateSearchResult:
    """Trades found by a multi-pool rate search.

    ``rate`` is None when the trades were topped up by the stepper after
    the search, since they no longer correspond to a single searched rate.
    """

    trades: list[PairTrade]
    rate: Fraction | None


@dataclass(frozen=True)
class EliminationResult:
    """Outcome of dropping net-negative pools."""

    keep: list[PairTrade]
    trades: list[PairTrade]
    rate: Fraction | None
    rate_with_benefit: int
    split_index: int


@dataclass(frozen=True)
class PoolFixedCost:
    """Overhead of including one more pool, in supply or demand units."""

    supply: int = 0
    demand: int = 0

    @property
    def is_zero(self) -> bool:
        return self.supply == 0 and self.demand == 0


@dataclass(frozen=True)
class TradeSummary:
    """Aggregate of a list of trades with its average rate."""

    demand: int
    supply: int
    trade_fee: int
    rate: Fraction


@dataclass(frozen=True)
class PoolTrade:
    """A trade bound to a concrete pool and the two token ids."""

    pool: PoolSnapshot | None
    supply_token_id: str
    demand_token_id: str
    supply: int
    demand: int
    trade_fee: int


@dataclass(frozen=True)
class TradeResult:
    """Per-pool trades and their summary."""

    entries: list[PoolTrade]
    summary: TradeSummary


@dataclass(frozen=True)
class TokenBalance:
    """Net amount of one token owed to (positive) or by (negative) the trader."""

    token_id: str
    amount: int


class TradeTarget(str, Enum):
    """Side of the trade a request caps."""

    DEMAND = "demand"
    SUPPLY = "supply"

    def amount_of(self, trade: AbstractTrade) -> int:
        """Amount of ``trade`` on this side."""
        return trade.demand if self is TradeTarget.DEMAND else trade.supply
