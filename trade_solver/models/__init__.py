"""Models for pool snapshots and constructed trades."""

from trade_solver.models.pool import PoolSnapshot, PoolSnapshotSet
from trade_solver.models.trade import (
    AbstractTrade,
    AmountGuess,
    EliminationResult,
    Fraction,
    Pair,
    PairTrade,
    PoolBounds,
    PoolFixedCost,
    PoolTrade,
    RateSearchResult,
    TokenBalance,
    TradeResult,
    TradeSummary,
    TradeTarget,
)
from trade_solver.models.types import Amount, TokenId

__all__ = [
    # Types
    "Amount",
    "TokenId",
    # Caller input
    "PoolSnapshot",
    "PoolSnapshotSet",
    # Trade construction
    "AbstractTrade",
    "AmountGuess",
    "EliminationResult",
    "Fraction",
    "Pair",
    "PairTrade",
    "PoolBounds",
    "PoolFixedCost",
    "RateSearchResult",
    "TradeTarget",
    # Output
    "PoolTrade",
    "TokenBalance",
    "TradeResult",
    "TradeSummary",
]
