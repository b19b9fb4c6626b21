"""Multi-pool best-rate search.

Bisects over the rate axis across all pools at once. At each candidate
rate every pool reports how much it contributes at or below that rate;
the sum is compared to the requested amount.

After each step the per-pool amount windows are narrowed around the
amount each pool just reported, so later per-pool bisections start from a
small window. Narrowing returns new bounds; the caller's list is never
modified.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from trade_solver.amm.pair import (
    rate_with_kb,
    required_supply_to_max_out,
    sum_trades,
    trade_for_target_demand,
)
from trade_solver.amm.rate_search import (
    amount_at_target_rate,
    trade_in_supply_range_at_target_rate,
)
from trade_solver.models.trade import (
    AmountGuess,
    Fraction,
    Pair,
    PairTrade,
    PoolBounds,
    RateSearchResult,
    TradeTarget,
)

logger = structlog.get_logger()

CollectFn = Callable[[Sequence[PoolBounds], Fraction], list[AmountGuess | None]]


def trades_below_rate_in_demand_range(
    pools: Sequence[PoolBounds], rate: Fraction
) -> list[AmountGuess | None]:
    """Per-pool demand at or below ``rate``, aligned with ``pools``.

    Entries are None for pools that contribute nothing at this rate.
    """
    results: list[AmountGuess | None] = []
    for bounds in pools:
        best_guess = amount_at_target_rate(
            bounds.pair, rate, bounds.lower_bound, bounds.upper_bound
        )
        trade = None if best_guess is None else trade_for_target_demand(bounds.pair, best_guess)
        results.append(None if trade is None else AmountGuess(best_guess=best_guess, trade=trade))
    return results


def trades_below_rate_in_supply_range(
    pools: Sequence[PoolBounds], rate: Fraction
) -> list[AmountGuess | None]:
    """Per-pool supply at or below ``rate``, aligned with ``pools``."""
    return [
        trade_in_supply_range_at_target_rate(
            bounds.pair, rate, bounds.lower_bound, bounds.upper_bound
        )
        for bounds in pools
    ]


def demand_search_cap(pair: Pair) -> int:
    """Exclusive upper bound of a pair's demand window."""
    return pair.b - pair.b_min_reserve + 1


def rate_search_upper_bound(pairs: Sequence[Pair], denominator: int) -> int:
    """Exclusive upper bound of the rate axis.

    The spot rate of each pair after it is drained to its floor, plus one,
    maxed over the pairs.
    """
    return max(
        rate_with_kb(
            (pair.a + pair.b - pair.b_min_reserve) * pair.b_min_reserve,
            pair.b_min_reserve,
            denominator,
        )
        + 1
        for pair in pairs
    )


def _best_rate_search(
    pools: Sequence[PoolBounds],
    amount: int,
    lower_bound: int,
    upper_bound: int,
    denominator: int,
    target: TradeTarget,
    collect: CollectFn,
    caps: list[int],
) -> RateSearchResult | None:
    """Lowest rate whose combined contribution does not exceed ``amount``.

    A rate is feasible when the summed target side is at most ``amount``.
    Among feasible points the one with greater demand wins, then the one
    with lesser supply.
    """
    pools = list(pools)
    candidate: list[PairTrade] | None = None
    candidate_sum = None
    best_rate = None

    while lower_bound < upper_bound:
        guess = lower_bound + (upper_bound - lower_bound) // 2
        guesses = collect(pools, Fraction(guess, denominator))
        total = sum_trades(g.trade for g in guesses if g is not None)
        if total is None:
            # No liquidity at this rate
            lower_bound = guess + 1
            continue

        reached = target.amount_of(total)
        if reached <= amount and (
            candidate_sum is None
            or total.demand > candidate_sum.demand
            or (total.demand == candidate_sum.demand and total.supply < candidate_sum.supply)
        ):
            candidate = [
                PairTrade(pair=bounds.pair, trade=g.trade)
                for bounds, g in zip(pools, guesses)
                if g is not None
            ]
            candidate_sum = total
            best_rate = guess

        if reached < amount:
            lower_bound = guess + 1
            pools = [
                bounds if g is None else bounds.narrowed(lower_bound=g.best_guess - 1)
                for bounds, g in zip(pools, guesses)
            ]
        else:
            upper_bound = guess
            pools = [
                bounds if g is None else bounds.narrowed(upper_bound=min(g.best_guess + 1, cap))
                for bounds, g, cap in zip(pools, guesses, caps)
            ]

    if candidate is None or best_rate is None:
        return None
    logger.debug(
        "best_rate_found",
        target=target.value,
        rate=best_rate,
        pools=len(candidate),
        demand=candidate_sum.demand if candidate_sum else 0,
    )
    return RateSearchResult(trades=candidate, rate=Fraction(best_rate, denominator))


def best_rate_for_target_demand(
    pools: Sequence[PoolBounds],
    amount: int,
    lower_bound: int,
    upper_bound: int,
    denominator: int,
) -> RateSearchResult | None:
    """Best aggregate rate drawing at most ``amount`` across ``pools``.

    Args:
        pools: Pairs with their demand windows
        amount: Target demand
        lower_bound: Lowest rate numerator to try
        upper_bound: Exclusive upper rate numerator
        denominator: Rate denominator

    Returns:
        The trades at the best rate found, or None if no rate yields a trade
    """
    caps = [demand_search_cap(bounds.pair) for bounds in pools]
    return _best_rate_search(
        pools,
        amount,
        lower_bound,
        upper_bound,
        denominator,
        TradeTarget.DEMAND,
        trades_below_rate_in_demand_range,
        caps,
    )


def best_rate_for_target_supply(
    pools: Sequence[PoolBounds],
    amount: int,
    lower_bound: int,
    upper_bound: int,
    denominator: int,
) -> RateSearchResult | None:
    """Best aggregate rate paying at most ``amount`` across ``pools``."""
    caps = [required_supply_to_max_out(bounds.pair) for bounds in pools]
    return _best_rate_search(
        pools,
        amount,
        lower_bound,
        upper_bound,
        denominator,
        TradeTarget.SUPPLY,
        trades_below_rate_in_supply_range,
        caps,
    )


__all__ = [
    "trades_below_rate_in_demand_range",
    "trades_below_rate_in_supply_range",
    "demand_search_cap",
    "rate_search_upper_bound",
    "best_rate_for_target_demand",
    "best_rate_for_target_supply",
]
