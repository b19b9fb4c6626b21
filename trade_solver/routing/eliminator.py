"""Elimination of pools whose fixed inclusion cost outweighs their benefit.

Every pool in the final transaction costs a fixed amount of transaction
fee. Shallow pools in a best-rate solution can cost more than they save.

Pools are ranked by how much netting one fixed cost into their own trade
worsens its rate. The search then looks for the split point ``k`` such
that keeping the first ``k`` ranked pools, re-solving the request over
them, gives the best rate once the fixed costs of the dropped pools are
credited back.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

import structlog

from trade_solver.amm.pair import required_supply_to_max_out, sum_trades
from trade_solver.errors import NotApplicable
from trade_solver.models.trade import (
    AbstractTrade,
    EliminationResult,
    PairTrade,
    PoolBounds,
    PoolFixedCost,
    RateSearchResult,
    TradeTarget,
)
from trade_solver.routing.best_rate import best_rate_for_target_demand, best_rate_for_target_supply
from trade_solver.routing.stepper import fill_to_target_demand, fill_to_target_supply

logger = structlog.get_logger()

SearchFn = Callable[[Sequence[PoolBounds], int, int, int, int], RateSearchResult | None]
FillFn = Callable[[Sequence[PairTrade], int, int, int], list[PairTrade] | None]


def _strategy(target: TradeTarget) -> tuple[SearchFn, FillFn]:
    if target is TradeTarget.DEMAND:
        return best_rate_for_target_demand, fill_to_target_demand
    return best_rate_for_target_supply, fill_to_target_supply


def eliminate_pools_below_min_transfer(
    fixed_cost: PoolFixedCost, entries: Sequence[PairTrade]
) -> list[PairTrade]:
    """Drop trades that do not move more than one pool's fixed cost.

    Returns the entries unchanged when there is no fixed cost.
    """
    if fixed_cost.supply <= 0 and fixed_cost.demand <= 0:
        return list(entries)
    return [
        entry
        for entry in entries
        if entry.trade is not None
        and entry.trade.demand > fixed_cost.demand
        and entry.trade.supply > fixed_cost.supply
    ]


class _Side(str, Enum):
    """Side of the best split a pending range lies on."""

    LEFT = "left"
    RIGHT = "right"


@dataclass
class _SplitRange:
    """Pending half-open range of split points, on one side of the best split."""

    side: _Side
    lower: int
    upper: int


def eliminate_net_negative_pools(
    fixed_cost: PoolFixedCost,
    entries: Sequence[PairTrade],
    amount: int,
    rate_lower_bound: int,
    rate_upper_bound: int,
    denominator: int,
    target: TradeTarget,
) -> EliminationResult:
    """Find the subset of pools with the best rate once fixed costs are counted.

    Args:
        fixed_cost: Cost of including one pool
        entries: Pairs with the trades of a best-rate solution
        amount: Requested amount on the ``target`` side
        rate_lower_bound: Lowest rate numerator to re-solve from
        rate_upper_bound: Exclusive upper rate numerator
        denominator: Rate denominator
        target: Side of the trade the request caps

    Returns:
        The kept pools, their re-solved trades and the split point

    Raises:
        NotApplicable: If there is no fixed cost, no pool can carry one,
            or no split improves on keeping every pool
    """
    if fixed_cost.is_zero:
        raise NotApplicable("No fixed cost to optimize")

    search, fill = _strategy(target)

    def rate_change_with_fixed_cost(trade: AbstractTrade) -> int | None:
        if trade.demand - fixed_cost.demand <= 0:
            return None
        with_cost = (trade.supply + fixed_cost.supply) * denominator // (
            trade.demand - fixed_cost.demand
        )
        return with_cost - trade.supply * denominator // trade.demand

    ranked: list[tuple[int, PairTrade, AbstractTrade]] = []
    for entry in entries:
        if entry.trade is None:
            continue
        change = rate_change_with_fixed_cost(entry.trade)
        if change is not None:
            ranked.append((change, entry, entry.trade))
    ranked.sort(key=lambda item: item[0])

    pools = [
        PoolBounds(
            pair=entry.pair,
            lower_bound=target.amount_of(trade),
            upper_bound=(
                entry.pair.b - entry.pair.b_min_reserve
                if target is TradeTarget.DEMAND
                else required_supply_to_max_out(entry.pair)
            ),
        )
        for _, entry, trade in ranked
    ]
    entries_sum = sum_trades(trade for _, _, trade in ranked)
    if not pools or entries_sum is None:
        raise NotApplicable("No pool can carry its fixed cost")

    entries_avg_rate = entries_sum.supply * denominator // entries_sum.demand

    def evaluate(split: int) -> tuple[RateSearchResult, int] | None:
        """Re-solve over the first ``split`` pools and credit the dropped ones."""
        dropped = len(pools) - split
        result = search(pools[:split], amount, rate_lower_bound, rate_upper_bound, denominator)
        if result is None:
            return None
        total = sum_trades(entry.trade for entry in result.trades if entry.trade is not None)
        if total is not None and target.amount_of(total) < amount:
            filled = fill(result.trades, amount, amount - target.amount_of(total), denominator)
            if not filled:
                return None
            result = RateSearchResult(trades=filled, rate=result.rate)
            total = sum_trades(entry.trade for entry in filled if entry.trade is not None)
        if total is None:
            return None
        rate_with_benefit = (total.supply - fixed_cost.supply * dropped) * denominator // (
            total.demand + fixed_cost.demand * dropped
        )
        return result, rate_with_benefit

    def make_candidate(
        split: int, result: RateSearchResult, rate_with_benefit: int
    ) -> EliminationResult:
        return EliminationResult(
            keep=[PairTrade(pair=entry.pair, trade=trade) for _, entry, trade in ranked[:split]],
            trades=result.trades,
            rate=result.rate,
            rate_with_benefit=rate_with_benefit,
            split_index=split,
        )

    # First candidate: bisect for any split that beats keeping every pool
    candidate: EliminationResult | None = None
    lower, upper = 1, len(pools)
    while lower < upper:
        guess = lower + (upper - lower) // 2
        evaluated = evaluate(guess)
        if evaluated is not None and evaluated[1] < entries_avg_rate:
            candidate = make_candidate(guess, *evaluated)
            break
        lower = guess + 1

    if candidate is None:
        logger.debug("elimination_no_candidate", pools=len(pools), target=target.value)
        raise NotApplicable("No split improves the rate")

    # Refine on both sides of the best split found so far
    queue: deque[_SplitRange] = deque(
        [
            _SplitRange(_Side.LEFT, 1, candidate.split_index),
            _SplitRange(_Side.RIGHT, candidate.split_index, len(pools)),
        ]
    )
    while queue:
        bound = queue.popleft()
        guess = bound.lower + (bound.upper - bound.lower) // 2
        evaluated = evaluate(guess)
        if evaluated is not None and evaluated[1] < candidate.rate_with_benefit:
            candidate = make_candidate(guess, *evaluated)
            remaining: deque[_SplitRange] = deque()
            for other in queue:
                if other.side is _Side.LEFT:
                    other.upper = guess
                else:
                    other.lower = guess
                if other.lower < other.upper:
                    remaining.append(other)
            queue = remaining
            if bound.side is _Side.LEFT:
                bound.lower = guess + 1
            else:
                bound.upper = guess
            if bound.lower < bound.upper:
                queue.append(bound)
        else:
            if candidate.split_index < guess:
                pending = _SplitRange(_Side.RIGHT, candidate.split_index, guess)
            else:
                pending = _SplitRange(_Side.LEFT, guess + 1, candidate.split_index)
            if pending.lower < pending.upper:
                queue.append(pending)

    logger.debug(
        "pools_eliminated",
        kept=candidate.split_index,
        dropped=len(pools) - candidate.split_index,
        rate_with_benefit=candidate.rate_with_benefit,
    )
    return candidate


def best_rate_with_elimination(
    pools: Sequence[PoolBounds],
    amount: int,
    rate_lower_bound: int,
    rate_upper_bound: int,
    fixed_cost: PoolFixedCost,
    denominator: int,
    target: TradeTarget,
) -> RateSearchResult | None:
    """Best-rate search, stepper top-up, then elimination of net-negative pools.

    A demand request that the top-up cannot complete yields None. A supply
    request keeps the search result, since spending less than the cap is
    allowed.
    """
    search, fill = _strategy(target)
    result = search(pools, amount, rate_lower_bound, rate_upper_bound, denominator)
    if result is None:
        return None
    total = sum_trades(entry.trade for entry in result.trades if entry.trade is not None)
    if total is None:
        return None

    # Elimination re-solves from the searched rate even after a top-up
    searched_rate = result.rate.numerator if result.rate is not None else rate_lower_bound
    reached = target.amount_of(total)
    if reached < amount:
        filled = fill(result.trades, amount, amount - reached, denominator)
        if filled:
            result = RateSearchResult(trades=filled, rate=None)
        elif target is TradeTarget.DEMAND:
            return None

    try:
        eliminated = eliminate_net_negative_pools(
            fixed_cost, result.trades, amount, searched_rate, rate_upper_bound, denominator, target
        )
    except NotApplicable:
        logger.debug("elimination_skipped", target=target.value)
        return result
    return RateSearchResult(trades=eliminated.trades, rate=eliminated.rate)


__all__ = [
    "eliminate_pools_below_min_transfer",
    "eliminate_net_negative_pools",
    "best_rate_with_elimination",
]
