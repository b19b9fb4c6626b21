"""Stepper filling: greedy top-up of a shortfall.

The best-rate search converges on a rate, not an amount, so near the top
of the combined depth it can leave the request short. The stepper closes
the gap by repeatedly committing the single cheapest next step among all
pools, each pool stepping by its share of the combined depth.

This is a greedy marginal allocator and not globally optimal. It is only
run for the last increment after the search has found the near-optimal
region, where taking the locally cheapest step is close enough.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from trade_solver.amm.pair import (
    calc_trade_fee,
    required_supply_to_max_out,
    trade_avg_rate,
    trade_for_at_least_demand,
    trade_for_target_demand,
    trade_for_target_supply,
)
from trade_solver.errors import InsufficientLiquidity, InvalidInput, InvariantViolation
from trade_solver.models.trade import AbstractTrade, Pair, PairTrade

logger = structlog.get_logger()


def _cheapest_first(
    steps: list[AbstractTrade | None], denominator: int
) -> list[tuple[int, AbstractTrade]]:
    # sorted() is stable, equal rates keep pool order
    candidates = [(i, step) for i, step in enumerate(steps) if step is not None]
    return sorted(candidates, key=lambda item: trade_avg_rate(item[1], denominator).numerator)


def _pair_trades(pairs: list[Pair], trades: list[AbstractTrade | None]) -> list[PairTrade]:
    return [
        PairTrade(pair=pair, trade=trade) for pair, trade in zip(pairs, trades) if trade is not None
    ]


def fill_to_target_demand(
    initial: Sequence[PairTrade],
    requested_amount: int,
    step_size: int,
    denominator: int,
) -> list[PairTrade] | None:
    """Top up demand until it reaches ``requested_amount``.

    Each pool steps by ``depth * step_size // total_depth`` (at least one
    unit). A step that would overshoot is replaced by an exact
    at-least-demand trade for the remainder.

    Args:
        initial: Pairs with their current trades (None for untouched pairs)
        requested_amount: Demand to reach
        step_size: Combined size of one round of steps
        denominator: Rate denominator used to rank steps

    Returns:
        New list of pairs with trades, or None if the pools run out

    Raises:
        InvalidInput: If step_size is not positive
    """
    if step_size <= 0:
        raise InvalidInput("step size should be greater than zero")

    pairs = [entry.pair for entry in initial]
    trades = [entry.trade for entry in initial]
    next_steps: list[AbstractTrade | None] = [None] * len(pairs)

    total_available = 0
    for pair in pairs:
        depth = pair.b - pair.b_min_reserve
        total_available += max(0, depth - calc_trade_fee(depth))
    if total_available <= 0:
        return None

    total_acquired = sum(trade.demand for trade in trades if trade is not None)

    while total_acquired < requested_amount:
        for i, pair in enumerate(pairs):
            if next_steps[i] is not None:
                continue
            step = max(1, max(0, pair.b - pair.b_min_reserve) * step_size // total_available)
            current = trades[i]
            next_demand = step
            if current is not None:
                # Fee kept in b counts towards the amount drawn
                next_demand += current.demand + (0 if pair.fee_paid_in_a else current.trade_fee)
            next_steps[i] = trade_for_target_demand(pair, next_demand)

        did_fill = False
        for i, step_trade in _cheapest_first(next_steps, denominator):
            current = trades[i]
            current_demand = 0 if current is None else current.demand
            addition = step_trade.demand - current_demand
            if addition <= 0:
                continue
            remaining = requested_amount - total_acquired
            if addition > remaining:
                try:
                    trade = trade_for_at_least_demand(pairs[i], remaining + current_demand)
                except InsufficientLiquidity:
                    logger.debug(
                        "stepper_exhausted", requested=requested_amount, acquired=total_acquired
                    )
                    return None
                total_acquired += trade.demand - current_demand
                trades[i] = trade
            else:
                trades[i] = step_trade
                total_acquired += addition
            next_steps[i] = None
            did_fill = True
            break

        if not did_fill:
            logger.debug("stepper_exhausted", requested=requested_amount, acquired=total_acquired)
            return None

    if total_acquired != sum(trade.demand for trade in trades if trade is not None):
        raise InvariantViolation("total acquired demand does not match the sum of trades")
    if total_acquired < requested_amount:
        raise InvariantViolation("total acquired demand is below the requested amount")

    return _pair_trades(pairs, trades)


def fill_to_target_supply(
    initial: Sequence[PairTrade],
    requested_amount: int,
    step_size: int,
    denominator: int,
) -> list[PairTrade] | None:
    """Top up supply without exceeding ``requested_amount``.

    Each pool steps by its share of the supply needed to max out all
    pools. When a step buys nothing new the pool steps by one unit of
    demand instead. The last step is truncated to the remaining supply,
    which ends the fill even if that step buys nothing.

    Returns:
        New list of pairs with trades (possibly empty when the supply
        cannot buy a single unit), or None if the pools run out
    """
    if step_size <= 0:
        raise InvalidInput("step size should be greater than zero")

    pairs = [entry.pair for entry in initial]
    trades = [entry.trade for entry in initial]
    next_steps: list[AbstractTrade | None] = [None] * len(pairs)
    max_supply = [required_supply_to_max_out(pair) for pair in pairs]

    total_available = sum(max_supply)
    if total_available == 0:
        return None

    total_acquired = sum(trade.supply for trade in trades if trade is not None)

    while total_acquired < requested_amount:
        for i, pair in enumerate(pairs):
            if next_steps[i] is not None:
                continue
            current = trades[i]
            step = max_supply[i] * step_size // total_available
            next_trade = None
            if step > 0:
                next_supply = step + (0 if current is None else current.supply)
                next_trade = trade_for_target_supply(pair, next_supply)
            if next_trade is None or (current is not None and next_trade.demand == current.demand):
                # At least one more unit of demand
                try:
                    next_trade = trade_for_at_least_demand(
                        pair, 1 + (0 if current is None else current.demand)
                    )
                except InsufficientLiquidity:
                    next_trade = None
            next_steps[i] = next_trade

        did_fill = did_end = False
        for i, step_trade in _cheapest_first(next_steps, denominator):
            current = trades[i]
            current_supply = 0 if current is None else current.supply
            addition = step_trade.supply - current_supply
            if addition <= 0:
                continue
            remaining = requested_amount - total_acquired
            if addition >= remaining:
                trade = trade_for_target_supply(pairs[i], remaining + current_supply)
                if trade is not None and (current is None or trade.supply > current.supply):
                    total_acquired += trade.supply - current_supply
                    trades[i] = trade
                did_end = True
            else:
                trades[i] = step_trade
                total_acquired += addition
            next_steps[i] = None
            did_fill = True
            break

        if did_end:
            break
        if not did_fill:
            logger.debug("stepper_exhausted", requested=requested_amount, acquired=total_acquired)
            return None

    if total_acquired != sum(trade.supply for trade in trades if trade is not None):
        raise InvariantViolation("total acquired supply does not match the sum of trades")
    if total_acquired > requested_amount:
        raise InvariantViolation("total acquired supply exceeds the requested amount")

    return _pair_trades(pairs, trades)


def _current_demand(entry: PairTrade) -> int:
    return 0 if entry.trade is None else entry.trade.demand


def _deepest_index(entries: Sequence[PairTrade], indices: Sequence[int]) -> int:
    """Index with the most demand left in ``b``, first one on ties."""
    return max(indices, key=lambda i: entries[i].pair.b - _current_demand(entries[i]))


def add_demand_to_deepest_pool(entries: Sequence[PairTrade], amount: int) -> list[PairTrade] | None:
    """Add ``amount`` of demand to the trade of the deepest pool.

    Returns:
        New list of trades, or None if that pool cannot pay the extra demand
    """
    if not entries:
        return None
    index = _deepest_index(entries, range(len(entries)))
    selected = entries[index]
    current = _current_demand(selected)
    new_demand = current + amount
    if new_demand > selected.pair.b - selected.pair.b_min_reserve:
        return None
    trade = trade_for_at_least_demand(selected.pair, new_demand)
    if trade.demand - current < amount:
        raise InvariantViolation("added demand is below the requested amount")
    result = list(entries)
    result[index] = PairTrade(pair=selected.pair, trade=trade)
    return result


def spread_demand_across_pools(entries: Sequence[PairTrade], amount: int) -> list[PairTrade] | None:
    """Add ``amount`` of demand in equal shares, deepest pools first.

    Each pool is visited at most twice.

    Returns:
        New list of trades, or None if the pools cannot absorb the amount

    Raises:
        InsufficientLiquidity: If a pool cannot pay its share above its floor
    """
    if not entries:
        return None
    result = list(entries)
    amount_per_item = amount // len(result)
    remaining = amount
    queue: list[int] = []
    for _ in range(len(result) * 2):
        if not queue:
            queue = list(range(len(result)))
        index = _deepest_index(result, queue)
        queue.remove(index)
        selected = result[index]
        current = _current_demand(selected)
        next_add = min(remaining, max(1, amount_per_item))
        new_demand = min(current + next_add, selected.pair.b - selected.pair.b_min_reserve)
        if new_demand <= current:
            return None
        trade = trade_for_at_least_demand(selected.pair, new_demand)
        added = trade.demand - current
        if added <= 0:
            raise InvariantViolation("spreading demand did not add to the trade")
        remaining -= added
        result[index] = PairTrade(pair=selected.pair, trade=trade)
        if remaining <= 0:
            return result
    return None


__all__ = [
    "fill_to_target_demand",
    "fill_to_target_supply",
    "add_demand_to_deepest_pool",
    "spread_demand_across_pools",
]
