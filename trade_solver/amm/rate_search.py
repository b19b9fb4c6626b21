"""Rate-targeted bisection within a single pair.

All searches bisect a half-open range ``lower_bound <= result < upper_bound``
on the amount axis.

The marginal rate at an amount is read from two integer points on the
curve: the tightest point ``(a2, b2)`` for that amount and its neighbour
``(a1, b1)`` one unit closer to the current state. Integer rounding makes
the local slope jump at unit boundaries, so the rate is clamped:

    rate = min(rate(b2), max(tip_rate, rate(b1)))

where ``tip_rate`` is the slope between the two points and ``rate(b)`` is
the spot rate ``K / b**2``. The clamp keeps the rate monotonic in the
amount, which is what makes the bisection converge.
"""

from __future__ import annotations

import structlog

from trade_solver.amm.pair import (
    rate_with_kb,
    trade_avg_rate,
    trade_for_target_demand,
    trade_for_target_supply,
)
from trade_solver.constants import MAX_ROUNDING_CORRECTION_ITERATIONS
from trade_solver.errors import InvariantViolation
from trade_solver.models.trade import AbstractTrade, AmountGuess, Fraction, Pair
from trade_solver.safe_int import S, ceil_div

logger = structlog.get_logger()


def _neighbour_point(pair: Pair, k: int, a2: int, b2: int) -> tuple[int, int]:
    """Point one unit back from ``(a2, b2)``, stepping along the cheaper axis."""
    if a2 - pair.a > pair.b - b2:
        b1 = b2 + 1
        a1 = ceil_div(k, b1)
    else:
        a1 = a2 - 1
        b1 = ceil_div(k, a1)
    return a1, b1


def _tip_rate(a1: int, b1: int, a2: int, b2: int, denominator: int) -> int:
    # b1 > b2 holds for any neighbour of a tightest point
    return ((S(a2) - a1) * denominator // (S(b1) - b2)).value


def _clamped_rate(k: int, a1: int, b1: int, a2: int, b2: int, denominator: int) -> int:
    tip_rate = _tip_rate(a1, b1, a2, b2, denominator)
    rate_b1 = rate_with_kb(k, b1, denominator)
    rate_b2 = rate_with_kb(k, b2, denominator)
    return min(rate_b2, max(tip_rate, rate_b1))


def marginal_rate_at(pair: Pair, amount: int, denominator: int) -> int | None:
    """Clamped marginal rate of drawing ``amount`` from ``b``.

    Returns:
        The rate numerator over ``denominator``, or None when no unit can be
        drawn at that amount without crossing the reserve floor
    """
    if amount <= 0 or not pair.is_tradable:
        return None
    k = pair.k
    pre_b2 = pair.b - amount
    if pre_b2 < pair.b_min_reserve:
        return None
    a2 = ceil_div(k, pre_b2)
    b2 = ceil_div(k, a2)
    if b2 < pair.b_min_reserve:
        return None
    a1, b1 = _neighbour_point(pair, k, a2, b2)
    return _clamped_rate(k, a1, b1, a2, b2, denominator)


def amount_at_target_rate(
    pair: Pair, target_rate: Fraction, lower_bound: int, upper_bound: int
) -> int | None:
    """Largest amount in ``[lower_bound, upper_bound)`` whose marginal rate is within target.

    Amounts past the reserve floor count as above target.

    Returns:
        The amount, or None if even ``lower_bound`` is above target
    """
    best_guess = None
    while lower_bound < upper_bound:
        guess = lower_bound + (upper_bound - lower_bound) // 2
        rate = marginal_rate_at(pair, guess, target_rate.denominator)
        if rate is None or rate > target_rate.numerator:
            upper_bound = guess
        else:
            lower_bound = guess + 1
            best_guess = guess
    return best_guess


def amount_below_target_rate(
    pair: Pair, target_rate: Fraction, lower_bound: int, upper_bound: int
) -> int | None:
    """Like :func:`amount_at_target_rate`, with the tip rate strictly below target.

    After the bisection the result is walked back one tightest point at a
    time while the tip rate at it still reaches the target.

    Raises:
        InvariantViolation: If the walk does not settle within
            MAX_ROUNDING_CORRECTION_ITERATIONS steps
    """
    best_guess = amount_at_target_rate(pair, target_rate, lower_bound, upper_bound)
    if best_guess is None:
        return None

    k = pair.k
    denominator = target_rate.denominator
    for _ in range(MAX_ROUNDING_CORRECTION_ITERATIONS + 1):
        a2 = ceil_div(k, pair.b - best_guess)
        b2 = ceil_div(k, a2)
        if b2 < pair.b_min_reserve:
            logger.error("rounding_walk_below_floor", a=pair.a, b=pair.b, guess=best_guess, b2=b2)
            raise InvariantViolation("b2 below min reserve while correcting rounding")
        a1, b1 = _neighbour_point(pair, k, a2, b2)
        if _tip_rate(a1, b1, a2, b2, denominator) < target_rate.numerator:
            return best_guess
        next_guess = pair.b - b1
        if next_guess < lower_bound or next_guess <= 0:
            return None
        if next_guess >= best_guess:
            logger.error("rounding_walk_stalled", a=pair.a, b=pair.b, guess=best_guess)
            raise InvariantViolation(f"next_guess >= best_guess, {next_guess} >= {best_guess}")
        best_guess = next_guess

    logger.error("rounding_walk_diverged", a=pair.a, b=pair.b, target=target_rate.numerator)
    raise InvariantViolation(
        f"Failed to fix the rounding error in {MAX_ROUNDING_CORRECTION_ITERATIONS} steps"
    )


def trade_at_target_avg_rate(
    pair: Pair, target_rate: Fraction, lower_bound: int, upper_bound: int
) -> AbstractTrade | None:
    """Largest demand trade in range whose average rate is within target."""
    trade = None
    while lower_bound < upper_bound:
        guess = lower_bound + (upper_bound - lower_bound) // 2
        guess_trade = trade_for_target_demand(pair, guess)
        if guess_trade is None:
            upper_bound = guess
            continue
        if trade_avg_rate(guess_trade, target_rate.denominator).numerator > target_rate.numerator:
            upper_bound = guess
        else:
            lower_bound = guess + 1
            trade = guess_trade
    return trade


def trade_in_supply_range_at_target_rate(
    pair: Pair, target_rate: Fraction, lower_bound: int, upper_bound: int
) -> AmountGuess | None:
    """Largest supply in range whose trade ends at a marginal rate within target.

    Supplies too small to buy a unit move the lower bound up.
    """
    k = pair.k
    best: AmountGuess | None = None
    while lower_bound < upper_bound:
        guess = lower_bound + (upper_bound - lower_bound) // 2
        trade = trade_for_target_supply(pair, guess)
        if trade is None:
            lower_bound = guess + 1
            continue
        b2 = pair.b - trade.demand
        if b2 < pair.b_min_reserve:
            logger.error("supply_trade_below_floor", a=pair.a, b=pair.b, supply=guess, b2=b2)
            raise InvariantViolation("b2 below min reserve in supply range search")
        a2 = ceil_div(k, b2)
        a1, b1 = _neighbour_point(pair, k, a2, b2)
        if _clamped_rate(k, a1, b1, a2, b2, target_rate.denominator) > target_rate.numerator:
            upper_bound = guess
        else:
            lower_bound = guess + 1
            best = AmountGuess(best_guess=guess, trade=trade)
    return best


__all__ = [
    "marginal_rate_at",
    "amount_at_target_rate",
    "amount_below_target_rate",
    "trade_at_target_avg_rate",
    "trade_in_supply_range_at_target_rate",
]
