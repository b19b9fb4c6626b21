"""Constant product pair solver.

A pool is viewed as a pair ``(a, b)`` where the trader pays into ``a`` and
draws from ``b``. Every solve keeps ``a1 * b1 >= K`` at the tightest integer
point, rounding in the pool's favor, and moves the 0.3% fee into whichever
side carries it.

The fee is charged on the net amount moved, so the fee is itself part of
the amount subject to fee. Both fee helpers correct for that with a short
bounded search.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from trade_solver.constants import (
    MAX_FEE_CORRECTION_ITERATIONS,
    TRADE_FEE_DENOMINATOR,
    TRADE_FEE_NUMERATOR,
)
from trade_solver.errors import InsufficientLiquidity, InvalidInput, InvariantViolation
from trade_solver.models.trade import AbstractTrade, Fraction, Pair, TradeSummary
from trade_solver.safe_int import S, ceil_div

logger = structlog.get_logger()


def calc_trade_fee(amount: int) -> int:
    """Pool fee on a net amount moved through the pool."""
    return amount * TRADE_FEE_NUMERATOR // TRADE_FEE_DENOMINATOR


def include_fee_for_target(target: int, initial: int) -> int:
    """Inflate an incoming balance so that, net of its fee, it reaches ``target``.

    Returns the smallest ``x`` with ``x - fee(x - initial) >= target``. Each
    step adds the fee on the previous increment, and once that fee is down
    to a single unit the whole remaining shortfall is added at once.

    Args:
        target: Balance the pool must hold after the fee is taken out
        initial: Balance before the trade

    Raises:
        InvariantViolation: If the shortfall corrections do not converge
    """
    x1 = target
    x2 = target + calc_trade_fee(target - initial)
    attempts = 0
    while True:
        shortfall = target - (x2 - calc_trade_fee(x2 - initial))
        if shortfall <= 0:
            return x2
        more_fee = calc_trade_fee(x2 - x1)
        if more_fee <= 1:
            attempts += 1
            if attempts > MAX_FEE_CORRECTION_ITERATIONS:
                logger.error("fee_correction_diverged", target=target, initial=initial, value=x2)
                raise InvariantViolation(
                    f"Fee inclusion did not converge after {MAX_FEE_CORRECTION_ITERATIONS} steps"
                )
        # Net balance grows by at most one per unit added, so the shortfall
        # never steps past the smallest solution
        x1, x2 = x2, x2 + max(more_fee, shortfall)


def leave_fee_in_pool_for_target(target: int, initial: int) -> tuple[int, int]:
    """Raise an outgoing balance so the fee on the amount drawn stays in the pool.

    Solves ``x = target + fee(initial - x)`` in closed form,
    ``x = (target * 1000 + initial * 3) // 1003``, then checks the estimate
    and its successor.

    Args:
        target: Balance the pool would hold without the fee
        initial: Balance before the trade

    Returns:
        Tuple of (balance after the trade, fee kept in the pool)

    Raises:
        InvariantViolation: If neither candidate satisfies the fee equation
    """
    estimate = (target * TRADE_FEE_DENOMINATOR + initial * TRADE_FEE_NUMERATOR) // (
        TRADE_FEE_DENOMINATOR + TRADE_FEE_NUMERATOR
    )
    for threshold, candidate in ((0, estimate + 1), (1, estimate)):
        reserved_fee = candidate - target
        trade_fee = calc_trade_fee(initial - candidate)
        diff = trade_fee - reserved_fee
        if 0 <= diff <= threshold:
            return candidate + diff, trade_fee
    logger.error("leave_fee_failed", target=target, initial=initial, estimate=estimate)
    raise InvariantViolation("Failed to leave the trade fee in the pool")


def leave_fee_in_pool_for_min_target(target: int, initial: int) -> tuple[int, int]:
    """Lower an outgoing balance so that the trader still receives ``initial - target``.

    Dual of :func:`leave_fee_in_pool_for_target` for "at least" requests: the
    fee on the requested demand is carved out of the remaining balance.

    Returns:
        Tuple of (balance before the fee is added back, fee on the demand)

    Raises:
        InvariantViolation: If neither candidate satisfies the fee equation
    """
    estimate = (
        target * (TRADE_FEE_DENOMINATOR + TRADE_FEE_NUMERATOR) - initial * TRADE_FEE_NUMERATOR
    ) // TRADE_FEE_DENOMINATOR
    trade_fee = calc_trade_fee(initial - target)
    for threshold, candidate in ((0, estimate + 1), (1, estimate)):
        reserved_fee = target - candidate
        diff = reserved_fee - trade_fee
        if 0 <= diff <= threshold:
            return candidate - diff, trade_fee
    logger.error("leave_fee_min_target_failed", target=target, initial=initial, estimate=estimate)
    raise InvariantViolation("Failed to reserve the trade fee for a minimum target")


def _check_trade_invariant(pair: Pair, pair_a_1: int, pair_b_1: int, trade_fee: int) -> None:
    """Verify the post-trade state is the tightest integer solution.

    Raises:
        InvariantViolation: On the first violated condition
    """
    k = pair.k
    reason: str | None = None
    if pair_b_1 > pair.b:
        reason = "pair_b_1 > b"
    elif pair_a_1 * pair_b_1 < k:
        reason = "a1 * b1 < K"
    elif pair.fee_paid_in_a:
        if (pair_a_1 - trade_fee) * pair_b_1 < k:
            reason = "(a1 - fee) * b1 < K"
        elif (pair_a_1 - 1 - trade_fee) * pair_b_1 >= k:
            reason = "(a1 - 1 - fee) * b1 >= K"
        elif (pair_a_1 - trade_fee) * (pair_b_1 - 1) >= k:
            reason = "(a1 - fee) * (b1 - 1) >= K"
    else:
        if pair_a_1 * (pair_b_1 - trade_fee) < k:
            reason = "a1 * (b1 - fee) < K"
        elif (pair_a_1 - 1) * (pair_b_1 - trade_fee) >= k:
            reason = "(a1 - 1) * (b1 - fee) >= K"
        elif pair_a_1 * (pair_b_1 - 1 - trade_fee) >= k:
            reason = "a1 * (b1 - 1 - fee) >= K"

    if reason is None:
        if pair_a_1 < pair.a_min_reserve:
            reason = "a1 below min reserve"
        elif pair_b_1 < pair.b_min_reserve:
            reason = "b1 below min reserve"
        elif pair_a_1 <= pair.a:
            reason = "a1 <= a"
        elif pair.b <= pair_b_1:
            reason = "b <= b1"

    if reason is not None:
        logger.error(
            "trade_invariant_violated",
            reason=reason,
            a=pair.a,
            b=pair.b,
            fee_paid_in_a=pair.fee_paid_in_a,
            pair_a_1=pair_a_1,
            pair_b_1=pair_b_1,
            trade_fee=trade_fee,
        )
        raise InvariantViolation(f"Trade invariant violated: {reason}")


def _tightest_point(k: int, b1: int) -> tuple[int, int]:
    """Smallest ``a1`` with ``a1 * b1 >= K`` and the smallest ``b1`` it allows."""
    a1 = S(k).ceiling_div(b1)
    return a1.value, S(k).ceiling_div(a1).value


def trade_for_target_demand(pair: Pair, amount: int) -> AbstractTrade | None:
    """Minimal supply that draws ``amount`` from ``b``, or as close as the floor allows.

    The demand is clamped to the reserve floor, so the returned trade can
    draw less than ``amount`` near the bottom of the pool. It can also draw
    more, since the tightest integer point rarely lands on ``amount``.

    Args:
        pair: The pair to trade against
        amount: Requested demand

    Returns:
        The trade, or None when the pair cannot pay anything above its floors
    """
    if amount <= 0 or not pair.is_tradable:
        return None

    pre_b1 = max(pair.b_min_reserve, pair.b - amount)
    a1, b1 = _tightest_point(pair.k, pre_b1)
    if b1 > pre_b1:
        logger.error("tightest_point_above_target", a=pair.a, b=pair.b, pre_b1=pre_b1, b1=b1)
        raise InvariantViolation(f"b1 > pre_b1, {b1} > {pre_b1}")

    if pair.fee_paid_in_a:
        pair_a_1 = include_fee_for_target(a1, pair.a)
        pair_b_1 = b1
        trade_fee = calc_trade_fee(pair_a_1 - pair.a)
    else:
        pair_a_1 = a1
        pair_b_1, trade_fee = leave_fee_in_pool_for_target(b1, pair.b)

    # Rounding at the floor can push the tightest point under it
    if pair_b_1 < pair.b_min_reserve or pair_a_1 < pair.a_min_reserve:
        return None

    _check_trade_invariant(pair, pair_a_1, pair_b_1, trade_fee)
    supply = pair_a_1 - pair.a
    demand = pair.b - pair_b_1
    if demand > 0 and supply > 0:
        return AbstractTrade(demand=demand, supply=supply, trade_fee=trade_fee)
    return None


def trade_for_at_least_demand(pair: Pair, amount: int) -> AbstractTrade:
    """Minimal supply that draws at least ``amount`` net of fees.

    Unlike :func:`trade_for_target_demand` this never undershoots: when the
    fee is paid in ``b`` it is carved out on top of the requested demand.

    Raises:
        InvalidInput: If amount is not positive
        InsufficientLiquidity: If the pool cannot pay ``amount`` above its floor
    """
    if amount <= 0:
        raise InvalidInput(f"Demand must be positive, got {amount}")
    if not pair.is_tradable or pair.b - amount < pair.b_min_reserve:
        raise InsufficientLiquidity(
            "Not enough amount in the pool for the required demand", required_amount=amount
        )

    k = pair.k
    if pair.fee_paid_in_a:
        pre_b1 = pair.b - amount
        a1, b1 = _tightest_point(k, pre_b1)
        if b1 > pre_b1:
            logger.error("tightest_point_above_target", a=pair.a, b=pair.b, pre_b1=pre_b1, b1=b1)
            raise InvariantViolation(f"b1 > pre_b1, {b1} > {pre_b1}")
        if b1 < pair.b_min_reserve:
            raise InsufficientLiquidity(
                "Not enough amount in the pool for the required demand", required_amount=amount
            )
        pair_a_1 = include_fee_for_target(a1, pair.a)
        pair_b_1 = b1
        trade_fee = calc_trade_fee(pair_a_1 - pair.a)
    else:
        target = pair.b - amount
        # The fee on the demand must fit in what remains
        if calc_trade_fee(amount) >= target:
            raise InsufficientLiquidity(
                "Not enough amount in the pool for the trade fee", required_amount=amount
            )
        pre_b1, _ = leave_fee_in_pool_for_min_target(target, pair.b)
        if pre_b1 <= 0:
            raise InsufficientLiquidity(
                "Not enough amount in the pool for the trade fee", required_amount=amount
            )
        a1, b1 = _tightest_point(k, pre_b1)
        pair_a_1 = a1
        pair_b_1, trade_fee = leave_fee_in_pool_for_target(b1, pair.b)
        if pair_b_1 < pair.b_min_reserve:
            raise InsufficientLiquidity(
                "Not enough amount in the pool for the required demand", required_amount=amount
            )
        if pair.b - pair_b_1 < amount:
            logger.error("at_least_demand_short", b=pair.b, pair_b_1=pair_b_1, amount=amount)
            raise InvariantViolation(f"b - b1 < amount, {pair.b} - {pair_b_1} < {amount}")

    if pair_a_1 < pair.a_min_reserve:
        raise InsufficientLiquidity(
            "Supply side stays under its reserve floor", required_amount=amount
        )

    _check_trade_invariant(pair, pair_a_1, pair_b_1, trade_fee)
    supply = pair_a_1 - pair.a
    demand = pair.b - pair_b_1
    if demand < amount:
        raise InsufficientLiquidity(
            "Not enough amount in the pool for the required demand", required_amount=amount
        )
    return AbstractTrade(demand=demand, supply=supply, trade_fee=trade_fee)


def trade_for_target_supply(pair: Pair, amount: int) -> AbstractTrade | None:
    """Maximal demand obtainable by paying at most ``amount`` into ``a``.

    Returns:
        The trade, or None if ``amount`` cannot buy a single unit above the floor

    Raises:
        InvariantViolation: If the solved supply exceeds ``amount``
    """
    if amount <= 0 or not pair.is_tradable:
        return None

    k = pair.k
    if pair.fee_paid_in_a:
        pre_a1 = pair.a + amount - calc_trade_fee(amount)
        b1 = ceil_div(k, pre_a1)
        a1 = ceil_div(k, b1)
        if a1 <= pair.a or b1 >= pair.b or b1 < pair.b_min_reserve:
            return None
        pair_a_1 = include_fee_for_target(a1, pair.a)
        pair_b_1 = b1
        trade_fee = calc_trade_fee(pair_a_1 - pair.a)
    else:
        pre_a1 = pair.a + amount
        pre_b1 = max(pair.b_min_reserve, ceil_div(k, pre_a1))
        a1, b1 = _tightest_point(k, pre_b1)
        pair_a_1 = a1
        pair_b_1, trade_fee = leave_fee_in_pool_for_target(b1, pair.b)
        if pair.b - pair_b_1 <= 0 or pair_b_1 < pair.b_min_reserve:
            return None

    if pair_a_1 < pair.a_min_reserve:
        return None

    _check_trade_invariant(pair, pair_a_1, pair_b_1, trade_fee)
    supply = pair_a_1 - pair.a
    demand = pair.b - pair_b_1
    if supply > amount:
        logger.error("supply_exceeds_amount", a=pair.a, b=pair.b, amount=amount, supply=supply)
        raise InvariantViolation(f"Solved supply {supply} exceeds amount {amount}")
    if demand > 0 and supply > 0:
        return AbstractTrade(demand=demand, supply=supply, trade_fee=trade_fee)
    return None


def required_supply_to_max_out(pair: Pair) -> int:
    """Supply needed to drain ``b`` down to its floor (fee not included)."""
    if not pair.is_tradable:
        return 0
    a1 = ceil_div(pair.k, pair.b_min_reserve)
    if a1 <= pair.a:
        logger.error("max_out_not_above_a", a=pair.a, b=pair.b, a1=a1)
        raise InvariantViolation(f"a1 <= a while maxing out, a1={a1}, a={pair.a}")
    return a1 - pair.a


def rate_with_kb(k: int, b: int, denominator: int) -> int:
    """Spot rate ``K / b**2`` scaled by ``denominator``."""
    return (S(k) * denominator // (S(b) * b)).value


def pair_rate(pair: Pair, denominator: int) -> Fraction:
    """Spot rate of a pair, supply units per demand unit."""
    return Fraction(rate_with_kb(pair.k, pair.b, denominator), denominator)


def trade_avg_rate(trade: AbstractTrade, denominator: int) -> Fraction:
    """Average rate of a completed trade."""
    return Fraction((S(trade.supply) * denominator // trade.demand).value, denominator)


def sum_trades(trades: Iterable[AbstractTrade]) -> AbstractTrade | None:
    """Sum a list of trades, or None when either side sums to zero."""
    demand = supply = trade_fee = 0
    for trade in trades:
        demand += trade.demand
        supply += trade.supply
        trade_fee += trade.trade_fee
    if demand > 0 and supply > 0:
        return AbstractTrade(demand=demand, supply=supply, trade_fee=trade_fee)
    return None


def trade_summary(trades: Iterable[AbstractTrade], denominator: int) -> TradeSummary | None:
    """Aggregate trades with their average rate."""
    total = sum_trades(trades)
    if total is None:
        return None
    return TradeSummary(
        demand=total.demand,
        supply=total.supply,
        trade_fee=total.trade_fee,
        rate=trade_avg_rate(total, denominator),
    )


__all__ = [
    "calc_trade_fee",
    "include_fee_for_target",
    "leave_fee_in_pool_for_target",
    "leave_fee_in_pool_for_min_target",
    "trade_for_target_demand",
    "trade_for_at_least_demand",
    "trade_for_target_supply",
    "required_supply_to_max_out",
    "rate_with_kb",
    "pair_rate",
    "trade_avg_rate",
    "sum_trades",
    "trade_summary",
]
