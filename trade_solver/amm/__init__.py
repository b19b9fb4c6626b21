"""Single-pair constant product math."""

from trade_solver.amm.pair import (
    calc_trade_fee,
    pair_rate,
    rate_with_kb,
    required_supply_to_max_out,
    sum_trades,
    trade_avg_rate,
    trade_for_at_least_demand,
    trade_for_target_demand,
    trade_for_target_supply,
    trade_summary,
)
from trade_solver.amm.rate_search import (
    amount_at_target_rate,
    amount_below_target_rate,
    marginal_rate_at,
    trade_at_target_avg_rate,
    trade_in_supply_range_at_target_rate,
)

__all__ = [
    # Pair solver
    "calc_trade_fee",
    "trade_for_target_demand",
    "trade_for_at_least_demand",
    "trade_for_target_supply",
    "required_supply_to_max_out",
    # Rates
    "rate_with_kb",
    "pair_rate",
    "trade_avg_rate",
    "sum_trades",
    "trade_summary",
    # Rate search
    "marginal_rate_at",
    "amount_at_target_rate",
    "amount_below_target_rate",
    "trade_at_target_avg_rate",
    "trade_in_supply_range_at_target_rate",
]
