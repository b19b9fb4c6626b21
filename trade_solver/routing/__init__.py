"""Multi-pool routing: rate search, stepper filling and pool elimination."""

from trade_solver.routing.best_rate import (
    best_rate_for_target_demand,
    best_rate_for_target_supply,
    rate_search_upper_bound,
)
from trade_solver.routing.eliminator import (
    best_rate_with_elimination,
    eliminate_net_negative_pools,
    eliminate_pools_below_min_transfer,
)
from trade_solver.routing.stepper import (
    add_demand_to_deepest_pool,
    fill_to_target_demand,
    fill_to_target_supply,
    spread_demand_across_pools,
)

__all__ = [
    # Best rate search
    "best_rate_for_target_demand",
    "best_rate_for_target_supply",
    "rate_search_upper_bound",
    # Stepper
    "fill_to_target_demand",
    "fill_to_target_supply",
    "add_demand_to_deepest_pool",
    "spread_demand_across_pools",
    # Elimination
    "eliminate_net_negative_pools",
    "eliminate_pools_below_min_transfer",
    "best_rate_with_elimination",
]
