"""Trade construction for constant product native/token pools."""

from trade_solver.config import SolverConfig
from trade_solver.errors import (
    InsufficientCapitalInPools,
    InsufficientFunds,
    InsufficientLiquidity,
    InvalidInput,
    InvariantViolation,
    NotApplicable,
    TradeSolverError,
)
from trade_solver.solver import TradeSolver

__version__ = "0.1.0"
__all__ = [
    "TradeSolver",
    "SolverConfig",
    "TradeSolverError",
    "InvalidInput",
    "InvariantViolation",
    "NotApplicable",
    "InsufficientCapitalInPools",
    "InsufficientFunds",
    "InsufficientLiquidity",
    "__version__",
]
