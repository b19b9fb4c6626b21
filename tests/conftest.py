"""Pytest configuration and fixtures."""

import pytest

from trade_solver.config import SolverConfig
from trade_solver.models.pool import PoolSnapshot
from trade_solver.models.trade import Pair
from trade_solver.solver import TradeSolver
from tests.helpers import NATIVE, RATE_DENOMINATOR, make_pool


@pytest.fixture
def rate_denominator() -> int:
    """Return the legacy rate denominator used by the reference fixtures."""
    return RATE_DENOMINATOR


@pytest.fixture
def solver(rate_denominator: int) -> TradeSolver:
    """Return a solver with default reserve floors."""
    return TradeSolver(SolverConfig(rate_denominator=rate_denominator))


@pytest.fixture
def reference_pool() -> PoolSnapshot:
    """Pool of the fixed reference trade: 11 tokens against 1_118_498_378 native."""
    return make_pool(token_amount=11, native_amount=1_118_498_378, pool_id="reference")


@pytest.fixture
def reference_pair(solver: TradeSolver, reference_pool: PoolSnapshot) -> Pair:
    """Reference pool viewed as token in, native out."""
    (pair,) = solver.prepare_pairs(reference_pool.token_id, NATIVE, [reference_pool])
    return pair


@pytest.fixture
def shallow_token_pool() -> PoolSnapshot:
    """Pool holding 14 tokens against 878_224_755 native."""
    return make_pool(token_amount=14, native_amount=878_224_755, pool_id="shallow")


@pytest.fixture
def shallow_token_pair(solver: TradeSolver, shallow_token_pool: PoolSnapshot) -> Pair:
    """Shallow pool viewed as native in, token out."""
    (pair,) = solver.prepare_pairs(NATIVE, shallow_token_pool.token_id, [shallow_token_pool])
    return pair
