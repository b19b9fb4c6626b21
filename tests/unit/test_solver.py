"""Tests for TradeSolver, the public construction operations."""

import pytest

from trade_solver.config import SolverConfig
from trade_solver.errors import InsufficientCapitalInPools, InsufficientFunds, InvalidInput
from trade_solver.models.trade import Fraction, PoolFixedCost, PoolTrade
from trade_solver.solver import TradeSolver
from tests.helpers import (
    NATIVE,
    OTHER_TOKEN_ID,
    RATE_DENOMINATOR,
    SAMPLE_TOKEN_ID,
    make_pool,
)

RD = RATE_DENOMINATOR


def reference_entry(pool, supply=2, demand=171_561_988, trade_fee=514_685):
    return PoolTrade(
        pool=pool,
        supply_token_id=SAMPLE_TOKEN_ID,
        demand_token_id=NATIVE,
        supply=supply,
        demand=demand,
        trade_fee=trade_fee,
    )


@pytest.fixture
def deep_and_mid_pools():
    """A deep pool and one a tenth of its size at the same price."""
    return [
        make_pool(token_amount=10**9, native_amount=10**9, pool_id="deep"),
        make_pool(token_amount=10**8, native_amount=10**8, pool_id="mid"),
    ]


class TestSolverConfig:
    """Tests for SolverConfig validation."""

    def test_defaults(self):
        """Only the rate denominator must be given."""
        config = SolverConfig(rate_denominator=RD)
        assert (config.native_min_reserve, config.token_min_reserve) == (693, 1)
        assert config.stepper_size == 10
        assert config.pool_size_in_exchange_tx == 197

    @pytest.mark.parametrize("field", ["rate_denominator", "native_min_reserve", "stepper_size"])
    def test_rejects_non_positive(self, field):
        """Every setting must be a positive integer."""
        values = {"rate_denominator": RD, field: 0}
        with pytest.raises(InvalidInput, match=field):
            SolverConfig(**values)

    def test_solver_exposes_denominator(self, solver):
        """The solver reports the configured denominator."""
        assert solver.rate_denominator == RD


class TestPreparePairs:
    """Tests for prepare_pairs and the per-pool settings."""

    def test_native_demand(self, solver, reference_pool):
        """Demanding native draws from the native balance, fee stays in it."""
        (pair,) = solver.prepare_pairs(SAMPLE_TOKEN_ID, NATIVE, [reference_pool])
        assert (pair.a, pair.b) == (11, 1_118_498_378)
        assert pair.fee_paid_in_a is False
        assert (pair.a_min_reserve, pair.b_min_reserve) == (1, 693)
        assert pair.pool is reference_pool

    def test_native_supply(self, solver, shallow_token_pool):
        """Supplying native pays into the native balance, fee comes with it."""
        (pair,) = solver.prepare_pairs(NATIVE, SAMPLE_TOKEN_ID, [shallow_token_pool])
        assert (pair.a, pair.b) == (878_224_755, 14)
        assert pair.fee_paid_in_a is True
        assert (pair.a_min_reserve, pair.b_min_reserve) == (693, 1)

    def test_both_native(self, solver, reference_pool):
        """A native to native request is rejected."""
        with pytest.raises(InvalidInput):
            solver.prepare_pairs(NATIVE, NATIVE, [reference_pool])

    def test_no_native(self, solver, reference_pool):
        """A token to token request is rejected."""
        with pytest.raises(InvalidInput):
            solver.prepare_pairs(SAMPLE_TOKEN_ID, OTHER_TOKEN_ID, [reference_pool])

    def test_token_mismatch(self, solver, reference_pool):
        """Every pool must hold the requested token."""
        with pytest.raises(InvalidInput, match="holds token"):
            solver.prepare_pairs(OTHER_TOKEN_ID, NATIVE, [reference_pool])

    def test_custom_floors(self, reference_pool):
        """Reserve floors come from the configuration."""
        solver = TradeSolver(
            SolverConfig(rate_denominator=RD, native_min_reserve=1000, token_min_reserve=2)
        )
        (pair,) = solver.prepare_pairs(SAMPLE_TOKEN_ID, NATIVE, [reference_pool])
        assert (pair.a_min_reserve, pair.b_min_reserve) == (2, 1000)

    def test_pool_fixed_cost(self, solver):
        """The transaction fee of one pool lands on the native side."""
        assert solver.pool_fixed_cost(NATIVE, 2) == PoolFixedCost(demand=394)
        assert solver.pool_fixed_cost(SAMPLE_TOKEN_ID, 2) == PoolFixedCost(supply=394)
        assert solver.pool_fixed_cost(NATIVE, 0).is_zero


class TestConstructBestRateForTargetDemand:
    """Tests for construct_trade_best_rate_for_target_demand."""

    def test_single_pool(self, solver, reference_pool):
        """A single pool is filled directly."""
        result = solver.construct_trade_best_rate_for_target_demand(
            SAMPLE_TOKEN_ID, NATIVE, 171_561_988, [reference_pool], 1
        )
        assert result.entries == [reference_entry(reference_pool)]
        assert result.summary.demand == 171_561_988
        assert result.summary.supply == 2
        assert result.summary.trade_fee == 514_685
        assert result.summary.rate == Fraction(2 * RD // 171_561_988, RD)

    def test_rounds_demand_up(self, solver, reference_pool):
        """Demand is rounded up to what the whole supply units buy."""
        result = solver.construct_trade_best_rate_for_target_demand(
            SAMPLE_TOKEN_ID, NATIVE, 150_000_000, [reference_pool], 0
        )
        assert result.entries == [reference_entry(reference_pool)]

    def test_splits_without_fee(self, solver, deep_and_mid_pools):
        """Without a transaction fee both pools take part."""
        result = solver.construct_trade_best_rate_for_target_demand(
            SAMPLE_TOKEN_ID, NATIVE, 10**6, deep_and_mid_pools, 0
        )
        assert [entry.pool.pool_id for entry in result.entries] == ["deep", "mid"]
        assert result.summary.demand >= 10**6
        assert result.summary.demand == sum(entry.demand for entry in result.entries)

    def test_eliminates_with_fee(self, solver, deep_and_mid_pools):
        """A transaction fee makes the smaller pool not worth including."""
        result = solver.construct_trade_best_rate_for_target_demand(
            SAMPLE_TOKEN_ID, NATIVE, 10**6, deep_and_mid_pools, 50
        )
        assert [entry.pool.pool_id for entry in result.entries] == ["deep"]
        assert result.summary.demand >= 10**6

    def test_entries_carry_token_ids(self, solver, deep_and_mid_pools):
        """Every entry names both sides of the trade."""
        result = solver.construct_trade_best_rate_for_target_demand(
            SAMPLE_TOKEN_ID, NATIVE, 10**6, deep_and_mid_pools, 0
        )
        for entry in result.entries:
            assert entry.supply_token_id == SAMPLE_TOKEN_ID
            assert entry.demand_token_id == NATIVE

    def test_drain_to_last_unit(self, solver):
        """All but one token can be bought when native is supplied."""
        pool = make_pool(token_amount=999_999_999_999, native_amount=244_155_407_838)
        result = solver.construct_trade_best_rate_for_target_demand(
            NATIVE, SAMPLE_TOKEN_ID, 999_999_999_998, [pool], 0
        )
        assert result.summary.demand == 999_999_999_998
        assert [entry.demand for entry in result.entries] == [999_999_999_998]

    def test_not_enough_in_pools(self, solver, reference_pool):
        """Asking for more than the pool holds fails."""
        with pytest.raises(InsufficientCapitalInPools) as exc_info:
            solver.construct_trade_best_rate_for_target_demand(
                SAMPLE_TOKEN_ID, NATIVE, 2 * 10**9, [reference_pool], 0
            )
        assert exc_info.value.required_amount == 2 * 10**9

    def test_no_pools(self, solver):
        """An empty pool list has nothing to trade."""
        with pytest.raises(InsufficientCapitalInPools, match="Nothing available"):
            solver.construct_trade_best_rate_for_target_demand(
                SAMPLE_TOKEN_ID, NATIVE, 100, [], 0
            )

    def test_negative_fee(self, solver, reference_pool):
        """A negative transaction fee is rejected."""
        with pytest.raises(InvalidInput):
            solver.construct_trade_best_rate_for_target_demand(
                SAMPLE_TOKEN_ID, NATIVE, 100, [reference_pool], -1
            )

    def test_zero_amount(self, solver, reference_pool):
        """A zero amount is rejected."""
        with pytest.raises(InvalidInput):
            solver.construct_trade_best_rate_for_target_demand(
                SAMPLE_TOKEN_ID, NATIVE, 0, [reference_pool], 0
            )


class TestConstructBestRateForTargetSupply:
    """Tests for construct_trade_best_rate_for_target_supply."""

    def test_single_pool(self, solver, reference_pool):
        """Two tokens buy the reference trade."""
        result = solver.construct_trade_best_rate_for_target_supply(
            SAMPLE_TOKEN_ID, NATIVE, 2, [reference_pool], 0
        )
        assert result.entries == [reference_entry(reference_pool)]

    def test_supply_too_small(self, solver, shallow_token_pool):
        """A supply that cannot buy a single token fails."""
        with pytest.raises(InsufficientFunds):
            solver.construct_trade_best_rate_for_target_supply(
                NATIVE, SAMPLE_TOKEN_ID, 1000, [shallow_token_pool], 0
            )

    def test_supply_too_small_across_pools(self, solver):
        """A supply too small for one token fails even when a pool can be drained."""
        pools = [
            make_pool(token_amount=1, native_amount=694),
            make_pool(token_amount=43_474_477, native_amount=99_999_999_999),
        ]
        with pytest.raises(InsufficientFunds):
            solver.construct_trade_best_rate_for_target_supply(
                NATIVE, SAMPLE_TOKEN_ID, 1, pools, 0
            )

    def test_never_exceeds_supply(self, solver, deep_and_mid_pools):
        """The combined supply stays within the cap."""
        result = solver.construct_trade_best_rate_for_target_supply(
            SAMPLE_TOKEN_ID, NATIVE, 10**6, deep_and_mid_pools, 0
        )
        assert 0 < result.summary.supply <= 10**6
        assert result.summary.supply == sum(entry.supply for entry in result.entries)

    def test_no_pools(self, solver):
        """An empty pool list has nothing to trade."""
        with pytest.raises(InsufficientCapitalInPools):
            solver.construct_trade_best_rate_for_target_supply(
                SAMPLE_TOKEN_ID, NATIVE, 100, [], 0
            )


class TestConstructBelowTargetRate:
    """Tests for construct_trade_available_amount_below_target_rate."""

    def test_token_in(self, solver):
        """Token in, native out, against a larger token balance."""
        pool = make_pool(token_amount=1100, native_amount=1_118_498_378)
        result = solver.construct_trade_available_amount_below_target_rate(
            SAMPLE_TOKEN_ID, NATIVE, Fraction(100 * RD // 64_258_078, RD), [pool]
        )
        assert result is not None
        (entry,) = result.entries
        assert (entry.supply, entry.demand, entry.trade_fee) == (284, 228_831_958, 686_495)

    def test_native_in(self, solver, shallow_token_pool):
        """Native in, a single token out."""
        result = solver.construct_trade_available_amount_below_target_rate(
            NATIVE, SAMPLE_TOKEN_ID, Fraction(72_770_000 * RD, RD), [shallow_token_pool]
        )
        assert result is not None
        assert [entry.demand for entry in result.entries] == [1]

    def test_rate_too_low(self, solver, reference_pool):
        """Nothing is available below the spot rate."""
        result = solver.construct_trade_available_amount_below_target_rate(
            SAMPLE_TOKEN_ID, NATIVE, Fraction(1, RD), [reference_pool]
        )
        assert result is None

    def test_rescales_rate(self, solver, shallow_token_pool):
        """A rate with another denominator is rescaled first."""
        result = solver.construct_trade_available_amount_below_target_rate(
            NATIVE, SAMPLE_TOKEN_ID, Fraction(72_770_000, 1), [shallow_token_pool]
        )
        assert result is not None
        assert result.summary.demand == 1


class TestConstructForTargetAvgRate:
    """Tests for construct_trade_available_amount_for_target_avg_rate."""

    def test_native_in(self, solver, shallow_token_pool):
        """Native in, a single token out."""
        result = solver.construct_trade_available_amount_for_target_avg_rate(
            NATIVE, SAMPLE_TOKEN_ID, Fraction(72_516_157 * RD, RD), [shallow_token_pool]
        )
        assert result is not None
        assert [entry.demand for entry in result.entries] == [1]

    def test_token_in(self, solver, reference_pool):
        """Token in, native out, ends on the reference trade."""
        result = solver.construct_trade_available_amount_for_target_avg_rate(
            SAMPLE_TOKEN_ID, NATIVE, Fraction(RD // 84_258_078, RD), [reference_pool]
        )
        assert result is not None
        assert result.entries == [reference_entry(reference_pool)]

    def test_deepest_first(self, solver):
        """Entries are ordered by demand, largest first."""
        pools = [
            make_pool(token_amount=10**6, native_amount=10**8, pool_id="small"),
            make_pool(token_amount=10**7, native_amount=10**9, pool_id="large"),
        ]
        result = solver.construct_trade_available_amount_for_target_avg_rate(
            SAMPLE_TOKEN_ID, NATIVE, Fraction(RD // 90, RD), pools
        )
        assert result is not None
        assert [entry.pool.pool_id for entry in result.entries] == ["large", "small"]

    def test_rate_too_low(self, solver, reference_pool):
        """No trade fits a rate below the spot rate."""
        result = solver.construct_trade_available_amount_for_target_avg_rate(
            SAMPLE_TOKEN_ID, NATIVE, Fraction(1, RD), [reference_pool]
        )
        assert result is None


class TestReconstructByReducingSupply:
    """Tests for reconstruct_trade_by_reducing_supply."""

    def test_reduce_one_unit(self, solver, reference_pool):
        """Shaving one token re-solves the trade for the lower supply."""
        result = solver.reconstruct_trade_by_reducing_supply([reference_entry(reference_pool)], 1)
        assert result == [reference_entry(reference_pool, 1, 92_929_410, 278_788)]

    def test_reduce_everything(self, solver, reference_pool):
        """A reduction covering the whole trade drops it."""
        result = solver.reconstruct_trade_by_reducing_supply([reference_entry(reference_pool)], 2)
        assert result == []

    def test_drops_smallest_first(self, solver):
        """The smallest trade that fits the reduction is dropped."""
        large = reference_entry(None, supply=5, demand=500, trade_fee=1)
        small = reference_entry(None, supply=3, demand=300, trade_fee=1)
        assert solver.reconstruct_trade_by_reducing_supply([small, large], 3) == [large]

    def test_zero_reduction(self, solver):
        """Nothing changes besides the ordering."""
        large = reference_entry(None, supply=5, demand=500, trade_fee=1)
        small = reference_entry(None, supply=3, demand=300, trade_fee=1)
        assert solver.reconstruct_trade_by_reducing_supply([small, large], 0) == [large, small]

    def test_negative_reduction(self, solver, reference_pool):
        """A negative reduction is rejected."""
        with pytest.raises(InvalidInput):
            solver.reconstruct_trade_by_reducing_supply([reference_entry(reference_pool)], -1)

    def test_missing_pool(self, solver):
        """Re-solving needs the pool snapshot."""
        entry = reference_entry(None, supply=5, demand=500, trade_fee=1)
        with pytest.raises(InvalidInput):
            solver.reconstruct_trade_by_reducing_supply([entry], 1)
