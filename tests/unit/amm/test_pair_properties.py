"""Property tests for the pair solver: invariant, monotonicity and duality."""

import hypothesis.strategies as st
from hypothesis import assume, given, settings

from trade_solver.amm.pair import (
    trade_for_target_demand,
    trade_for_target_supply,
)
from tests.helpers import make_pair

balances = st.integers(min_value=10**3, max_value=10**15)


@st.composite
def pairs(draw):
    return make_pair(a=draw(balances), b=draw(balances), fee_paid_in_a=draw(st.booleans()))


@st.composite
def pair_and_demand(draw):
    pair = draw(pairs())
    demand = draw(st.integers(min_value=1, max_value=pair.b - pair.b_min_reserve))
    return pair, demand


class TestTradeInvariant:
    """Every solved trade keeps K and is the tightest integer point."""

    @settings(max_examples=300, deadline=None)
    @given(pair_and_demand())
    def test_target_demand_keeps_k(self, case):
        """K holds net of the fee, and one unit less on either balance breaks it."""
        pair, demand = case
        trade = trade_for_target_demand(pair, demand)
        assume(trade is not None)
        a1 = pair.a + trade.supply
        b1 = pair.b - trade.demand
        assert a1 * b1 >= pair.k
        if pair.fee_paid_in_a:
            assert (a1 - trade.trade_fee) * b1 >= pair.k
            assert (a1 - 1 - trade.trade_fee) * b1 < pair.k
            assert (a1 - trade.trade_fee) * (b1 - 1) < pair.k
        else:
            assert a1 * (b1 - trade.trade_fee) >= pair.k
            assert (a1 - 1) * (b1 - trade.trade_fee) < pair.k
            assert a1 * (b1 - 1 - trade.trade_fee) < pair.k
        assert b1 >= pair.b_min_reserve

    @settings(max_examples=200, deadline=None)
    @given(pairs())
    def test_drain_to_floor(self, pair):
        """Asking for the whole depth stops at the floor and keeps K."""
        trade = trade_for_target_demand(pair, pair.b - pair.b_min_reserve)
        assume(trade is not None)
        b1 = pair.b - trade.demand
        assert b1 >= pair.b_min_reserve
        assert (pair.a + trade.supply) * b1 >= pair.k

    @settings(max_examples=300, deadline=None)
    @given(pairs(), st.integers(min_value=1, max_value=10**15))
    def test_target_supply_within_amount(self, pair, supply):
        """A supply-targeted trade never pays more than asked."""
        trade = trade_for_target_supply(pair, supply)
        assume(trade is not None)
        assert trade.supply <= supply
        assert (pair.a + trade.supply) * (pair.b - trade.demand) >= pair.k


class TestMonotonicity:
    """Larger requests never cost less."""

    @settings(max_examples=200, deadline=None)
    @given(pair_and_demand(), st.integers(min_value=1, max_value=10**6))
    def test_supply_non_decreasing_in_demand(self, case, extra):
        """Supply does not drop as demand grows."""
        pair, demand = case
        smaller = trade_for_target_demand(pair, demand)
        larger = trade_for_target_demand(pair, demand + extra)
        assume(smaller is not None and larger is not None)
        assert larger.supply >= smaller.supply

    @settings(max_examples=200, deadline=None)
    @given(pairs(), st.integers(min_value=1, max_value=10**9), st.integers(1, 10**6))
    def test_demand_non_decreasing_in_supply(self, pair, supply, extra):
        """Demand does not drop as supply grows."""
        smaller = trade_for_target_supply(pair, supply)
        larger = trade_for_target_supply(pair, supply + extra)
        assume(smaller is not None and larger is not None)
        assert larger.demand >= smaller.demand


class TestDuality:
    """Solving by demand then by supply gets at least the same demand back."""

    @settings(max_examples=300, deadline=None)
    @given(pair_and_demand())
    def test_round_trip(self, case):
        """Paying the solved supply buys at least the solved demand."""
        pair, demand = case
        trade = trade_for_target_demand(pair, demand)
        assume(trade is not None)
        dual = trade_for_target_supply(pair, trade.supply)
        assert dual is not None
        assert dual.demand >= trade.demand
