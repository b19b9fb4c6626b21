"""Trade construction over a set of native/token pools.

TradeSolver turns pool snapshots into pairs for one trade direction and
composes the pair solver, the rate searches, the stepper and the
eliminator into the public construction operations.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

import structlog

from trade_solver.amm.pair import (
    required_supply_to_max_out,
    trade_for_target_demand,
    trade_for_target_supply,
    trade_summary,
)
from trade_solver.amm.rate_search import amount_at_target_rate, trade_at_target_avg_rate
from trade_solver.config import SolverConfig
from trade_solver.constants import NATIVE_TOKEN_ID
from trade_solver.errors import (
    InsufficientCapitalInPools,
    InsufficientFunds,
    InvalidInput,
    InvariantViolation,
    NotApplicable,
)
from trade_solver.models.pool import PoolSnapshot
from trade_solver.models.trade import (
    AbstractTrade,
    Fraction,
    Pair,
    PairTrade,
    PoolBounds,
    PoolFixedCost,
    PoolTrade,
    RateSearchResult,
    TradeResult,
    TradeTarget,
)
from trade_solver.routing.best_rate import (
    best_rate_for_target_demand,
    best_rate_for_target_supply,
    demand_search_cap,
    rate_search_upper_bound,
)
from trade_solver.routing.eliminator import eliminate_net_negative_pools
from trade_solver.routing.stepper import fill_to_target_demand, fill_to_target_supply

logger = structlog.get_logger()


class TradeSolver:
    """Constructs trades against constant product pools.

    The solver holds no state besides its configuration; every call works
    on the snapshots it is given.

    Example:
        solver = TradeSolver(SolverConfig(rate_denominator=10**13))
        result = solver.construct_trade_best_rate_for_target_demand(
            token_id, NATIVE_TOKEN_ID, 100_000_000, pools, txfee_per_byte=1
        )
    """

    def __init__(self, config: SolverConfig) -> None:
        self.config = config

    @property
    def rate_denominator(self) -> int:
        return self.config.rate_denominator

    def min_reserve(self, token_id: str) -> int:
        """Reserve floor a pool keeps for ``token_id``."""
        if token_id == NATIVE_TOKEN_ID:
            return self.config.native_min_reserve
        return self.config.token_min_reserve

    def pool_fixed_cost(self, demand_token_id: str, txfee_per_byte: int) -> PoolFixedCost:
        """Fee for one more pool in the exchange transaction.

        The transaction fee is paid in native coin, so it lands on the
        native side of the trade.
        """
        cost = self.config.pool_size_in_exchange_tx * txfee_per_byte
        if demand_token_id == NATIVE_TOKEN_ID:
            return PoolFixedCost(supply=0, demand=cost)
        return PoolFixedCost(supply=cost, demand=0)

    def prepare_pairs(
        self, supply_token_id: str, demand_token_id: str, pools: Sequence[PoolSnapshot]
    ) -> list[Pair]:
        """Validate a native/token request and view each pool as a pair.

        Raises:
            InvalidInput: If the request is not native/token or a pool holds
                another token
        """
        if (supply_token_id == NATIVE_TOKEN_ID) == (demand_token_id == NATIVE_TOKEN_ID):
            raise InvalidInput(
                f"Exactly one of supply/demand token should be {NATIVE_TOKEN_ID}, "
                f"got supply={supply_token_id}, demand={demand_token_id}"
            )
        token_id = demand_token_id if supply_token_id == NATIVE_TOKEN_ID else supply_token_id
        for pool in pools:
            if pool.token_id != token_id:
                raise InvalidInput(
                    f"Pool {pool.pool_id} holds token {pool.token_id}, expected {token_id}"
                )

        a_min_reserve = self.min_reserve(supply_token_id)
        b_min_reserve = self.min_reserve(demand_token_id)
        pairs = []
        for pool in pools:
            if demand_token_id == NATIVE_TOKEN_ID:
                a, b, fee_paid_in_a = pool.token_amount, pool.native_amount, False
            else:
                a, b, fee_paid_in_a = pool.native_amount, pool.token_amount, True
            pairs.append(
                Pair(
                    a=a,
                    b=b,
                    fee_paid_in_a=fee_paid_in_a,
                    a_min_reserve=a_min_reserve,
                    b_min_reserve=b_min_reserve,
                    pool=pool,
                )
            )
        return pairs

    def construct_trade_best_rate_for_target_demand(
        self,
        supply_token_id: str,
        demand_token_id: str,
        amount: int,
        pools: Sequence[PoolSnapshot],
        txfee_per_byte: int,
    ) -> TradeResult:
        """Demand at least ``amount`` at the best rate.

        The rate accounts for the transaction fee each included pool adds.

        Raises:
            InvalidInput: On a bad request
            InsufficientCapitalInPools: If the pools cannot supply ``amount``
        """
        return self._construct_best_rate(
            TradeTarget.DEMAND, supply_token_id, demand_token_id, amount, pools, txfee_per_byte
        )

    def construct_trade_best_rate_for_target_supply(
        self,
        supply_token_id: str,
        demand_token_id: str,
        amount: int,
        pools: Sequence[PoolSnapshot],
        txfee_per_byte: int,
    ) -> TradeResult:
        """Supply at most ``amount`` at the best rate.

        Raises:
            InvalidInput: On a bad request
            InsufficientFunds: If ``amount`` cannot buy a single unit
            InsufficientCapitalInPools: If the pools have nothing to trade
        """
        return self._construct_best_rate(
            TradeTarget.SUPPLY, supply_token_id, demand_token_id, amount, pools, txfee_per_byte
        )

    def _construct_best_rate(
        self,
        target: TradeTarget,
        supply_token_id: str,
        demand_token_id: str,
        amount: int,
        pools: Sequence[PoolSnapshot],
        txfee_per_byte: int,
    ) -> TradeResult:
        pairs = self.prepare_pairs(supply_token_id, demand_token_id, pools)
        if txfee_per_byte < 0:
            raise InvalidInput("txfee_per_byte should be greater than or equal to zero")
        if amount <= 0:
            raise InvalidInput("amount should be greater than zero")
        if not pairs:
            raise InsufficientCapitalInPools("Nothing available to trade.", required_amount=amount)

        denominator = self.rate_denominator
        stepper_size = self.config.stepper_size
        fixed_cost = self.pool_fixed_cost(demand_token_id, txfee_per_byte)
        if target is TradeTarget.DEMAND:
            search, fill = best_rate_for_target_demand, fill_to_target_demand
        else:
            search, fill = best_rate_for_target_supply, fill_to_target_supply

        rate_lower_bound = 1
        rate_upper_bound = rate_search_upper_bound(pairs, denominator)
        candidate: RateSearchResult | None = None

        if len(pairs) > 1:
            bounds = [
                PoolBounds(
                    pair=pair,
                    lower_bound=1,
                    upper_bound=(
                        demand_search_cap(pair)
                        if target is TradeTarget.DEMAND
                        else required_supply_to_max_out(pair)
                    ),
                )
                for pair in pairs
            ]
            result = search(bounds, amount, rate_lower_bound, rate_upper_bound, denominator)
            if result is not None:
                if result.rate is not None:
                    rate_lower_bound = result.rate.numerator
                reached = target.amount_of(self._summarize(result.trades))
                if reached < amount:
                    step_size = max(1, (amount - reached) // stepper_size)
                    filled = fill(result.trades, amount, step_size, denominator)
                    if filled is not None:
                        self._require_trades(filled, amount)
                        candidate = RateSearchResult(trades=filled, rate=None)
                else:
                    candidate = result

        if candidate is not None and len(candidate.trades) > 1 and txfee_per_byte > 0:
            try:
                eliminated = eliminate_net_negative_pools(
                    fixed_cost,
                    candidate.trades,
                    amount,
                    rate_lower_bound,
                    rate_upper_bound,
                    denominator,
                    target,
                )
                candidate = RateSearchResult(trades=eliminated.trades, rate=eliminated.rate)
            except NotApplicable:
                logger.debug(
                    "elimination_skipped", target=target.value, pools=len(candidate.trades)
                )

        if candidate is None:
            logger.debug("stepper_fallback", target=target.value, pools=len(pairs))
            filled = fill(
                [PairTrade(pair=pair) for pair in pairs],
                amount,
                max(1, amount // stepper_size),
                denominator,
            )
            if filled is not None:
                self._require_trades(filled, amount)
                candidate = RateSearchResult(trades=filled, rate=None)

        if candidate is None:
            raise InsufficientCapitalInPools(
                "Not enough tokens available in input pools.", required_amount=amount
            )

        summary = trade_summary(
            (entry.trade for entry in candidate.trades if entry.trade is not None), denominator
        )
        if summary is None:
            raise InvariantViolation("Constructed trade has an empty summary")
        entries = [
            PoolTrade(
                pool=entry.pair.pool,
                supply_token_id=supply_token_id,
                demand_token_id=demand_token_id,
                supply=entry.trade.supply,
                demand=entry.trade.demand,
                trade_fee=entry.trade.trade_fee,
            )
            for entry in candidate.trades
            if entry.trade is not None
        ]
        logger.info(
            "trade_constructed",
            target=target.value,
            amount=amount,
            pools=len(entries),
            demand=summary.demand,
            supply=summary.supply,
        )
        return TradeResult(entries=entries, summary=summary)

    def _summarize(self, trades: Sequence[PairTrade]) -> AbstractTrade:
        summary = trade_summary(
            (entry.trade for entry in trades if entry.trade is not None), self.rate_denominator
        )
        if summary is None:
            raise InvariantViolation("Search result has an empty summary")
        return AbstractTrade(
            demand=summary.demand, supply=summary.supply, trade_fee=summary.trade_fee
        )

    @staticmethod
    def _require_trades(trades: Sequence[PairTrade], amount: int) -> None:
        if not trades:
            raise InsufficientFunds(
                "Can't acquire any token with the given target supply.", required_amount=amount
            )

    def construct_trade_available_amount_below_target_rate(
        self,
        supply_token_id: str,
        demand_token_id: str,
        rate: Fraction,
        pools: Sequence[PoolSnapshot],
    ) -> TradeResult | None:
        """Demand as much as possible while the marginal rate stays within ``rate``.

        Each pool is searched on its own. Entries are ordered by demand,
        deepest first.

        Returns:
            The trade, or None if no pool has anything at or below ``rate``
        """
        target_rate = rate.to_denominator(self.rate_denominator)
        entries = []
        for pair in self.prepare_pairs(supply_token_id, demand_token_id, pools):
            best_guess = amount_at_target_rate(pair, target_rate, 1, demand_search_cap(pair))
            trade = None if best_guess is None else trade_for_target_demand(pair, best_guess)
            if trade is not None:
                entries.append(self._pool_trade(pair, trade, supply_token_id, demand_token_id))
        return self._per_pool_result(entries)

    def construct_trade_available_amount_for_target_avg_rate(
        self,
        supply_token_id: str,
        demand_token_id: str,
        rate: Fraction,
        pools: Sequence[PoolSnapshot],
    ) -> TradeResult | None:
        """Demand as much as possible while each pool's average rate stays within ``rate``."""
        target_rate = rate.to_denominator(self.rate_denominator)
        entries = []
        for pair in self.prepare_pairs(supply_token_id, demand_token_id, pools):
            trade = trade_at_target_avg_rate(pair, target_rate, 1, demand_search_cap(pair))
            if trade is not None:
                entries.append(self._pool_trade(pair, trade, supply_token_id, demand_token_id))
        return self._per_pool_result(entries)

    @staticmethod
    def _pool_trade(
        pair: Pair, trade: AbstractTrade, supply_token_id: str, demand_token_id: str
    ) -> PoolTrade:
        return PoolTrade(
            pool=pair.pool,
            supply_token_id=supply_token_id,
            demand_token_id=demand_token_id,
            supply=trade.supply,
            demand=trade.demand,
            trade_fee=trade.trade_fee,
        )

    def _per_pool_result(self, entries: list[PoolTrade]) -> TradeResult | None:
        if not entries:
            return None
        # Deepest first; sorted() keeps pool order among equal demands
        entries = sorted(entries, key=lambda entry: entry.demand, reverse=True)
        summary = trade_summary(
            (AbstractTrade(e.demand, e.supply, e.trade_fee) for e in entries),
            self.rate_denominator,
        )
        if summary is None:
            raise InvariantViolation("Per-pool trades have an empty summary")
        return TradeResult(entries=entries, summary=summary)

    def _pair_for_pool_trade(self, pool_trade: PoolTrade) -> Pair:
        """Rebuild the pair a pool trade was solved against."""
        pool = pool_trade.pool
        if pool is None:
            raise InvalidInput("Pool trade has no pool snapshot to re-solve against")
        supply_native = pool_trade.supply_token_id == NATIVE_TOKEN_ID
        return Pair(
            a=pool.native_amount if supply_native else pool.token_amount,
            b=pool.token_amount if supply_native else pool.native_amount,
            fee_paid_in_a=supply_native,
            a_min_reserve=self.min_reserve(pool_trade.supply_token_id),
            b_min_reserve=self.min_reserve(pool_trade.demand_token_id),
            pool=pool,
        )

    def reconstruct_trade_by_reducing_supply(
        self, pool_trades: Sequence[PoolTrade], reduce_supply: int
    ) -> list[PoolTrade]:
        """Reduce the total supply of constructed trades by ``reduce_supply``.

        The smallest trades that fit entirely in the reduction are dropped
        first. The rest is shaved off the remaining trades in equal shares,
        re-solving each one for its lower supply. The result can reduce
        slightly more than asked.

        Args:
            pool_trades: Trades from a previous construction
            reduce_supply: Supply to remove

        Returns:
            New list of trades, largest supply first

        Raises:
            InvalidInput: If reduce_supply is negative or a trade lacks its pool
        """
        if reduce_supply < 0:
            raise InvalidInput("reduce_supply should be greater than or equal to zero")
        trades = sorted(pool_trades, key=lambda entry: entry.supply, reverse=True)
        if not trades:
            return []

        reduce_per_pool = max(1, reduce_supply // len(trades))
        reduced = 0
        while trades and reduced < reduce_supply and trades[-1].supply <= reduce_supply - reduced:
            reduced += trades.pop().supply

        index = 0
        while index < len(trades) and reduced < reduce_supply:
            pool_trade = trades[index]
            if pool_trade.supply <= reduce_per_pool:
                del trades[index]
                reduced += pool_trade.supply
            else:
                pair = self._pair_for_pool_trade(pool_trade)
                new_trade = trade_for_target_supply(pair, pool_trade.supply - reduce_per_pool)
                if new_trade is None:
                    del trades[index]
                    reduced += pool_trade.supply
                else:
                    reduced += pool_trade.supply - new_trade.supply
                    trades[index] = replace(
                        pool_trade,
                        supply=new_trade.supply,
                        demand=new_trade.demand,
                        trade_fee=new_trade.trade_fee,
                    )
                    index += 1
            if index >= len(trades):
                index = 0

        logger.debug("trade_supply_reduced", requested=reduce_supply, reduced=reduced)
        return trades


__all__ = ["TradeSolver"]
