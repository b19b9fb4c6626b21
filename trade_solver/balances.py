"""Net token balances of a constructed trade, from the trader's side."""

from __future__ import annotations

from trade_solver.models.trade import TokenBalance, TradeResult


def net_balances(result: TradeResult) -> list[TokenBalance]:
    """Aggregate per-token amounts over every entry of a trade.

    Supplied tokens count negative and demanded tokens positive. Tokens
    appear in the order they are first seen.

    Args:
        result: Constructed trade

    Returns:
        One balance per token id
    """
    totals: dict[str, int] = {}
    for entry in result.entries:
        totals[entry.supply_token_id] = totals.get(entry.supply_token_id, 0) - entry.supply
        totals[entry.demand_token_id] = totals.get(entry.demand_token_id, 0) + entry.demand
    return [TokenBalance(token_id=token_id, amount=amount) for token_id, amount in totals.items()]


__all__ = ["net_balances"]
