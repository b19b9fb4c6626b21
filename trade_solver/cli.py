"""Command line entry point.

Reads pool snapshots from a JSON file, constructs a best-rate trade and
prints it as JSON. Amounts are printed as decimal strings.

Usage:
    trade-solver pools.json --supply-token BCH --demand-token <token id> \\
        --amount 100000 --rate-denominator 10000000000000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from trade_solver.balances import net_balances
from trade_solver.config import SolverConfig
from trade_solver.constants import NATIVE_TOKEN_ID, STEPPER_SIZE
from trade_solver.errors import InsufficientCapitalInPools, InsufficientFunds, InvalidInput
from trade_solver.models.pool import PoolSnapshotSet
from trade_solver.models.trade import TradeResult, TradeTarget
from trade_solver.solver import TradeSolver

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trade-solver",
        description="Construct a best-rate trade across native/token pools",
    )
    parser.add_argument("pools", type=Path, help="JSON file with a 'pools' list of snapshots")
    parser.add_argument(
        "--supply-token",
        required=True,
        help=f"Token id the trader pays with ({NATIVE_TOKEN_ID} for the native coin)",
    )
    parser.add_argument(
        "--demand-token",
        required=True,
        help=f"Token id the trader receives ({NATIVE_TOKEN_ID} for the native coin)",
    )
    parser.add_argument("--amount", type=int, required=True, help="Requested amount")
    parser.add_argument(
        "--target",
        choices=[target.value for target in TradeTarget],
        default=TradeTarget.DEMAND.value,
        help="Side of the trade --amount refers to (default: demand)",
    )
    parser.add_argument(
        "--txfee-per-byte",
        type=int,
        default=0,
        help="Transaction fee per byte, used to price each included pool (default: 0)",
    )
    parser.add_argument(
        "--rate-denominator",
        type=int,
        required=True,
        help="Fixed-point denominator of every rate",
    )
    parser.add_argument(
        "--stepper-size",
        type=int,
        default=STEPPER_SIZE,
        help=f"Increments a shortfall is split into (default: {STEPPER_SIZE})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    """Log to stderr so stdout carries only the JSON result."""
    log_level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def result_to_json(result: TradeResult) -> dict[str, Any]:
    """Serialize a trade result with amounts as decimal strings."""
    return {
        "entries": [
            {
                "pool_id": entry.pool.pool_id if entry.pool is not None else None,
                "supply_token_id": entry.supply_token_id,
                "demand_token_id": entry.demand_token_id,
                "supply": str(entry.supply),
                "demand": str(entry.demand),
                "trade_fee": str(entry.trade_fee),
            }
            for entry in result.entries
        ],
        "summary": {
            "supply": str(result.summary.supply),
            "demand": str(result.summary.demand),
            "trade_fee": str(result.summary.trade_fee),
            "rate": {
                "numerator": str(result.summary.rate.numerator),
                "denominator": str(result.summary.rate.denominator),
            },
        },
        "balances": [
            {"token_id": balance.token_id, "amount": str(balance.amount)}
            for balance in net_balances(result)
        ],
    }


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Returns:
        0 on success, 1 when the trade cannot be constructed, 2 on bad input
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if not args.pools.exists():
        logger.error("pools_file_not_found", path=str(args.pools))
        print(json.dumps({"error": f"Pools file not found: {args.pools}"}))
        return 2

    try:
        snapshot_set = PoolSnapshotSet.model_validate_json(args.pools.read_text())
        solver = TradeSolver(
            SolverConfig(rate_denominator=args.rate_denominator, stepper_size=args.stepper_size)
        )
        if args.target == TradeTarget.SUPPLY.value:
            construct = solver.construct_trade_best_rate_for_target_supply
        else:
            construct = solver.construct_trade_best_rate_for_target_demand
        result = construct(
            args.supply_token,
            args.demand_token,
            args.amount,
            snapshot_set.pools,
            args.txfee_per_byte,
        )
    except (ValidationError, InvalidInput) as e:
        logger.error("invalid_input", error=str(e))
        print(json.dumps({"error": str(e)}))
        return 2
    except (InsufficientCapitalInPools, InsufficientFunds) as e:
        logger.warning("trade_not_constructed", error=str(e), required_amount=e.required_amount)
        payload: dict[str, Any] = {"error": str(e)}
        if e.required_amount is not None:
            payload["required_amount"] = str(e.required_amount)
        print(json.dumps(payload))
        return 1

    print(json.dumps(result_to_json(result), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
