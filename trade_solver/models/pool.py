"""Pydantic models for caller-supplied pool snapshots."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from trade_solver.models.types import Amount, TokenId


class PoolSnapshot(BaseModel):
    """State of one pool at the time of the request.

    A pool holds native coin on one side and a single token on the other.
    """

    model_config = ConfigDict(frozen=True)

    pool_id: str = Field(min_length=1)
    token_id: TokenId
    native_amount: Amount
    token_amount: Amount


class PoolSnapshotSet(BaseModel):
    """A list of pool snapshots, the CLI input format."""

    pools: list[PoolSnapshot] = Field(default_factory=list)
