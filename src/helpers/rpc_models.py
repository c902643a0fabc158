"""Pydantic models for Verus daemon JSON-RPC requests and responses."""

from decimal import Decimal
from enum import StrEnum

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JsonRpcRequest(BaseModel):
    """JSON-RPC request model (bitcoind-style 1.0 envelope)."""

    jsonrpc: str = Field(default="1.0", description="JSON-RPC version")
    method: str = Field(..., description="Method name to call")
    params: list[Any] = Field(
        default_factory=list, description="Method parameters"
    )
    id: int | str = Field(..., description="Request ID")


class CurrencyOutput(BaseModel):
    """Single output of a sendcurrency call."""

    address: str = Field(..., description="Destination identity or address")
    amount: Decimal = Field(..., description="Amount in whole coins")

    def to_param(self) -> dict[str, Any]:
        # The daemon parses amounts as JSON numbers
        return {"address": self.address, "amount": float(self.amount)}


class OperationState(StrEnum):
    """Status values reported by z_getoperationstatus."""

    QUEUED = "queued"
    EXECUTING = "executing"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OperationResult(BaseModel):
    """Result payload of a successful operation."""

    txid: str | None = None

    model_config = ConfigDict(extra="allow")


class OperationErrorInfo(BaseModel):
    """Error payload of a failed operation."""

    code: int | None = None
    message: str | None = None


class OperationStatus(BaseModel):
    """One entry of the z_getoperationstatus result list."""

    id: str
    status: OperationState
    method: str | None = None
    creation_time: int | None = None
    result: OperationResult | None = None
    error: OperationErrorInfo | None = None

    model_config = ConfigDict(extra="allow")

    @property
    def is_pending(self) -> bool:
        return self.status in {OperationState.QUEUED, OperationState.EXECUTING}

    @property
    def txid(self) -> str | None:
        return self.result.txid if self.result else None


__all__ = [
    "CurrencyOutput",
    "JsonRpcRequest",
    "OperationErrorInfo",
    "OperationResult",
    "OperationState",
    "OperationStatus",
]
