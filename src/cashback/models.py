"""Pydantic models for the cashback pipeline."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from src.helpers.constants import NETWORK_FEE_DEDUCTION


class ChainConfig(BaseModel):
    """Settings for one monitored PBaaS chain, loaded from its TOML file."""

    currency_id: str = Field(..., description="i-address of the chain currency")
    referral_currency_id: str = Field(
        ..., description="Identity whose use as referral triggers a cashback"
    )
    rpc_user: str
    rpc_password: SecretStr
    rpc_port: int
    rpc_host: str = "127.0.0.1"
    zmq_block_hash_url: str = Field(..., description="ZMQ endpoint publishing hashblock")
    explorer_url: str = Field(..., description="Transaction URL prefix, txid is appended")
    fee: int = Field(..., gt=0, description="Referrer share before deduction, in sats")
    referral_amount: int = Field(..., gt=0, description="Total cashback, in sats")
    discord_channel_id: int | None = None
    name: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("rpc_port", mode="before")
    @classmethod
    def _port_from_string(cls, value: object) -> object:
        # Ports arrive as strings when overridden from the environment
        if isinstance(value, str):
            return int(value.strip())
        return value

    @property
    def rpc_url(self) -> str:
        return f"http://{self.rpc_host}:{self.rpc_port}"

    @property
    def label(self) -> str:
        return self.name or self.currency_id

    @property
    def new_identity_amount(self) -> int:
        """Sats paid to the newly registered identity."""
        return self.referral_amount - self.fee

    @property
    def referrer_amount(self) -> int:
        """Sats paid to the referral identity."""
        return self.fee - NETWORK_FEE_DEDUCTION

    def economics_problems(self) -> list[str]:
        problems = []
        if self.fee <= NETWORK_FEE_DEDUCTION:
            problems.append(f"fee {self.fee} does not exceed {NETWORK_FEE_DEDUCTION}")
        if self.referral_amount <= self.fee:
            problems.append(
                f"referral_amount {self.referral_amount} does not exceed fee {self.fee}"
            )
        return problems


class Cashback(BaseModel):
    """A detected referral registration and its payout state."""

    currency_id: str
    name_id: str
    name: str
    txid: str | None = None
    detected_txid: str | None = None
    block_hash: str | None = None
    attempts: int = 0
    last_error: str | None = None
    pending_opid: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_resolved(self) -> bool:
        return self.txid is not None


class Referral(BaseModel):
    """Identity reservation found in a block that names our referral identity."""

    name_id: str
    name: str
    txid: str | None = None


class BlockEvent(BaseModel):
    """New block announced on a chain's block feed."""

    currency_id: str
    block_hash: str

    model_config = ConfigDict(frozen=True)


class CashbackInitiated(BaseModel):
    """A referral registration was detected and recorded."""

    currency_id: str
    name: str
    name_id: str

    model_config = ConfigDict(frozen=True)


class CashbackProcessed(BaseModel):
    """The payout for a cashback was confirmed by the daemon."""

    currency_id: str
    name: str
    name_id: str
    explorer_link: str

    model_config = ConfigDict(frozen=True)


NotificationEvent = CashbackInitiated | CashbackProcessed


__all__ = [
    "BlockEvent",
    "Cashback",
    "CashbackInitiated",
    "CashbackProcessed",
    "ChainConfig",
    "NotificationEvent",
    "Referral",
]
