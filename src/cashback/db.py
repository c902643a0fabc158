"""Database models for cashbacks."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.helpers.db import Base


class CashbackDB(Base):
    """Detected referral registration awaiting or having received its payout."""

    __tablename__ = "cashbacks"

    currency_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name_str: Mapped[str] = mapped_column(String(255), nullable=False)
    txid: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )  # Payout transaction, set once
    detected_txid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    block_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )  # Failed payout operations
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    pending_opid: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )  # Timed-out operation, checked before resending
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (Index("ix_cashbacks_pending", "currency_id", "txid", "created_at"),)
