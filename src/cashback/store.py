"""Persistence of pending cashbacks."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime

from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.cashback.db import CashbackDB
from src.cashback.models import Cashback
from src.helpers.db import get_session_factory


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def to_cashback(row: CashbackDB) -> Cashback:
    """Convert a database row into its pydantic model."""
    return Cashback(
        currency_id=row.currency_id,
        name_id=row.name_id,
        name=row.name_str,
        txid=row.txid,
        detected_txid=row.detected_txid,
        block_hash=row.block_hash,
        attempts=row.attempts,
        last_error=row.last_error,
        pending_opid=row.pending_opid,
        created_at=row.created_at,
        paid_at=row.paid_at,
    )


class PayoutScope:
    """Open transaction around a single payout.

    The cashback row is locked for the lifetime of the scope. Nothing is
    written until ``complete`` is called and the scope exits cleanly, so a
    crash or error between submitting the transfer and recording its txid
    leaves the row unresolved.
    """

    def __init__(self, session: "AsyncSession", row: CashbackDB) -> None:
        self.session = session
        self.row = row

    @property
    def already_paid(self) -> bool:
        return self.row.txid is not None

    @property
    def pending_opid(self) -> str | None:
        """Operation left unsettled by an earlier timed-out pass."""
        return self.row.pending_opid

    async def complete(self, txid: str) -> None:
        """Record the payout txid; committed when the scope exits."""
        await self.session.execute(
            update(CashbackDB)
            .where(
                CashbackDB.currency_id == self.row.currency_id,
                CashbackDB.name_id == self.row.name_id,
                CashbackDB.txid.is_(None),
            )
            .values(
                txid=txid,
                paid_at=datetime.now(UTC),
                last_error=None,
                pending_opid=None,
            )
        )


class CashbackStore:
    """Cashback table access shared by all chain workers.

    Every method opens its own session from the pooled factory, so workers
    for different chains can use one store concurrently.
    """

    def __init__(
        self, session_factory: "async_sessionmaker[AsyncSession] | None" = None
    ) -> None:
        self._session_factory = session_factory or get_session_factory()

    async def store_cashback(
        self,
        currency_id: str,
        name_id: str,
        name: str,
        *,
        detected_txid: str | None = None,
        block_hash: str | None = None,
    ) -> bool:
        """Insert a new unresolved cashback.

        Uses INSERT ... ON CONFLICT DO NOTHING on (currency_id, name_id), so
        seeing the same registration twice is harmless.

        Returns:
            bool: True if a row was inserted, False if it already existed
        """
        stmt = (
            pg_insert(CashbackDB)
            .values(
                currency_id=currency_id,
                name_id=name_id,
                name_str=name,
                detected_txid=detected_txid,
                block_hash=block_hash,
            )
            .on_conflict_do_nothing(index_elements=["currency_id", "name_id"])
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return result.rowcount == 1

    async def get_pending_cashbacks(
        self,
        currency_id: str | None = None,
        max_attempts: int | None = None,
    ) -> list[Cashback]:
        """Fetch unresolved cashbacks, oldest first.

        Args:
            currency_id: Restrict to one chain (None returns every chain)
            max_attempts: Skip rows that already failed this many times

        Returns:
            list[Cashback]: Rows with no payout txid in insertion order
        """
        stmt = select(CashbackDB).where(CashbackDB.txid.is_(None))
        if currency_id is not None:
            stmt = stmt.where(CashbackDB.currency_id == currency_id)
        if max_attempts is not None:
            stmt = stmt.where(CashbackDB.attempts < max_attempts)
        stmt = stmt.order_by(CashbackDB.created_at, CashbackDB.name_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [to_cashback(row) for row in result.scalars()]

    async def get_cashbacks(
        self, currency_id: str | None = None, limit: int | None = None
    ) -> list[Cashback]:
        """Fetch cashbacks of any state, newest first."""
        stmt = select(CashbackDB)
        if currency_id is not None:
            stmt = stmt.where(CashbackDB.currency_id == currency_id)
        stmt = stmt.order_by(CashbackDB.created_at.desc(), CashbackDB.name_id)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [to_cashback(row) for row in result.scalars()]

    @asynccontextmanager
    async def payout_scope(self, cashback: Cashback) -> "AsyncIterator[PayoutScope]":
        """Open a transaction that locks the cashback row for payout.

        Commits on normal exit, rolls back if the block raises.

        Raises:
            LookupError: If the row does not exist
        """
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(CashbackDB)
                .where(
                    CashbackDB.currency_id == cashback.currency_id,
                    CashbackDB.name_id == cashback.name_id,
                )
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                msg = f"Cashback {cashback.currency_id}/{cashback.name_id} not found"
                raise LookupError(msg)
            yield PayoutScope(session, row)

    async def record_failed_attempt(
        self,
        currency_id: str,
        name_id: str,
        error: str,
        pending_opid: str | None = None,
    ) -> int:
        """Count a failed payout operation against a cashback.

        Args:
            currency_id: Chain of the cashback
            name_id: Identity the cashback belongs to
            error: Failure reason stored as last_error
            pending_opid: Operation that may still settle (a timeout), or None
                once the last operation is known to have failed

        Returns:
            int: Attempt count after the increment
        """
        stmt = (
            update(CashbackDB)
            .where(
                CashbackDB.currency_id == currency_id,
                CashbackDB.name_id == name_id,
            )
            .values(
                attempts=CashbackDB.attempts + 1,
                last_error=error,
                pending_opid=pending_opid,
            )
            .returning(CashbackDB.attempts)
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                attempts = result.scalar_one()
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return attempts


__all__ = [
    "CashbackStore",
    "PayoutScope",
    "to_cashback",
]
