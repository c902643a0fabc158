"""In-memory fakes and block builders shared by the cashback tests."""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

from typing import TYPE_CHECKING, Any

from src.cashback.models import Cashback
from src.helpers.rpc_models import CurrencyOutput, OperationStatus


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from src.cashback.models import NotificationEvent


CHAIN_ID = "iJhCezBExJHvtyH3fGhNnt2NhU4Ztkf2yq"
OTHER_CHAIN_ID = "iExBJfZYK7KREDpuhj6PzZBzqMAKaFg7d2"
REFERRAL_ID = "iReferra1111111111111111111111111R"
EXPLORER_URL = "https://explorer.example.org/tx/"


def make_block(
    reservations: list[dict[str, Any] | None],
    block_hash: str = "ab" * 32,
    height: int = 100,
    reservation_key: str = "identityreservation",
) -> dict[str, Any]:
    """Build a getblock (verbosity 2) result with one tx per reservation.

    ``None`` entries produce an ordinary payment transaction.
    """
    txs = []
    for index, reservation in enumerate(reservations):
        script_pub_key: dict[str, Any] = {"type": "pubkeyhash", "addresses": ["Rxyz"]}
        if reservation is not None:
            script_pub_key = {"type": "cryptocondition", reservation_key: reservation}
        txs.append({
            "txid": f"{index:064x}",
            "vout": [
                {"value": 0.0, "n": 0, "scriptPubKey": script_pub_key},
            ],
        })
    return {"hash": block_hash, "height": height, "tx": txs}


def reservation(name: str, name_id: str, referral: str | None = REFERRAL_ID) -> dict[str, Any]:
    """Decoded identity reservation as found in scriptPubKey."""
    return {
        "version": 1,
        "name": name,
        "parent": CHAIN_ID,
        "salt": "00" * 32,
        "referral": referral,
        "nameid": name_id,
    }


class FakeRPC:
    """In-memory stand-in for RPCClient with scripted chain state."""

    def __init__(self) -> None:
        self.blocks: dict[str, dict[str, Any]] = {}
        self.height = 100
        self.creation_heights: dict[str, int] = {}
        self.statuses: list[list[dict[str, Any]]] = []
        self.sent: list[list[CurrencyOutput]] = []
        self.operation_id = "opid-1234"
        self.fail_on: set[str] = set()

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_on:
            from src.helpers.rpc import RPCError

            raise RPCError(method, -1, "scripted failure")

    async def get_block(self, block_hash: str, verbosity: int = 2) -> dict[str, Any]:
        self._maybe_fail("getblock")
        return self.blocks[block_hash]

    async def get_block_count(self) -> int:
        self._maybe_fail("getblockcount")
        return self.height

    async def get_identity_history(
        self, identity: str, height_start: int = 0, height_end: int = 0
    ) -> dict[str, Any]:
        self._maybe_fail("getidentityhistory")
        return {"history": [{"height": self.creation_heights[identity]}]}

    async def send_currency(
        self, outputs: list[CurrencyOutput], from_address: str = "*"
    ) -> str:
        self._maybe_fail("sendcurrency")
        self.sent.append(outputs)
        return self.operation_id

    async def get_operation_status(self, operation_id: str) -> list[OperationStatus]:
        self._maybe_fail("z_getoperationstatus")
        raw = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return [OperationStatus.model_validate(entry) for entry in raw]

    def succeed_with(self, txid: str) -> None:
        self.statuses = [[{"id": self.operation_id, "status": "success", "result": {"txid": txid}}]]

    async def aclose(self) -> None:
        return None


class FakeScope:
    def __init__(self, row: Cashback) -> None:
        self.row = row
        self.txid: str | None = None

    @property
    def already_paid(self) -> bool:
        return self.row.txid is not None

    @property
    def pending_opid(self) -> str | None:
        return self.row.pending_opid

    async def complete(self, txid: str) -> None:
        self.txid = txid


class FakeStore:
    """CashbackStore with the same interface, backed by a dict."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], Cashback] = {}
        self.commits = 0
        self.rollbacks = 0
        self._clock = datetime(2024, 1, 1, tzinfo=UTC)

    async def store_cashback(
        self,
        currency_id: str,
        name_id: str,
        name: str,
        *,
        detected_txid: str | None = None,
        block_hash: str | None = None,
    ) -> bool:
        key = (currency_id, name_id)
        if key in self.rows:
            return False
        self._clock += timedelta(seconds=1)
        self.rows[key] = Cashback(
            currency_id=currency_id,
            name_id=name_id,
            name=name,
            detected_txid=detected_txid,
            block_hash=block_hash,
            created_at=self._clock,
        )
        return True

    async def get_pending_cashbacks(
        self, currency_id: str | None = None, max_attempts: int | None = None
    ) -> list[Cashback]:
        rows = [
            row
            for row in self.rows.values()
            if row.txid is None
            and (currency_id is None or row.currency_id == currency_id)
            and (max_attempts is None or row.attempts < max_attempts)
        ]
        return sorted(rows, key=lambda row: (row.created_at, row.name_id))

    async def get_cashbacks(
        self, currency_id: str | None = None, limit: int | None = None
    ) -> list[Cashback]:
        rows = [
            row
            for row in self.rows.values()
            if currency_id is None or row.currency_id == currency_id
        ]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return rows[:limit] if limit is not None else rows

    @asynccontextmanager
    async def payout_scope(self, cashback: Cashback) -> "AsyncIterator[FakeScope]":
        row = self.rows[cashback.currency_id, cashback.name_id]
        scope = FakeScope(row)
        try:
            yield scope
        except BaseException:
            self.rollbacks += 1
            raise
        if scope.txid is not None:
            self.rows[row.currency_id, row.name_id] = row.model_copy(
                update={"txid": scope.txid, "paid_at": self._clock, "pending_opid": None}
            )
        self.commits += 1

    async def record_failed_attempt(
        self,
        currency_id: str,
        name_id: str,
        error: str,
        pending_opid: str | None = None,
    ) -> int:
        row = self.rows[currency_id, name_id]
        updated = row.model_copy(
            update={
                "attempts": row.attempts + 1,
                "last_error": error,
                "pending_opid": pending_opid,
            }
        )
        self.rows[currency_id, name_id] = updated
        return updated.attempts


class RecordingSink:
    """EventSink that keeps every published event."""

    def __init__(self) -> None:
        self.events: "list[NotificationEvent]" = []

    def publish(self, event: "NotificationEvent") -> None:
        self.events.append(event)


async def wait_until(predicate: "Callable[[], bool]", timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds or ``timeout`` expires."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout=timeout)
