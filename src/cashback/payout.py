"""Confirmation gating and payout of pending cashbacks."""

import logging

from typing import TYPE_CHECKING

from src.cashback.errors import OperationError, OperationFailedError, OperationTimeoutError
from src.cashback.models import CashbackProcessed
from src.cashback.poller import OperationPoller
from src.helpers.constants import DEFAULT_CONFIRMATIONS, DEFAULT_MAX_PAYOUT_ATTEMPTS
from src.helpers.logging import chain_logger, get_logger
from src.helpers.parsers import parse_creation_height, sats_to_coins
from src.helpers.rpc_models import CurrencyOutput


if TYPE_CHECKING:
    from src.cashback.models import Cashback, ChainConfig
    from src.cashback.notifier import EventSink
    from src.cashback.store import CashbackStore
    from src.helpers.rpc import RPCClient


class PayoutFinalizer:
    """Pay out matured cashbacks for one chain.

    Pending rows are visited oldest first. The first row that has not yet
    reached the required confirmation depth ends the pass, so younger
    registrations are never paid ahead of older ones.
    """

    def __init__(
        self,
        config: "ChainConfig",
        rpc: "RPCClient",
        store: "CashbackStore",
        sink: "EventSink",
        *,
        poller: OperationPoller | None = None,
        confirmations: int = DEFAULT_CONFIRMATIONS,
        max_attempts: int = DEFAULT_MAX_PAYOUT_ATTEMPTS,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.config = config
        self.rpc = rpc
        self.store = store
        self.sink = sink
        self.confirmations = confirmations
        self.max_attempts = max_attempts
        self.logger = chain_logger(logger or get_logger(__name__), config.label)
        self.poller = poller or OperationPoller(rpc, logger=self.logger)
        self.payouts_sent = 0

    def build_outputs(self, cashback: "Cashback") -> list[CurrencyOutput]:
        """Split the reward between the new identity and the referrer."""
        return [
            CurrencyOutput(
                address=cashback.name_id,
                amount=sats_to_coins(self.config.new_identity_amount),
            ),
            CurrencyOutput(
                address=self.config.referral_currency_id,
                amount=sats_to_coins(self.config.referrer_amount),
            ),
        ]

    def explorer_link(self, txid: str) -> str:
        return f"{self.config.explorer_url}{txid}"

    async def is_mature(self, cashback: "Cashback") -> bool:
        """Check whether a registration has enough confirmations."""
        history = await self.rpc.get_identity_history(cashback.name_id)
        creation_height = parse_creation_height(history)
        current_height = await self.rpc.get_block_count()
        depth = current_height - creation_height
        if depth < self.confirmations:
            self.logger.debug(
                "%s@ has %s/%s confirmations",
                cashback.name,
                depth,
                self.confirmations,
            )
            return False
        return True

    async def process_pending(self) -> int:
        """Run one payout pass over this chain's unresolved cashbacks.

        Returns:
            int: Number of cashbacks paid in this pass

        Raises:
            RPCError, httpx.HTTPError, SQLAlchemyError: Propagated; the
                payout transaction is rolled back and the row stays pending.
        """
        pending = await self.store.get_pending_cashbacks(
            self.config.currency_id, max_attempts=self.max_attempts
        )
        if not pending:
            return 0

        self.logger.debug("Evaluating %s pending cashback(s)", len(pending))
        paid = 0
        for cashback in pending:
            if not await self.is_mature(cashback):
                break
            try:
                if await self.pay(cashback):
                    paid += 1
            except OperationError as e:
                await self._record_failure(cashback, e)
                break
        return paid

    async def pay(self, cashback: "Cashback") -> bool:
        """Send the split payment for one cashback and record its txid.

        A transfer whose operation timed out on an earlier pass is polled
        again first. Its txid is adopted if it went through, and a new
        transfer is only sent once it is known to have failed.

        Returns:
            bool: True if a payout was made, False if the row was already paid
        """
        async with self.store.payout_scope(cashback) as scope:
            if scope.already_paid:
                self.logger.info("%s@ was already paid, skipping", cashback.name)
                return False

            txid = None
            if scope.pending_opid is not None:
                txid = await self._settle_earlier_operation(cashback, scope.pending_opid)

            if txid is None:
                outputs = self.build_outputs(cashback)
                operation_id = await self.rpc.send_currency(outputs)
                self.logger.info(
                    "Submitted cashback for %s@ (%s): %s",
                    cashback.name,
                    cashback.name_id,
                    operation_id,
                )
                txid = await self.poller.wait_for_txid(operation_id)

            await scope.complete(txid)

        self.payouts_sent += 1
        link = self.explorer_link(txid)
        self.logger.info("Cashback for %s@ paid in %s", cashback.name, txid)
        self.sink.publish(
            CashbackProcessed(
                currency_id=cashback.currency_id,
                name=cashback.name,
                name_id=cashback.name_id,
                explorer_link=link,
            )
        )
        return True

    async def _settle_earlier_operation(
        self, cashback: "Cashback", operation_id: str
    ) -> str | None:
        try:
            txid = await self.poller.wait_for_txid(operation_id)
        except OperationFailedError as e:
            self.logger.warning(
                "Earlier transfer for %s@ did not go through, resubmitting: %s",
                cashback.name,
                e,
            )
            return None
        self.logger.info(
            "Earlier transfer %s for %s@ settled late", operation_id, cashback.name
        )
        return txid

    async def _record_failure(self, cashback: "Cashback", error: OperationError) -> None:
        # A timed-out operation may still be broadcast, keep it for the next pass
        pending_opid = (
            error.operation_id if isinstance(error, OperationTimeoutError) else None
        )
        attempts = await self.store.record_failed_attempt(
            cashback.currency_id, cashback.name_id, str(error), pending_opid
        )
        if attempts >= self.max_attempts:
            self.logger.error(
                "Giving up on cashback for %s@ (%s) after %s failed attempts: %s",
                cashback.name,
                cashback.name_id,
                attempts,
                error,
            )
        else:
            self.logger.warning(
                "Cashback payout for %s@ failed (attempt %s/%s): %s",
                cashback.name,
                attempts,
                self.max_attempts,
                error,
            )


__all__ = ["PayoutFinalizer"]
