"""Per-chain block consumer: referral detection followed by payouts."""

import asyncio
import logging

from typing import TYPE_CHECKING

from src.cashback.models import BlockEvent, CashbackInitiated
from src.cashback.payout import PayoutFinalizer
from src.cashback.scanner import scan_block_for_referrals
from src.helpers.logging import chain_logger, get_logger


if TYPE_CHECKING:
    from src.cashback.models import ChainConfig
    from src.cashback.notifier import EventSink
    from src.cashback.store import CashbackStore
    from src.helpers.rpc import RPCClient


class ChainMonitorWorker:
    """Consume block events for one chain, strictly one at a time.

    For every block the worker records new referral registrations, then
    runs a payout pass. The next block is not looked at until that pass has
    finished, so a slow payout delays detection on this chain only.
    """

    def __init__(
        self,
        config: "ChainConfig",
        rpc: "RPCClient",
        store: "CashbackStore",
        sink: "EventSink",
        queue: asyncio.Queue[BlockEvent],
        *,
        finalizer: PayoutFinalizer | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.config = config
        self.rpc = rpc
        self.store = store
        self.sink = sink
        self.queue = queue
        self.logger = chain_logger(logger or get_logger(__name__), config.label)
        self.finalizer = finalizer or PayoutFinalizer(
            config, rpc, store, sink, logger=self.logger
        )
        self.blocks_processed = 0
        self.cashbacks_detected = 0
        self.retry_event: BlockEvent | None = None
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        """Stop after the block currently being handled."""
        self._stopping.set()

    async def run(self) -> None:
        """Process block events until stopped.

        Raises:
            RPCError, httpx.HTTPError, SQLAlchemyError: Any failure while
                handling a block; the caller decides whether to restart.
        """
        self.logger.info("Worker started")
        while not self._stopping.is_set():
            if self.retry_event is not None:
                event, self.retry_event = self.retry_event, None
                self.logger.info("Retrying block %s", event.block_hash)
            else:
                event = await self._next_event()
                if event is None:
                    continue
                self.queue.task_done()
            try:
                await self.handle_block(event)
            except Exception:
                # Handled again first when run() is restarted
                self.retry_event = event
                raise
        self.logger.info("Worker stopped after %s block(s)", self.blocks_processed)

    async def _next_event(self) -> BlockEvent | None:
        get_task = asyncio.ensure_future(self.queue.get())
        stop_task = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait(
                {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_task.cancel()
        if get_task.done():
            return get_task.result()
        get_task.cancel()
        return None

    async def handle_block(self, event: BlockEvent) -> None:
        """Scan one block for referrals, then try to pay matured cashbacks."""
        block = await self.rpc.get_block(event.block_hash, 2)
        self.logger.debug(
            "Block %s at height %s (%s tx)",
            event.block_hash,
            block.get("height"),
            len(block.get("tx", [])),
        )

        for referral in scan_block_for_referrals(block, self.config.referral_currency_id):
            inserted = await self.store.store_cashback(
                self.config.currency_id,
                referral.name_id,
                referral.name,
                detected_txid=referral.txid,
                block_hash=event.block_hash,
            )
            if not inserted:
                self.logger.debug("%s@ already recorded", referral.name)
                continue

            self.cashbacks_detected += 1
            self.logger.info(
                "Detected referral registration %s@ (%s) in %s",
                referral.name,
                referral.name_id,
                referral.txid,
            )
            self.sink.publish(
                CashbackInitiated(
                    currency_id=self.config.currency_id,
                    name=referral.name,
                    name_id=referral.name_id,
                )
            )

        await self.finalizer.process_pending()
        self.blocks_processed += 1


__all__ = ["ChainMonitorWorker"]
