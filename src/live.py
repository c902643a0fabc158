"""Live cashback service.

Runs one supervised pipeline per configured PBaaS chain:

1. ZMQ hashblock feed → BlockEventIngestor → per-chain queue
2. ChainMonitorWorker consumes the queue one block at a time:
   - getblock (verbosity 2) and scan for referral registrations
   - store new cashbacks and announce them on Discord
   - pay out cashbacks with enough confirmations and announce the payout

Chains share only the database pool and the Discord notifier. A failing
chain is restarted with exponential backoff without touching the others.

Usage:
    python -m src.live
"""

import signal
import sys
from contextlib import suppress

from typing import TYPE_CHECKING

import asyncio

from src.cashback.config import load_chain_configs
from src.cashback.ingestor import BlockEventIngestor
from src.cashback.models import BlockEvent
from src.cashback.notifier import DiscordNotifier
from src.cashback.payout import PayoutFinalizer
from src.cashback.poller import OperationPoller
from src.cashback.store import CashbackStore
from src.cashback.worker import ChainMonitorWorker
from src.helpers.config import (
    get_confirmations,
    get_discord_token,
    get_max_payout_attempts,
    get_poll_interval,
    get_poll_timeout,
)
from src.helpers.constants import RETRY_BASE_DELAY, RETRY_MAX_DELAY
from src.helpers.db import create_tables, dispose_engine
from src.helpers.logging import chain_logger, get_logger
from src.helpers.rpc import RPCClient


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.cashback.models import ChainConfig
    from src.cashback.notifier import EventSink


logger = get_logger(__name__)


class ChainSupervisor:
    """Own and restart the ingestor and worker of a single chain."""

    def __init__(
        self,
        config: "ChainConfig",
        store: CashbackStore,
        sink: "EventSink",
        *,
        confirmations: int,
        poll_interval: float,
        poll_timeout: float,
        max_attempts: int,
    ) -> None:
        self.config = config
        self.logger = chain_logger(logger, config.label)
        self.rpc = RPCClient(
            config.rpc_url,
            config.rpc_user,
            config.rpc_password.get_secret_value(),
        )
        self.queue: asyncio.Queue[BlockEvent] = asyncio.Queue()
        self.ingestor = BlockEventIngestor(
            config.currency_id,
            config.zmq_block_hash_url,
            self.queue,
            label=config.label,
        )
        finalizer = PayoutFinalizer(
            config,
            self.rpc,
            store,
            sink,
            poller=OperationPoller(
                self.rpc,
                interval=poll_interval,
                timeout=poll_timeout,
                logger=self.logger,
            ),
            confirmations=confirmations,
            max_attempts=max_attempts,
        )
        self.worker = ChainMonitorWorker(
            config, self.rpc, store, sink, self.queue, finalizer=finalizer
        )
        self.should_shutdown = False
        self.restart_count = 0
        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    async def run(self) -> None:
        """Run ingestor and worker until shutdown."""
        self._tasks = [
            asyncio.create_task(
                self._supervise(
                    "ingestor",
                    self.ingestor.run,
                    lambda: self.ingestor.blocks_received,
                )
            ),
            asyncio.create_task(
                self._supervise(
                    "worker",
                    self.worker.run,
                    lambda: self.worker.blocks_processed,
                )
            ),
        ]
        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            await self.rpc.aclose()

    async def _supervise(
        self,
        name: str,
        run: "Callable[[], Awaitable[None]]",
        progress: "Callable[[], int]",
    ) -> None:
        retry_delay = RETRY_BASE_DELAY

        while not self.should_shutdown:
            seen = progress()
            try:
                await run()
            except asyncio.CancelledError:
                break
            except Exception:
                self.logger.exception("%s failed", name.capitalize())
            else:
                if self.should_shutdown:
                    break
                self.logger.warning("%s exited unexpectedly", name.capitalize())

            if self.should_shutdown:
                break

            # Exponential backoff, reset once the task made progress
            if progress() > seen:
                retry_delay = RETRY_BASE_DELAY
            self.restart_count += 1
            self.logger.info(
                "Restarting %s in %s s (restart %s)",
                name,
                retry_delay,
                self.restart_count,
            )
            await self._wait_before_restart(retry_delay)
            retry_delay = min(retry_delay * 2, RETRY_MAX_DELAY)

    async def _wait_before_restart(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, returning early on shutdown."""
        with suppress(TimeoutError):
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)

    def shutdown(self) -> None:
        """Stop the feed immediately and the worker after its current block."""
        self.should_shutdown = True
        self._shutdown_event.set()
        self.worker.stop()
        if self._tasks:
            # The ingestor only waits on the socket, cancelling it is safe
            self._tasks[0].cancel()


class CashbackService:
    """Run every chain supervisor plus the Discord delivery loop."""

    def __init__(
        self,
        configs: "list[ChainConfig]",
        store: CashbackStore | None = None,
        notifier: DiscordNotifier | None = None,
    ) -> None:
        self.configs = configs
        self.store = store or CashbackStore()
        self.notifier = notifier or DiscordNotifier(
            get_discord_token(),
            {
                config.currency_id: config.discord_channel_id
                for config in configs
                if config.discord_channel_id is not None
            },
        )
        confirmations = get_confirmations()
        poll_interval = get_poll_interval()
        poll_timeout = get_poll_timeout()
        max_attempts = get_max_payout_attempts()
        self.supervisors = [
            ChainSupervisor(
                config,
                self.store,
                self.notifier,
                confirmations=confirmations,
                poll_interval=poll_interval,
                poll_timeout=poll_timeout,
                max_attempts=max_attempts,
            )
            for config in configs
        ]
        self.should_shutdown = False

    def shutdown(self) -> None:
        """Gracefully shutdown every chain."""
        if self.should_shutdown:
            return
        logger.info("Shutdown signal received, stopping...")
        self.should_shutdown = True
        for supervisor in self.supervisors:
            supervisor.shutdown()

    async def cleanup(self) -> None:
        """Flush notifications and release shared resources."""
        await self.notifier.drain()
        await self.notifier.aclose()
        await dispose_engine()

    async def run(self) -> None:
        """Run the service until every chain has stopped."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.shutdown)

        await create_tables()

        notifier_task = asyncio.create_task(self.notifier.run())
        try:
            for config in self.configs:
                logger.info(
                    "Monitoring %s (referral %s, feed %s)",
                    config.label,
                    config.referral_currency_id,
                    config.zmq_block_hash_url,
                )
            await asyncio.gather(
                *(supervisor.run() for supervisor in self.supervisors),
                return_exceptions=True,
            )
        finally:
            await self.cleanup()
            notifier_task.cancel()
            await asyncio.gather(notifier_task, return_exceptions=True)

        logger.info("Cashback service stopped")


async def main() -> None:
    """Main entry point."""
    try:
        configs = load_chain_configs()
        if not configs:
            logger.error("No chains configured, nothing to monitor")
            sys.exit(1)
        service = CashbackService(configs)
        await service.run()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, exiting...")
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
