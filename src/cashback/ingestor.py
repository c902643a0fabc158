"""ZMQ block-hash subscription feeding a chain worker."""

import asyncio
import logging

import zmq
import zmq.asyncio

from src.cashback.errors import IngestorError
from src.cashback.models import BlockEvent
from src.helpers.constants import ZMQ_BLOCK_TOPIC
from src.helpers.logging import chain_logger, get_logger
from src.helpers.parsers import parse_block_hash


class BlockEventIngestor:
    """Subscribe to a daemon's ``hashblock`` feed and enqueue BlockEvents.

    Each ZMQ message is ``[topic, hash, sequence]``. The raw 32-byte hash in
    the second frame is hex-encoded and forwarded in arrival order. Malformed
    messages are logged and skipped; losing the socket raises IngestorError.
    """

    def __init__(
        self,
        currency_id: str,
        url: str,
        queue: asyncio.Queue[BlockEvent],
        *,
        label: str | None = None,
        context: zmq.asyncio.Context | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.currency_id = currency_id
        self.url = url
        self.queue = queue
        self.context = context or zmq.asyncio.Context.instance()
        self.logger = chain_logger(
            logger or get_logger(__name__), label or currency_id
        )
        self.socket: zmq.asyncio.Socket | None = None
        self.blocks_received = 0
        self.decode_errors = 0

    def connect(self) -> zmq.asyncio.Socket:
        socket = self.context.socket(zmq.SUB)
        socket.setsockopt(zmq.LINGER, 0)
        socket.connect(self.url)
        socket.setsockopt(zmq.SUBSCRIBE, ZMQ_BLOCK_TOPIC)
        self.socket = socket
        self.logger.info("Listening for blocks on %s", self.url)
        return socket

    def handle_message(self, frames: list[bytes]) -> BlockEvent | None:
        """Decode one multipart message and enqueue it.

        Returns:
            BlockEvent | None: The forwarded event, or None if it was malformed
        """
        if len(frames) < 2:
            self.decode_errors += 1
            self.logger.error("Not a valid block message: %s frame(s)", len(frames))
            return None

        try:
            block_hash = parse_block_hash(frames[1])
        except ValueError as e:
            self.decode_errors += 1
            self.logger.error("Invalid block hash frame: %s", e)
            return None

        event = BlockEvent(currency_id=self.currency_id, block_hash=block_hash)
        self.queue.put_nowait(event)
        self.blocks_received += 1
        self.logger.info("New block %s", block_hash)
        return event

    async def run(self) -> None:
        """Receive until stopped.

        Raises:
            IngestorError: If the subscription fails
        """
        try:
            socket = self.connect()
        except zmq.ZMQError as e:
            msg = f"Cannot subscribe to block feed {self.url}: {e}"
            raise IngestorError(msg) from e
        try:
            while True:
                try:
                    frames = await socket.recv_multipart()
                except zmq.ZMQError as e:
                    msg = f"Block feed {self.url} failed: {e}"
                    raise IngestorError(msg) from e
                self.handle_message(frames)
        finally:
            self.stop()

    def stop(self) -> None:
        """Close the subscription socket."""
        if self.socket is not None and not self.socket.closed:
            self.socket.close(linger=0)
            self.logger.info("Closed block feed %s", self.url)
        self.socket = None


__all__ = ["BlockEventIngestor"]
