"""Delivery of cashback events to Discord channels."""

import asyncio
import logging

from typing import Protocol

import httpx

from src.cashback.models import CashbackInitiated, NotificationEvent
from src.helpers.constants import DISCORD_API_BASE, NOTIFIER_DRAIN_TIMEOUT
from src.helpers.http import create_http_client, retry_with_backoff
from src.helpers.logging import get_logger


class EventSink(Protocol):
    """Anything that accepts cashback events without blocking the caller."""

    def publish(self, event: NotificationEvent) -> None: ...


def format_event(event: NotificationEvent) -> str:
    """Render an event as a Discord message body."""
    if isinstance(event, CashbackInitiated):
        return f":sparkles:  **{event.name}@** ({event.name_id}) initiated cashback"
    return (
        f":moneybag:  Cashback processed for **{event.name}@** "
        f"({event.name_id}): [{event.explorer_link}]"
    )


class DiscordRateLimitedError(httpx.HTTPStatusError):
    """Discord answered 429; ``retry_after`` is the advised wait in seconds."""

    def __init__(self, response: httpx.Response, retry_after: float) -> None:
        super().__init__(
            f"Rate limited, retry after {retry_after:.1f}s",
            request=response.request,
            response=response,
        )
        self.retry_after = retry_after


class DiscordRejectedError(httpx.HTTPStatusError):
    """Discord refused the message outright (bad token, missing access or channel)."""


class DiscordNotifier:
    """Queue cashback events and post them to one channel per chain.

    ``publish`` only enqueues; a single delivery task drains the queue, so a
    slow or failing Discord never stalls a chain worker. Messages that still
    fail after retries are logged and dropped.
    """

    def __init__(
        self,
        token: str,
        channels: dict[str, int],
        *,
        api_base: str = DISCORD_API_BASE,
        client: httpx.AsyncClient | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.channels = channels
        self.api_base = api_base.rstrip("/")
        self.client = client or create_http_client(
            headers={"Authorization": f"Bot {token}"}
        )
        self.logger = logger or get_logger(__name__)
        self.queue: asyncio.Queue[NotificationEvent] = asyncio.Queue()
        self.sent = 0
        self.failed = 0

    def publish(self, event: NotificationEvent) -> None:
        self.queue.put_nowait(event)

    async def run(self) -> None:
        """Deliver queued events until cancelled."""
        while True:
            event = await self.queue.get()
            try:
                await self.deliver(event)
            finally:
                self.queue.task_done()

    async def deliver(self, event: NotificationEvent) -> bool:
        """Send one event, logging instead of raising on failure.

        Returns:
            bool: True if Discord accepted the message
        """
        channel_id = self.channels.get(event.currency_id)
        if channel_id is None:
            self.logger.warning(
                "No Discord channel configured for %s, dropping %s",
                event.currency_id,
                type(event).__name__,
            )
            self.failed += 1
            return False

        try:
            await self._post_message(channel_id, format_event(event))
        except Exception:
            self.failed += 1
            self.logger.exception(
                "Failed to deliver %s for %s to Discord",
                type(event).__name__,
                event.name_id,
            )
            return False

        self.sent += 1
        self.logger.info(
            "Delivered %s for %s@ (%s)", type(event).__name__, event.name, event.name_id
        )
        return True

    @retry_with_backoff(max_retries=4, base_delay=1.0, give_up_on=(DiscordRejectedError,))
    async def _post_message(self, channel_id: int, content: str) -> None:
        response = await self.client.post(
            f"{self.api_base}/channels/{channel_id}/messages",
            json={"content": content},
        )
        if response.status_code == 429:
            retry_after = 2.0
            try:
                retry_after = float(response.json().get("retry_after", retry_after))
            except ValueError:
                pass
            await asyncio.sleep(retry_after)
            raise DiscordRateLimitedError(response, retry_after)
        if response.is_client_error:
            raise DiscordRejectedError(
                f"Discord rejected the message with {response.status_code}",
                request=response.request,
                response=response,
            )
        response.raise_for_status()

    async def drain(self, timeout: float = NOTIFIER_DRAIN_TIMEOUT) -> None:
        """Wait for queued events to be delivered, up to ``timeout`` seconds."""
        try:
            await asyncio.wait_for(self.queue.join(), timeout=timeout)
        except TimeoutError:
            self.logger.warning(
                "Dropping %s undelivered notification(s) on shutdown",
                self.queue.qsize(),
            )

    async def aclose(self) -> None:
        await self.client.aclose()


__all__ = [
    "DiscordNotifier",
    "DiscordRateLimitedError",
    "DiscordRejectedError",
    "EventSink",
    "format_event",
]
