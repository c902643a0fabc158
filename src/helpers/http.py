"""HTTP client utilities and helpers."""

from asyncio import sleep
from collections.abc import Awaitable, Callable
from functools import wraps

from typing import Any, ParamSpec, TypeVar

import httpx

from src.helpers.constants import (
    DEFAULT_TIMEOUT,
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from src.helpers.logging import get_logger


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    log_errors: bool = True,
    give_up_on: tuple[type[Exception], ...] = (),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator to retry async functions with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (default: 5)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries (default: 60.0)
        log_errors: Whether to log retry attempts (default: True)
        give_up_on: Exception types re-raised at once without retrying

    Returns:
        Decorated function that retries on httpx.HTTPError and general exceptions

    Example:
        ```python
        from src.helpers.http import retry_with_backoff

        @retry_with_backoff(max_retries=3, base_delay=2.0)
        async def post_message(client: httpx.AsyncClient, url: str) -> None:
            response = await client.post(url, json={"content": "hi"})
            response.raise_for_status()

        # Will retry up to 3 times with delays of 2s, 4s
        ```
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except give_up_on:
                    raise
                except httpx.TimeoutException as e:
                    last_exception = e
                    if log_errors and attempt < max_retries - 1:
                        logger.warning(
                            "%s timeout (attempt %d/%d)",
                            func.__name__,
                            attempt + 1,
                            max_retries,
                        )
                except httpx.HTTPError as e:
                    last_exception = e
                    if log_errors and attempt < max_retries - 1:
                        logger.warning(
                            "%s HTTP error (attempt %d/%d): %s",
                            func.__name__,
                            attempt + 1,
                            max_retries,
                            e,
                        )
                except Exception as e:
                    last_exception = e
                    if log_errors and attempt < max_retries - 1:
                        logger.warning(
                            "%s error (attempt %d/%d): %s",
                            func.__name__,
                            attempt + 1,
                            max_retries,
                            e,
                        )

                # Don't sleep after the last attempt
                if attempt < max_retries - 1:
                    delay = min(base_delay * (2**attempt), max_delay)
                    await sleep(delay)

            if last_exception:
                if log_errors:
                    logger.error(
                        "%s failed after %d attempts", func.__name__, max_retries
                    )
                raise last_exception

            msg = f"{func.__name__} failed without exception"
            raise RuntimeError(msg)

        return wrapper

    return decorator


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT, **kwargs: Any
) -> httpx.AsyncClient:
    """Create a configured httpx AsyncClient.

    Args:
        timeout: Default timeout in seconds (default: DEFAULT_TIMEOUT)
        **kwargs: Additional httpx.AsyncClient kwargs (headers, auth, ...)

    Returns:
        Configured AsyncClient instance
    """
    return httpx.AsyncClient(timeout=timeout, **kwargs)


__all__ = [
    "create_http_client",
    "retry_with_backoff",
]
