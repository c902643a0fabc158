"""Polling of daemon-side asynchronous operations until they settle."""

import asyncio
import logging
from enum import StrEnum

from typing import TYPE_CHECKING

from src.cashback.errors import OperationFailedError, OperationTimeoutError
from src.helpers.constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT
from src.helpers.logging import get_logger
from src.helpers.rpc_models import OperationState


if TYPE_CHECKING:
    from src.helpers.rpc import RPCClient
    from src.helpers.rpc_models import OperationStatus


class PollState(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class OperationPoller:
    """Wait for a z_getoperationstatus entry to reach a terminal state.

    ``queued``/``executing`` (or an id the daemon does not list yet) keep the
    poller PENDING. ``success`` with a txid moves it to SUCCEEDED and the txid
    is returned. ``failed``, ``cancelled`` or a success without a txid move
    it to FAILED and raise OperationFailedError. Running past ``timeout``
    moves it to TIMED_OUT and raises OperationTimeoutError. RPC errors are
    not caught.
    """

    def __init__(
        self,
        rpc: "RPCClient",
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.rpc = rpc
        self.interval = interval
        self.timeout = timeout
        self.logger = logger or get_logger(__name__)

    async def wait_for_txid(self, operation_id: str) -> str:
        """Poll an operation until it yields a txid.

        Args:
            operation_id: Id returned by sendcurrency

        Returns:
            str: Transaction id produced by the operation

        Raises:
            OperationFailedError: Terminal state without a txid
            OperationTimeoutError: Still pending after ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        state = PollState.PENDING
        polls = 0

        while state is PollState.PENDING:
            statuses = await self.rpc.get_operation_status(operation_id)
            polls += 1
            status = next((s for s in statuses if s.id == operation_id), None)
            state = self._next_state(status)

            if state is PollState.SUCCEEDED:
                assert status is not None and status.txid is not None
                self.logger.debug(
                    "Operation %s succeeded after %s poll(s): %s",
                    operation_id,
                    polls,
                    status.txid,
                )
                return status.txid

            if state is PollState.FAILED:
                raise OperationFailedError(operation_id, self._failure_reason(status))

            if loop.time() >= deadline:
                state = PollState.TIMED_OUT
                break

            await asyncio.sleep(self.interval)

        msg = f"still pending after {self.timeout:.0f}s ({polls} polls)"
        raise OperationTimeoutError(operation_id, msg)

    @staticmethod
    def _next_state(status: "OperationStatus | None") -> PollState:
        if status is None or status.is_pending:
            return PollState.PENDING
        if status.status is OperationState.SUCCESS and status.txid:
            return PollState.SUCCEEDED
        return PollState.FAILED

    @staticmethod
    def _failure_reason(status: "OperationStatus | None") -> str:
        if status is None:
            return "unknown operation"
        if status.error and status.error.message:
            return f"{status.status.value}: {status.error.message}"
        if status.status is OperationState.SUCCESS:
            return "success without txid"
        return status.status.value


__all__ = [
    "OperationPoller",
    "PollState",
]
