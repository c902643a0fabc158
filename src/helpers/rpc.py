"""Verus daemon JSON-RPC client utilities."""

import itertools

from typing import Any

import httpx

from src.helpers.constants import RPC_TIMEOUT
from src.helpers.rpc_models import CurrencyOutput, JsonRpcRequest, OperationStatus


class RPCError(Exception):
    """Error object returned by the daemon in a JSON-RPC response."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"RPC error in {method} ({code}): {message}")


class RPCClient:
    """JSON-RPC client for a single Verus (PBaaS) daemon.

    One instance is owned by each chain worker. It keeps its own pooled
    httpx client so requests to different daemons never share connections.
    """

    def __init__(
        self,
        rpc_url: str,
        rpc_user: str | None = None,
        rpc_password: str | None = None,
        timeout: float = RPC_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Daemon RPC endpoint URL (e.g. http://127.0.0.1:27486)
            rpc_user: rpcuser from the daemon config
            rpc_password: rpcpassword from the daemon config
            timeout: Default timeout for requests in seconds
            client: Optional pre-built HTTP client (mainly for tests)

        Raises:
            ValueError: If rpc_url is empty or None
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout
        auth = (rpc_user, rpc_password) if rpc_user is not None else None
        self.client = client or httpx.AsyncClient(timeout=timeout, auth=auth)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Make a single JSON-RPC call.

        Args:
            method: RPC method name (e.g., "getblockcount")
            params: Method parameters list
            timeout: Optional timeout override

        Returns:
            RPC result value

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the RPC response contains an error
        """
        request = JsonRpcRequest(method=method, params=params or [], id=next(self._ids))

        response = await self.client.post(
            self.rpc_url,
            json=request.model_dump(),
            timeout=timeout or self.timeout,
        )

        # bitcoind-style daemons answer RPC errors with HTTP 500 and a JSON body
        try:
            payload = response.json()
        except ValueError:
            response.raise_for_status()
            raise

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            if isinstance(error, dict):
                raise RPCError(method, error.get("code"), str(error.get("message")))
            raise RPCError(method, None, str(error))

        response.raise_for_status()
        return payload.get("result")

    async def get_block(self, block_hash: str, verbosity: int = 2) -> dict[str, Any]:
        """Fetch a block by hash.

        Args:
            block_hash: Hex block hash
            verbosity: 2 returns every transaction with decoded outputs

        Returns:
            Block object as returned by getblock
        """
        return await self.call("getblock", [block_hash, verbosity])

    async def get_block_count(self) -> int:
        """Get the current chain height."""
        return int(await self.call("getblockcount"))

    async def get_identity_history(
        self,
        identity: str,
        height_start: int = 0,
        height_end: int = 0,
    ) -> dict[str, Any]:
        """Get the full update history of an identity.

        Args:
            identity: Identity address (i-address) or name@
            height_start: First height to include
            height_end: Last height to include (0 means chain tip)

        Returns:
            getidentityhistory result including a ``history`` list
        """
        return await self.call(
            "getidentityhistory", [identity, height_start, height_end]
        )

    async def send_currency(
        self,
        outputs: list[CurrencyOutput],
        from_address: str = "*",
    ) -> str:
        """Submit a multi-output currency transfer.

        Args:
            outputs: Destinations and amounts (in whole coins)
            from_address: Funding source, "*" lets the wallet choose

        Returns:
            Asynchronous operation id (opid-...)
        """
        return await self.call(
            "sendcurrency",
            [from_address, [output.to_param() for output in outputs]],
        )

    async def get_operation_status(self, operation_id: str) -> list[OperationStatus]:
        """Get the status of an asynchronous operation.

        Args:
            operation_id: Operation id returned by sendcurrency

        Returns:
            Matching status entries (empty if the daemon does not know the id yet)
        """
        result = await self.call("z_getoperationstatus", [[operation_id]])
        return [OperationStatus.model_validate(entry) for entry in result or []]


__all__ = [
    "RPCClient",
    "RPCError",
]
