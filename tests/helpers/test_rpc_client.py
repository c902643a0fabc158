"""Tests for the Verus RPC client."""

import json
from decimal import Decimal

import pytest

from typing import TYPE_CHECKING

import httpx

from src.helpers.rpc import RPCClient, RPCError
from src.helpers.rpc_models import CurrencyOutput, OperationState


if TYPE_CHECKING:
    from pytest_httpx import HTTPXMock


RPC_URL = "http://127.0.0.1:27486"


def sent_body(httpx_mock: "HTTPXMock") -> dict:
    request = httpx_mock.get_requests()[-1]
    return json.loads(request.content)


class TestRPCClient:
    """Tests for RPCClient class."""

    def test_init_with_valid_url(self) -> None:
        """Test RPCClient initialization with valid URL."""
        client = RPCClient(RPC_URL)

        assert client.rpc_url == RPC_URL
        assert client.timeout == 60.0

    def test_init_with_custom_timeout(self) -> None:
        """Test RPCClient initialization with custom timeout."""
        client = RPCClient(RPC_URL, timeout=5.0)

        assert client.timeout == 5.0

    def test_init_with_empty_url_raises(self) -> None:
        """Test that empty URL raises ValueError."""
        with pytest.raises(ValueError, match="RPC URL cannot be empty"):
            RPCClient("")

    @pytest.mark.asyncio
    async def test_call_returns_result(self, httpx_mock: "HTTPXMock") -> None:
        """Test making a single RPC call."""
        httpx_mock.add_response(url=RPC_URL, json={"result": 1234, "error": None, "id": 1})
        client = RPCClient(RPC_URL, "user", "pass")

        result = await client.call("getblockcount")

        assert result == 1234
        body = sent_body(httpx_mock)
        assert body["method"] == "getblockcount"
        assert body["params"] == []
        assert body["jsonrpc"] == "1.0"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_call_sends_basic_auth(self, httpx_mock: "HTTPXMock") -> None:
        """Test rpcuser/rpcpassword are sent as basic auth."""
        httpx_mock.add_response(url=RPC_URL, json={"result": 1, "error": None, "id": 1})
        client = RPCClient(RPC_URL, "user", "pass")

        await client.call("getblockcount")

        request = httpx_mock.get_requests()[-1]
        assert request.headers["Authorization"].startswith("Basic ")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_ids_increase(self, httpx_mock: "HTTPXMock") -> None:
        """Test every request gets a fresh id."""
        httpx_mock.add_response(url=RPC_URL, json={"result": 1, "error": None, "id": 1})
        httpx_mock.add_response(url=RPC_URL, json={"result": 2, "error": None, "id": 2})
        client = RPCClient(RPC_URL)

        await client.call("getblockcount")
        await client.call("getblockcount")

        ids = [json.loads(r.content)["id"] for r in httpx_mock.get_requests()]
        assert ids == [1, 2]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_body_on_http_500_raises_rpc_error(
        self, httpx_mock: "HTTPXMock"
    ) -> None:
        """Test the daemon's error object wins over the HTTP status."""
        httpx_mock.add_response(
            url=RPC_URL,
            status_code=500,
            json={
                "result": None,
                "error": {"code": -5, "message": "Block not found"},
                "id": 1,
            },
        )
        client = RPCClient(RPC_URL)

        with pytest.raises(RPCError, match="Block not found") as exc_info:
            await client.call("getblock", ["00" * 32, 2])

        assert exc_info.value.code == -5
        assert exc_info.value.method == "getblock"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_json_error_raises_http_error(self, httpx_mock: "HTTPXMock") -> None:
        """Test a plain-text 401 surfaces as an HTTP error."""
        httpx_mock.add_response(url=RPC_URL, status_code=401, text="Unauthorized")
        client = RPCClient(RPC_URL, "user", "wrong")

        with pytest.raises(httpx.HTTPStatusError):
            await client.call("getblockcount")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_block_uses_verbosity_two(self, httpx_mock: "HTTPXMock") -> None:
        """Test getblock is requested with decoded transactions."""
        httpx_mock.add_response(
            url=RPC_URL, json={"result": {"hash": "ab", "tx": []}, "error": None, "id": 1}
        )
        client = RPCClient(RPC_URL)

        block = await client.get_block("ab")

        assert block["hash"] == "ab"
        assert sent_body(httpx_mock)["params"] == ["ab", 2]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_identity_history_params(self, httpx_mock: "HTTPXMock") -> None:
        """Test getidentityhistory is requested over the full range."""
        httpx_mock.add_response(
            url=RPC_URL,
            json={"result": {"history": [{"height": 90}]}, "error": None, "id": 1},
        )
        client = RPCClient(RPC_URL)

        history = await client.get_identity_history("iNewIdentity")

        assert history["history"][0]["height"] == 90
        assert sent_body(httpx_mock)["params"] == ["iNewIdentity", 0, 0]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_send_currency_params(self, httpx_mock: "HTTPXMock") -> None:
        """Test sendcurrency is called with '*' and coin amounts."""
        httpx_mock.add_response(url=RPC_URL, json={"result": "opid-1", "error": None, "id": 1})
        client = RPCClient(RPC_URL)

        opid = await client.send_currency([
            CurrencyOutput(address="iNew", amount=Decimal("0.0095")),
            CurrencyOutput(address="iRef", amount=Decimal("0.0003")),
        ])

        assert opid == "opid-1"
        assert sent_body(httpx_mock)["params"] == [
            "*",
            [
                {"address": "iNew", "amount": 0.0095},
                {"address": "iRef", "amount": 0.0003},
            ],
        ]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_operation_status(self, httpx_mock: "HTTPXMock") -> None:
        """Test z_getoperationstatus results are parsed into models."""
        httpx_mock.add_response(
            url=RPC_URL,
            json={
                "result": [
                    {
                        "id": "opid-1",
                        "status": "success",
                        "creation_time": 1700000000,
                        "method": "sendcurrency",
                        "result": {"txid": "f" * 64},
                    }
                ],
                "error": None,
                "id": 1,
            },
        )
        client = RPCClient(RPC_URL)

        statuses = await client.get_operation_status("opid-1")

        assert len(statuses) == 1
        assert statuses[0].status is OperationState.SUCCESS
        assert statuses[0].txid == "f" * 64
        assert sent_body(httpx_mock)["params"] == [["opid-1"]]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_operation_status_unknown_id(self, httpx_mock: "HTTPXMock") -> None:
        """Test an unknown opid gives an empty list."""
        httpx_mock.add_response(url=RPC_URL, json={"result": [], "error": None, "id": 1})
        client = RPCClient(RPC_URL)

        assert await client.get_operation_status("opid-missing") == []
        await client.aclose()
