from __future__ import annotations

import itertools
import json
import logging
from typing import Any, List, Optional

import httpx

from loanledger.app.ledger.endpoints import Endpoint, EndpointPool
from loanledger.app.ledger.errors import (
    EncodingError,
    RateLimitError,
    RpcResponseError,
    RpcTimeoutError,
    TransientNetworkError,
    classify_rpc_error,
)

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise EncodingError(f"unexpected quantity in RPC result: {value!r}")


class JsonRpcTransport:
    """JSON-RPC 2.0 over HTTP, bound to the pool's active endpoint.

    A request captures the endpoint at the moment it starts; a rotation that
    happens while it is in flight only affects requests issued afterwards.
    Every failure leaves this class as a ``LedgerError`` subclass.
    """

    def __init__(
        self,
        pool: EndpointPool,
        *,
        timeout_seconds: float = 15.0,
        connect_timeout_seconds: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._pool = pool
        self._endpoint = pool.active
        self._ids = itertools.count(1)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds),
        )
        pool.subscribe(self.bind)

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def bind(self, endpoint: Endpoint) -> None:
        self._endpoint = endpoint

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        endpoint = self._endpoint
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            resp = await self._client.post(endpoint.url, json=payload)
        except httpx.TimeoutException as exc:
            raise RpcTimeoutError(f"{method} timed out", endpoint=str(endpoint)) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"{method} transport failure: {exc}", endpoint=str(endpoint)) from exc

        if resp.status_code == 429:
            raise RateLimitError(f"{method} rate limited (HTTP 429)", endpoint=str(endpoint))
        if resp.status_code >= 500 or resp.status_code == 408:
            raise TransientNetworkError(f"{method} upstream HTTP {resp.status_code}", endpoint=str(endpoint))
        if resp.status_code >= 400:
            raise RpcResponseError(f"{method} HTTP {resp.status_code}", code=resp.status_code, endpoint=str(endpoint))

        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise TransientNetworkError(f"{method} returned non-JSON body", endpoint=str(endpoint)) from exc

        if not isinstance(data, dict):
            raise RpcResponseError(f"{method} returned a malformed envelope", endpoint=str(endpoint))
        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            raise classify_rpc_error(code, message, endpoint=str(endpoint))
        if "result" not in data:
            raise RpcResponseError(f"{method} response missing result", endpoint=str(endpoint))
        return data["result"]

    async def block_number(self) -> int:
        return _to_int(await self.request("eth_blockNumber"))

    async def chain_id(self) -> int:
        return _to_int(await self.request("eth_chainId"))

    async def gas_price(self) -> int:
        return _to_int(await self.request("eth_gasPrice"))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return _to_int(await self.request("eth_getTransactionCount", [address, block]))

    async def send_raw_transaction(self, raw: bytes) -> str:
        result = await self.request("eth_sendRawTransaction", ["0x" + bytes(raw).hex()])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcResponseError("eth_sendRawTransaction returned no transaction hash", endpoint=str(self._endpoint))
        return result

    async def call(self, to: str, data: bytes, block: str = "latest") -> bytes:
        result = await self.request("eth_call", [{"to": to, "data": "0x" + bytes(data).hex()}, block])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise EncodingError(f"eth_call returned non-hex data: {result!r}")
        return bytes.fromhex(result[2:])


__all__ = ["JsonRpcTransport"]
