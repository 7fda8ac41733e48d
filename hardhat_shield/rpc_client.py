"""Async JSON-RPC client for the target chain.

Only the handful of read-only calls hardhat-shield needs are wrapped:
``eth_chainId`` for the pre-deploy reachability probe, ``eth_getCode`` for the
``status`` command and ``eth_getTransactionReceipt`` for confirming the
transactions sent by ``mint`` and ``transfer``.
Transactions themselves are always sent by the generated Hardhat scripts.

Typical usage::

    client = RpcClient("https://json-rpc.testnet.swisstronik.com/")
    print(await client.chain_id())
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Protocol

import httpx

from .errors import ShieldError


class ChainClient(Protocol):
    async def chain_id(self) -> int: ...

    async def get_code(self, address: str) -> str: ...

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None: ...


class RpcError(ShieldError):
    """Raised when the node cannot be reached or answers with an error."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method}: {message}")


class RpcClient:
    """Minimal Ethereum JSON-RPC client over ``httpx.AsyncClient``.

    Transport failures such as refused or reset connections and timeouts are
    retried ``retries`` extra times with exponential backoff. JSON-RPC error
    objects and HTTP error statuses are not retried.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        retries: int = 2,
        backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self._transport = transport
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self._transport,
        )

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        last_error = ""
        for attempt in range(self.retries + 1):
            if attempt:
                await asyncio.sleep(self.backoff * (2 ** (attempt - 1)))
            try:
                async with self._client() as client:
                    response = await client.post(self.url, json=payload)
                    response.raise_for_status()
                    data = response.json()
            except httpx.ConnectError as exc:
                last_error = f"cannot connect to {self.url} ({exc})"
                continue
            except httpx.TimeoutException:
                last_error = f"request timed out after {self.timeout}s"
                continue
            except httpx.TransportError as exc:
                last_error = f"transport error talking to {self.url} ({exc!r})"
                continue
            except httpx.HTTPStatusError as exc:
                raise RpcError(
                    method,
                    f"HTTP {exc.response.status_code}: {exc.response.text[:300]}",
                ) from exc
            except ValueError as exc:
                raise RpcError(method, f"response is not JSON: {exc}") from exc

            if not isinstance(data, dict):
                raise RpcError(method, f"unexpected response: {data!r}")
            if data.get("error"):
                error = data["error"]
                if isinstance(error, dict):
                    raise RpcError(method, str(error.get("message", error)), error.get("code"))
                raise RpcError(method, str(error))
            return data.get("result")

        raise RpcError(method, f"{last_error} (after {self.retries + 1} attempt(s))")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chain_id(self) -> int:
        result = await self._call("eth_chainId")
        if not isinstance(result, str):
            raise RpcError("eth_chainId", f"expected a hex quantity, got {result!r}")
        try:
            return int(result, 16)
        except ValueError as exc:
            raise RpcError("eth_chainId", f"expected a hex quantity, got {result!r}") from exc

    async def get_code(self, address: str) -> str:
        """Return the deployed bytecode at *address* (``"0x"`` when none)."""
        return await self._call("eth_getCode", [address, "latest"]) or "0x"

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Return the receipt for *tx_hash*, or ``None`` while it is unknown to the node."""
        result = await self._call("eth_getTransactionReceipt", [tx_hash])
        if result is not None and not isinstance(result, dict):
            raise RpcError("eth_getTransactionReceipt", f"unexpected result: {result!r}")
        return result
