"""
JSON-RPC chain data provider.

A thin adapter over each chain's public RPC endpoint: only the calls the
routing and settlement engine needs, every one bounded by an httpx timeout.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.abi import build_allowance_call, build_balance_of_call, decode_revert_reason, decode_uint
from ..core.chains import ChainRegistry
from ..core.recovery.errors import ChainUnavailable
from .base import ChainDataProvider

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """JSON-RPC error response."""

    def __init__(self, message: str, code: Optional[int] = None, data: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    @property
    def revert_reason(self) -> Optional[str]:
        return decode_revert_reason(self.data) if isinstance(self.data, str) else None


class JsonRpcChainProvider(ChainDataProvider):
    name = "rpc"

    def __init__(
        self,
        registry: ChainRegistry,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval_s: Optional[float] = None,
    ) -> None:
        self._registry = registry
        self.timeout_s = timeout_s or settings.rpc_timeout_seconds
        self._poll_interval = poll_interval_s if poll_interval_s is not None else settings.receipt_poll_interval_seconds
        self._client = client
        self._ids = itertools.count(1)

    async def ready(self) -> bool:
        return bool(self._registry.supported_chain_ids())

    async def health_check(self) -> Dict[str, Any]:
        chains: Dict[str, Any] = {}

        async def probe(chain_id: int) -> None:
            try:
                block = await self._rpc_call(chain_id, "eth_blockNumber", [])
                chains[str(chain_id)] = {"status": "healthy", "block": decode_uint(block)}
            except Exception as exc:
                chains[str(chain_id)] = {"status": "error", "reason": str(exc)}

        await asyncio.gather(*(probe(c) for c in self._registry.supported_chain_ids()))
        healthy = sum(1 for c in chains.values() if c["status"] == "healthy")
        return {
            "status": "healthy" if healthy == len(chains) else ("degraded" if healthy else "error"),
            "chains": chains,
        }

    async def _rpc_call(self, chain_id: int, method: str, params: list[Any]) -> Any:
        """Make a JSON-RPC call; transport failures become ChainUnavailable."""
        rpc_url = self._registry.get(chain_id).rpc_url
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(rpc_url, json=payload, timeout=self.timeout_s)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ChainUnavailable(
                f"{method} failed on chain {chain_id}: {exc!r}",
                chain_id=chain_id,
                operation=method,
            ) from exc

        if "error" in result:
            error = result["error"] or {}
            raise RpcError(
                error.get("message", "RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return result.get("result")

    async def call(self, chain_id: int, call: Dict[str, Any], block: str = "latest") -> str:
        return await self._rpc_call(chain_id, "eth_call", [call, block])

    async def get_token_balance(self, chain_id: int, token: str, owner: str) -> int:
        result = await self.call(chain_id, {"to": token, "data": build_balance_of_call(owner)})
        return decode_uint(result)

    async def get_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        result = await self.call(chain_id, {"to": token, "data": build_allowance_call(owner, spender)})
        return decode_uint(result)

    async def get_gas_price(self, chain_id: int) -> int:
        return decode_uint(await self._rpc_call(chain_id, "eth_gasPrice", []))

    async def estimate_gas(self, chain_id: int, call: Dict[str, Any]) -> int:
        return decode_uint(await self._rpc_call(chain_id, "eth_estimateGas", [call]))

    async def get_transaction_count(self, chain_id: int, address: str) -> int:
        return decode_uint(await self._rpc_call(chain_id, "eth_getTransactionCount", [address, "pending"]))

    async def send_raw_transaction(self, chain_id: int, raw_tx: str) -> str:
        tx_hash = await self._rpc_call(chain_id, "eth_sendRawTransaction", [raw_tx])
        logger.info(f"Transaction submitted on chain {chain_id}: {tx_hash}")
        return tx_hash

    async def get_transaction_receipt(self, chain_id: int, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self._rpc_call(chain_id, "eth_getTransactionReceipt", [tx_hash])

    async def wait_for_receipt(
        self,
        chain_id: int,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        timeout = timeout or settings.receipt_timeout_seconds
        deadline = time.monotonic() + timeout

        while True:
            try:
                receipt = await self.get_transaction_receipt(chain_id, tx_hash)
                if receipt:
                    return receipt
            except ChainUnavailable as exc:
                logger.warning(f"Receipt poll failed for {tx_hash}: {exc}")

            if time.monotonic() >= deadline:
                raise ChainUnavailable(
                    f"No receipt for {tx_hash} on chain {chain_id} after {timeout:.0f}s",
                    chain_id=chain_id,
                    operation="wait_for_receipt",
                )
            await asyncio.sleep(self._poll_interval)

    async def get_revert_reason(self, chain_id: int, receipt: Dict[str, Any], tx: Dict[str, Any]) -> Optional[str]:
        """Replay a reverted transaction with eth_call to recover its reason."""
        block = receipt.get("blockNumber") or "latest"
        try:
            await self.call(chain_id, tx, block)
        except RpcError as exc:
            return exc.revert_reason or exc.message
        except ChainUnavailable:
            return None
        return None

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()


def receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    return receipt.get("status") in ("0x1", 1, "1")
