"""
ERC-4337 Bundler Provider.

Consumed as an opaque "submit operation / poll receipt" endpoint for the
sponsored execution backend.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import settings
from ..core.execution.userop import UserOperation, UserOpGasEstimate, UserOpReceipt


class BundlerError(Exception):
    """Bundler provider error."""
    pass


class BundlerProvider(Provider):
    name = "bundler"
    timeout_s = 20

    def __init__(self, rpc_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self._rpc_url = rpc_url if rpc_url is not None else settings.bundler_url
        self._client = client

    async def ready(self) -> bool:
        return bool(self._rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Bundler not configured"}

        try:
            result = await self._rpc_call("eth_supportedEntryPoints", [])
            return {"status": "healthy", "entryPoints": result}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def send_user_operation(self, user_op: UserOperation, entry_point: str) -> str:
        result = await self._rpc_call(
            "eth_sendUserOperation",
            [user_op.to_rpc_dict(), entry_point],
        )
        if not isinstance(result, str):
            raise BundlerError("Invalid bundler response for eth_sendUserOperation")
        return result

    async def estimate_user_operation_gas(self, user_op: UserOperation, entry_point: str) -> UserOpGasEstimate:
        result = await self._rpc_call(
            "eth_estimateUserOperationGas",
            [user_op.to_rpc_dict(), entry_point],
        )
        if not isinstance(result, dict):
            raise BundlerError("Invalid bundler response for eth_estimateUserOperationGas")
        return UserOpGasEstimate.from_rpc(result)

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOpReceipt]:
        result = await self._rpc_call("eth_getUserOperationReceipt", [user_op_hash])
        if not result:
            return None

        receipt = result.get("receipt") or {}
        success = result.get("success")
        if success is None:
            success = receipt.get("status") == "0x1"
        return UserOpReceipt(
            user_op_hash=user_op_hash,
            success=bool(success),
            transaction_hash=receipt.get("transactionHash"),
            block_number=int(receipt["blockNumber"], 16) if receipt.get("blockNumber") else None,
            gas_used=int(result["actualGasUsed"], 16) if result.get("actualGasUsed") else None,
            reason=result.get("reason"),
        )

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not await self.ready():
            raise BundlerError("Bundler provider is not configured")
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        response = await self._client.post(
            self._rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()
        if "error" in payload:
            raise BundlerError(payload["error"])
        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
