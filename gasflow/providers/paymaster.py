"""
ERC-4337 Paymaster Provider.

Sponsors UserOperations so gas is charged in USDC instead of the chain's
native token.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from eth_utils import is_0x_prefixed, is_hexstr

from .base import Provider
from ..config import settings
from ..core.execution.userop import UserOperation


class PaymasterError(Exception):
    """Paymaster provider error."""
    pass


# paymasterAndData starts with the 20-byte paymaster address
MIN_PAYMASTER_DATA_HEX = 40


def validate_paymaster_and_data(value: Any) -> str:
    if not isinstance(value, str) or not is_0x_prefixed(value) or not is_hexstr(value):
        raise PaymasterError(f"Paymaster returned non-hex paymasterAndData: {value!r}")
    digits = value[2:]
    if len(digits) % 2 or len(digits) < MIN_PAYMASTER_DATA_HEX:
        raise PaymasterError(f"Paymaster returned malformed paymasterAndData: {value!r}")
    return value


class PaymasterProvider(Provider):
    name = "paymaster"
    timeout_s = 20

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        rpc_method: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._rpc_url = rpc_url if rpc_url is not None else settings.paymaster_url
        self._rpc_method = rpc_method or settings.paymaster_rpc_method
        self._client = client

    async def ready(self) -> bool:
        return bool(self._rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Paymaster not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": result}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def sponsor_user_operation(
        self,
        user_op: UserOperation,
        entry_point: str,
        fee_token: str,
    ) -> str:
        """Return paymasterAndData for an operation whose gas is paid in ``fee_token``."""
        context = {"token": fee_token}
        result = await self._rpc_call(self._rpc_method, [user_op.to_rpc_dict(), entry_point, context])
        if isinstance(result, dict):
            paymaster_and_data = result.get("paymasterAndData") or result.get("paymaster_and_data")
            if paymaster_and_data:
                return validate_paymaster_and_data(paymaster_and_data)
        if isinstance(result, str):
            return validate_paymaster_and_data(result)
        raise PaymasterError("Invalid paymaster response")

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not await self.ready():
            raise PaymasterError("Paymaster provider is not configured")
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        response = await self._client.post(
            self._rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()
        if "error" in payload:
            raise PaymasterError(payload["error"])
        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
