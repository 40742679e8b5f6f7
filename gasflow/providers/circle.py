"""
Circle Iris API provider.

Covers the three CCTP v2 endpoints the engine consumes:
- /v2/messages/{sourceDomain}?transactionHash=...   attestation lookup
- /v2/burn/USDC/fees/{sourceDomain}/{destDomain}    fee schedule (bps)
- /v2/fastBurn/USDC/allowance                        remaining fast allowance
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from .base import Provider

logger = logging.getLogger(__name__)


class CircleApiError(Exception):
    """Circle API returned an error or an unexpected payload."""
    pass


@dataclass
class Attestation:
    status: str                    # "pending_confirmations" | "complete" | ...
    message: Optional[str] = None
    attestation: Optional[str] = None
    event_nonce: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return (
            self.status == "complete"
            and bool(self.message) and self.message != "0x"
            and bool(self.attestation) and self.attestation != "PENDING"
        )


@dataclass
class FeeTier:
    finality_threshold: int
    minimum_fee_bps: Decimal


class CircleIrisProvider(Provider):
    name = "circle"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.circle_api_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.circle_api_key
        self.timeout_s = settings.attestation_request_timeout_seconds
        self._client = client

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "Circle API URL not configured"}

        try:
            response = await self._get("/v2/fastBurn/USDC/allowance", timeout=settings.allowance_api_timeout_seconds)
            response.raise_for_status()
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s)

        return await self._client.get(
            path,
            params=params,
            headers=self._build_headers(),
            timeout=timeout or self.timeout_s,
        )

    async def get_attestation(self, source_domain: int, tx_hash: str) -> Optional[Attestation]:
        """
        Look up the attestation for a burn transaction.

        Returns None while Iris has not indexed the burn yet (404 or empty list).
        """
        response = await self._get(f"/v2/messages/{source_domain}", params={"transactionHash": tx_hash})
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise CircleApiError(f"Attestation API error {response.status_code}: {response.text[:200]}")

        data = response.json()
        messages = data.get("messages") if isinstance(data, dict) else None
        if not messages:
            return None

        first = messages[0]
        return Attestation(
            status=str(first.get("status", "pending")),
            message=first.get("message"),
            attestation=first.get("attestation"),
            event_nonce=first.get("eventNonce"),
        )

    async def get_burn_fees(self, source_domain: int, dest_domain: int) -> List[FeeTier]:
        """Fee schedule in basis points for a domain pair."""
        response = await self._get(
            f"/v2/burn/USDC/fees/{source_domain}/{dest_domain}",
            timeout=settings.fee_api_timeout_seconds,
        )
        if response.status_code >= 400:
            raise CircleApiError(f"Fee API error {response.status_code}")

        data = response.json()
        try:
            if isinstance(data, list):
                return [
                    FeeTier(
                        finality_threshold=int(item["finalityThreshold"]),
                        minimum_fee_bps=Decimal(str(item["minimumFee"])),
                    )
                    for item in data
                ]
            # Legacy shape: {"data": {"minimumFee": ...}}
            if isinstance(data, dict) and isinstance(data.get("data"), dict) and "minimumFee" in data["data"]:
                return [FeeTier(finality_threshold=0, minimum_fee_bps=Decimal(str(data["data"]["minimumFee"])))]
        except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
            raise CircleApiError(f"Malformed fee response: {exc}") from exc

        raise CircleApiError("Unexpected fee response shape")

    async def get_fast_burn_allowance(self) -> int:
        """Remaining fast transfer allowance in USDC minor units."""
        response = await self._get(
            "/v2/fastBurn/USDC/allowance",
            timeout=settings.allowance_api_timeout_seconds,
        )
        if response.status_code >= 400:
            raise CircleApiError(f"Allowance API error {response.status_code}")

        data = response.json()
        if not isinstance(data, dict) or data.get("allowance") is None:
            raise CircleApiError("Allowance missing from response")
        try:
            return int(Decimal(str(data["allowance"])) * 10 ** 6)
        except (InvalidOperation, ValueError) as exc:
            raise CircleApiError(f"Malformed allowance: {data['allowance']!r}") from exc

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
