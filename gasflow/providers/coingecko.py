from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from .base import PriceProvider

# Gas token symbol -> Coingecko coin id
NATIVE_COIN_IDS: Dict[str, str] = {
    "ETH": "ethereum",
    "AVAX": "avalanche-2",
    "MATIC": "matic-network",
}


class CoingeckoProvider(PriceProvider):
    """Coingecko API provider for gas token prices"""

    name = "coingecko"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.coingecko_api_key
        self.base_url = (base_url or settings.coingecko_base_url).rstrip("/")
        self.timeout_s = settings.price_timeout_seconds
        self._client = client

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-CG-Demo-API-Key"] = self.api_key
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def ready(self) -> bool:
        return bool(self.base_url)  # API key is optional for basic tier

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._get_client().get(
                f"{self.base_url}/ping",
                headers=self._build_headers(),
                timeout=self.timeout_s,
            )
            response.raise_for_status()
            return {"status": "healthy", "latency_ms": int(response.elapsed.total_seconds() * 1000)}
        except Exception as e:
            return {"status": "error", "reason": str(e)}

    async def get_native_prices(self, symbols: List[str]) -> Dict[str, Decimal]:
        """USD prices keyed by gas token symbol; unknown symbols are skipped."""
        ids = {NATIVE_COIN_IDS[s.upper()]: s.upper() for s in symbols if s.upper() in NATIVE_COIN_IDS}
        if not ids:
            return {}

        params = {
            "ids": ",".join(sorted(ids)),
            "vs_currencies": "usd",
        }

        response = await self._get_client().get(
            f"{self.base_url}/simple/price",
            headers=self._build_headers(),
            params=params,
            timeout=self.timeout_s,
        )
        response.raise_for_status()
        data = response.json()

        prices: Dict[str, Decimal] = {}
        for coin_id, symbol in ids.items():
            price = (data.get(coin_id) or {}).get("usd")
            if price is not None and Decimal(str(price)) > 0:
                prices[symbol] = Decimal(str(price))
        return prices

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
