"""
Gas Estimator.

Estimates what executing an intent costs on a chain, first in native gas
(wei) and then in USDC minor units using a cached native token price.

Every external read degrades to a deterministic fallback; an estimate is
always returned.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_CEILING, Decimal
from typing import Dict, List, Optional

from ..cache import TTLCache
from ..config import settings
from ..core.chains import ChainRegistry
from ..core.models import GasEstimate, TransactionIntent, Urgency
from ..providers.base import ChainDataProvider, PriceProvider

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 21_000
DEFAULT_GAS_PRICE_WEI = 20 * 10 ** 9
GAS_LIMIT_BUFFER = Decimal("1.1")

# Percent of the chain's current gas price per urgency tier
URGENCY_PRICE_PERCENT: Dict[Urgency, int] = {
    Urgency.LOW: 80,
    Urgency.MEDIUM: 100,
    Urgency.HIGH: 120,
}

# Expected confirmation time per urgency tier (advisory)
URGENCY_TIME_SECONDS: Dict[Urgency, int] = {
    Urgency.LOW: 300,
    Urgency.MEDIUM: 120,
    Urgency.HIGH: 30,
}

# CCTP rejects burns below 0.01 USDC; quotes under it are raised to 0.10 USDC
PROTOCOL_MIN_AMOUNT = 10_000
PRACTICAL_MIN_COST = 100_000

FALLBACK_STABLECOIN_COST = 1_000_000
FALLBACK_TIME_SECONDS = 120

FALLBACK_NATIVE_PRICES: Dict[str, Decimal] = {
    "ETH": Decimal("2000"),
    "AVAX": Decimal("30"),
    "MATIC": Decimal("0.8"),
}

WEI_PER_NATIVE = Decimal(10) ** 18
USDC_UNIT = Decimal(10) ** 6


class NativePriceOracle:
    """
    USD prices for gas tokens.

    All tokens are fetched in one request and cached together. Concurrent
    misses share a single in-flight fetch; a failed fetch falls back to static
    prices, which are not cached.
    """

    CACHE_KEY = "native-prices"

    def __init__(
        self,
        price_provider: PriceProvider,
        cache: Optional[TTLCache] = None,
    ) -> None:
        self._provider = price_provider
        self._cache = cache or TTLCache(
            default_ttl=settings.price_cache_ttl_seconds,
            max_size=16,
            name="native-prices",
        )

    async def get_prices(self) -> Dict[str, Decimal]:
        try:
            prices = await self._cache.get_or_load(self.CACHE_KEY, self._fetch)
        except Exception as exc:
            logger.warning(f"Price feed unavailable, using fallback prices: {exc}")
            return dict(FALLBACK_NATIVE_PRICES)
        return {**FALLBACK_NATIVE_PRICES, **prices}

    async def get_price(self, symbol: str) -> Decimal:
        prices = await self.get_prices()
        return prices.get(symbol.upper(), FALLBACK_NATIVE_PRICES["ETH"])

    async def _fetch(self) -> Dict[str, Decimal]:
        prices = await self._provider.get_native_prices(list(FALLBACK_NATIVE_PRICES))
        if not prices:
            raise ValueError("Price feed returned no prices")
        return prices


def native_to_stablecoin(native_cost_wei: int, price_usd: Decimal) -> int:
    """Convert wei to USDC minor units, rounding up so gas is never under-quoted."""
    usd_minor = Decimal(native_cost_wei) * price_usd * USDC_UNIT / WEI_PER_NATIVE
    return int(usd_minor.to_integral_value(rounding=ROUND_CEILING))


def tiered_gas_price(base_price: int, urgency: Urgency) -> int:
    return base_price * URGENCY_PRICE_PERCENT[urgency] // 100


class GasEstimator:
    """
    Usage:
        estimator = GasEstimator(registry, chain_provider, price_oracle)
        estimate = await estimator.estimate(intent, 84532, Urgency.HIGH)
        estimate.stablecoin_cost   # USDC minor units
    """

    def __init__(
        self,
        registry: ChainRegistry,
        chain_provider: ChainDataProvider,
        price_oracle: NativePriceOracle,
        gas_price_cache: Optional[TTLCache] = None,
    ) -> None:
        self._registry = registry
        self._provider = chain_provider
        self._prices = price_oracle
        self._gas_price_cache = gas_price_cache or TTLCache(
            default_ttl=settings.gas_price_cache_ttl_seconds,
            max_size=64,
            name="gas-prices",
        )

    async def estimate(
        self,
        intent: TransactionIntent,
        chain_id: int,
        urgency: Optional[Urgency] = None,
        from_address: Optional[str] = None,
    ) -> GasEstimate:
        urgency = Urgency(urgency or intent.urgency)
        self._registry.get(chain_id)
        try:
            return await self._estimate(intent, chain_id, urgency, from_address)
        except Exception as exc:
            logger.warning(f"Gas estimation failed on chain {chain_id}, using fallback estimate: {exc}")
            return self.fallback_estimate(chain_id)

    async def _estimate(
        self,
        intent: TransactionIntent,
        chain_id: int,
        urgency: Urgency,
        from_address: Optional[str],
    ) -> GasEstimate:
        config = self._registry.get(chain_id)

        gas_limit, base_price, native_price = await asyncio.gather(
            self.estimate_gas_limit(intent, chain_id, from_address),
            self.get_gas_price(chain_id),
            self._prices.get_price(config.gas_token_symbol),
        )
        gas_price = tiered_gas_price(base_price, urgency)
        native_cost = gas_limit * gas_price

        stablecoin_cost = native_to_stablecoin(native_cost, native_price)
        if stablecoin_cost < PROTOCOL_MIN_AMOUNT:
            logger.info(
                f"Gas cost {stablecoin_cost} on {config.name} is below the bridge minimum; "
                f"quoting {PRACTICAL_MIN_COST}"
            )
            stablecoin_cost = PRACTICAL_MIN_COST

        return GasEstimate(
            chain_id=chain_id,
            gas_limit=gas_limit,
            gas_price=gas_price,
            native_cost=native_cost,
            stablecoin_cost=stablecoin_cost,
            estimated_time_seconds=URGENCY_TIME_SECONDS[urgency],
        )

    async def estimate_gas_limit(
        self,
        intent: TransactionIntent,
        chain_id: int,
        from_address: Optional[str] = None,
    ) -> int:
        if intent.gas_limit:
            return intent.gas_limit
        try:
            estimated = await self._provider.estimate_gas(chain_id, intent.to_call(from_address))
        except Exception as exc:
            logger.warning(f"eth_estimateGas failed on chain {chain_id}, using {DEFAULT_GAS_LIMIT}: {exc}")
            return DEFAULT_GAS_LIMIT
        return int(Decimal(estimated) * GAS_LIMIT_BUFFER)

    async def get_gas_price(self, chain_id: int) -> int:
        async def load() -> int:
            return await self._provider.get_gas_price(chain_id)

        try:
            return await self._gas_price_cache.get_or_load(chain_id, load)
        except Exception as exc:
            logger.warning(f"Gas price unavailable on chain {chain_id}, using 20 gwei: {exc}")
            return DEFAULT_GAS_PRICE_WEI

    def fallback_estimate(self, chain_id: int) -> GasEstimate:
        return GasEstimate(
            chain_id=chain_id,
            gas_limit=DEFAULT_GAS_LIMIT,
            gas_price=DEFAULT_GAS_PRICE_WEI,
            native_cost=DEFAULT_GAS_LIMIT * DEFAULT_GAS_PRICE_WEI,
            stablecoin_cost=FALLBACK_STABLECOIN_COST,
            estimated_time_seconds=FALLBACK_TIME_SECONDS,
            is_fallback=True,
        )

    async def estimate_multi_chain(
        self,
        intent: TransactionIntent,
        chain_ids: Optional[List[int]] = None,
        urgency: Optional[Urgency] = None,
    ) -> Dict[int, GasEstimate]:
        chain_ids = chain_ids or self._registry.supported_chain_ids()
        estimates = await asyncio.gather(*(self.estimate(intent, c, urgency) for c in chain_ids))
        return dict(zip(chain_ids, estimates))

    async def get_cheapest_chain(
        self,
        intent: TransactionIntent,
        chain_ids: Optional[List[int]] = None,
        urgency: Optional[Urgency] = None,
    ) -> GasEstimate:
        """Chain with the lowest USDC gas cost; ties go to the smaller native quote."""
        estimates = await self.estimate_multi_chain(intent, chain_ids, urgency)
        return min(estimates.values(), key=lambda e: (e.stablecoin_cost, e.native_cost))
