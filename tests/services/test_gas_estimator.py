"""Tests for gas estimation and USDC conversion."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from gasflow.core.models import TransactionIntent, Urgency
from gasflow.core.recovery import ChainUnavailable, UnsupportedChainError
from gasflow.services.gas_estimator import (
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PRICE_WEI,
    PRACTICAL_MIN_COST,
    GasEstimator,
    NativePriceOracle,
    native_to_stablecoin,
)

TARGET = "0x" + "12" * 20


def _price_provider(prices=None, error=None):
    provider = AsyncMock()
    if error is not None:
        provider.get_native_prices.side_effect = error
    else:
        provider.get_native_prices.return_value = prices if prices is not None else {"ETH": Decimal("2000")}
    return provider


def _estimator(registry, chain_provider, price_provider=None) -> GasEstimator:
    oracle = NativePriceOracle(price_provider or _price_provider())
    return GasEstimator(registry, chain_provider, oracle)


class TestConversion:
    def test_native_to_stablecoin_rounds_up(self):
        # 21000 gas at 1 gwei and $2000/ETH = $0.042
        assert native_to_stablecoin(21_000 * 10 ** 9, Decimal("2000")) == 42_000
        assert native_to_stablecoin(1, Decimal("2000")) == 1


class TestGasEstimator:
    @pytest.mark.asyncio
    async def test_estimate_applies_buffer_and_price(self, registry, chain_provider):
        estimate = await _estimator(registry, chain_provider).estimate(TransactionIntent(to=TARGET), 84532)

        assert estimate.gas_limit == 110_000
        assert estimate.gas_price == 10 ** 9
        assert estimate.native_cost == 110_000 * 10 ** 9
        assert estimate.stablecoin_cost == 220_000
        assert estimate.estimated_time_seconds == 120
        assert not estimate.is_fallback

    @pytest.mark.asyncio
    async def test_urgency_tiers(self, registry, chain_provider):
        estimator = _estimator(registry, chain_provider)
        intent = TransactionIntent(to=TARGET)

        low = await estimator.estimate(intent, 84532, Urgency.LOW)
        high = await estimator.estimate(intent, 84532, Urgency.HIGH)

        assert low.gas_price == 800_000_000
        assert high.gas_price == 1_200_000_000
        assert low.stablecoin_cost < high.stablecoin_cost
        assert high.estimated_time_seconds < low.estimated_time_seconds

    @pytest.mark.asyncio
    async def test_explicit_gas_limit_skips_estimation(self, registry, chain_provider):
        chain_provider.estimate_error = AssertionError("should not estimate")

        estimate = await _estimator(registry, chain_provider).estimate(TransactionIntent(to=TARGET, gas_limit=50_000), 84532)

        assert estimate.gas_limit == 50_000

    @pytest.mark.asyncio
    async def test_tiny_cost_raised_to_practical_minimum(self, registry, make_chain_provider):
        provider = make_chain_provider(gas_price=10 ** 6)

        estimate = await _estimator(registry, provider).estimate(TransactionIntent(to=TARGET), 84532)

        assert estimate.stablecoin_cost == PRACTICAL_MIN_COST

    @pytest.mark.asyncio
    async def test_failed_gas_estimate_uses_default_limit(self, registry, chain_provider):
        chain_provider.estimate_error = ChainUnavailable("rpc down")

        estimate = await _estimator(registry, chain_provider).estimate(TransactionIntent(to=TARGET), 84532)

        assert estimate.gas_limit == DEFAULT_GAS_LIMIT

    @pytest.mark.asyncio
    async def test_failed_gas_price_uses_default(self, registry, chain_provider):
        chain_provider.get_gas_price = AsyncMock(side_effect=ChainUnavailable("rpc down"))

        estimate = await _estimator(registry, chain_provider).estimate(TransactionIntent(to=TARGET), 84532)

        assert estimate.gas_price == DEFAULT_GAS_PRICE_WEI

    @pytest.mark.asyncio
    async def test_price_feed_down_uses_static_prices(self, registry, chain_provider):
        price_provider = _price_provider(error=RuntimeError("coingecko down"))

        estimate = await _estimator(registry, chain_provider, price_provider).estimate(TransactionIntent(to=TARGET), 84532)

        # static ETH price matches the mocked live price
        assert estimate.stablecoin_cost == 220_000

    @pytest.mark.asyncio
    async def test_unsupported_chain_raises(self, registry, chain_provider):
        with pytest.raises(UnsupportedChainError):
            await _estimator(registry, chain_provider).estimate(TransactionIntent(to=TARGET), 999)

    @pytest.mark.asyncio
    async def test_fallback_estimate(self, registry, chain_provider):
        fallback = _estimator(registry, chain_provider).fallback_estimate(84532)

        assert fallback.is_fallback
        assert fallback.stablecoin_cost == 1_000_000

    @pytest.mark.asyncio
    async def test_multi_chain_and_cheapest(self, registry, chain_provider):
        price_provider = _price_provider({"ETH": Decimal("2000"), "AVAX": Decimal("20"), "MATIC": Decimal("0.5")})
        estimator = _estimator(registry, chain_provider, price_provider)
        intent = TransactionIntent(to=TARGET)

        estimates = await estimator.estimate_multi_chain(intent, [84532, 43113])
        cheapest = await estimator.get_cheapest_chain(intent, [84532, 43113])

        assert set(estimates) == {84532, 43113}
        assert estimates[43113].stablecoin_cost < estimates[84532].stablecoin_cost
        assert cheapest.chain_id == 43113

    @pytest.mark.asyncio
    async def test_cheapest_chain_compares_usdc_cost(self, registry, chain_provider):
        # AVAX gas burns more wei but costs fewer dollars than ETH gas
        gas_prices = {84532: 10 ** 9, 43113: 25 * 10 ** 9}
        chain_provider.get_gas_price = AsyncMock(side_effect=lambda chain_id: gas_prices[chain_id])
        price_provider = _price_provider({"ETH": Decimal("2000"), "AVAX": Decimal("20")})
        estimator = _estimator(registry, chain_provider, price_provider)

        estimates = await estimator.estimate_multi_chain(TransactionIntent(to=TARGET), [84532, 43113])
        cheapest = await estimator.get_cheapest_chain(TransactionIntent(to=TARGET), [84532, 43113])

        assert estimates[43113].native_cost > estimates[84532].native_cost
        assert cheapest.chain_id == 43113

    @pytest.mark.asyncio
    async def test_gas_price_is_cached(self, registry, chain_provider):
        chain_provider.get_gas_price = AsyncMock(return_value=10 ** 9)
        estimator = _estimator(registry, chain_provider)

        await estimator.get_gas_price(84532)
        await estimator.get_gas_price(84532)

        assert chain_provider.get_gas_price.await_count == 1


class TestNativePriceOracle:
    @pytest.mark.asyncio
    async def test_prices_fetched_once(self):
        provider = _price_provider({"ETH": Decimal("3000")})
        oracle = NativePriceOracle(provider)

        assert await oracle.get_price("eth") == Decimal("3000")
        assert await oracle.get_price("AVAX") == Decimal("30")
        assert provider.get_native_prices.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_feed_not_cached(self):
        provider = _price_provider({})
        oracle = NativePriceOracle(provider)

        await oracle.get_prices()
        await oracle.get_prices()

        assert provider.get_native_prices.await_count == 2
