"""Tests for route enumeration and recommendation."""

from typing import Dict, Optional

import pytest

from gasflow.core.bridge.oracle import BridgeFeeOracle, static_fee
from gasflow.core.models import GasEstimate, QuickEstimate, RouteAnalysis, RouteOption, TransactionIntent, Recommendation
from gasflow.core.recovery import NoViableRoute, UnsupportedChainError
from gasflow.services.balances import BalanceAggregator
from gasflow.services.route_optimizer import RouteOptimizer

ACCOUNT = "0x" + "ab" * 20
TARGET = "0x" + "12" * 20
EXPENSIVE = 5_000_000


class StubGasEstimator:
    """Fixed USDC gas cost per chain; native cost only breaks ties."""

    def __init__(self, costs: Dict[int, int], native: Optional[Dict[int, int]] = None):
        self.costs = costs
        self.native = native or {}

    def _estimate(self, chain_id: int) -> GasEstimate:
        cost = self.costs.get(chain_id, EXPENSIVE)
        return GasEstimate(
            chain_id=chain_id,
            gas_limit=100_000,
            gas_price=10 ** 9,
            native_cost=self.native.get(chain_id, 100),
            stablecoin_cost=cost,
            estimated_time_seconds=120,
        )

    async def estimate(self, intent, chain_id, urgency=None, from_address=None):
        return self._estimate(chain_id)

    async def estimate_multi_chain(self, intent, chain_ids=None, urgency=None):
        return {chain_id: self._estimate(chain_id) for chain_id in chain_ids}


def _optimizer(registry, make_chain_provider, balances, costs, native=None) -> RouteOptimizer:
    aggregator = BalanceAggregator(registry, make_chain_provider(balances))
    return RouteOptimizer(
        registry,
        aggregator,
        StubGasEstimator(costs, native),
        BridgeFeeOracle(registry),
        savings_threshold=0.20,
    )


class TestRouteEnumeration:
    @pytest.mark.asyncio
    async def test_direct_route_on_pinned_chain(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {84532: 5_000_000}, {84532: 200_000})

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)

        assert analysis.all_routes == [RouteOption(84532, 84532, 200_000, 120)]
        assert analysis.recommendation.chain_id == 84532
        assert analysis.recommendation.estimated_savings is None

    @pytest.mark.asyncio
    async def test_cross_chain_route_when_target_unfunded(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {421614: 5_000_000}, {84532: 200_000})

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)

        best = analysis.best_route
        assert best.execute_on_chain == 84532
        assert best.pay_from_chain == 421614
        assert best.bridge_cost == static_fee(421614, 84532)
        assert best.total_cost == 200_000 + static_fee(421614, 84532)
        # gas confirmation plus a fast transfer
        assert best.estimated_time_seconds == 120 + 30
        assert all(route.pay_from_chain != 84532 for route in analysis.all_routes)

    @pytest.mark.asyncio
    async def test_source_must_cover_gas(self, registry, make_chain_provider):
        optimizer = _optimizer(
            registry, make_chain_provider, {421614: 150_000, 43113: 300_000}, {84532: 200_000}
        )

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)

        assert [route.pay_from_chain for route in analysis.all_routes] == [43113]

    @pytest.mark.asyncio
    async def test_pay_from_filter(self, registry, make_chain_provider):
        optimizer = _optimizer(
            registry, make_chain_provider, {84532: 5_000_000, 421614: 5_000_000}, {84532: 200_000}
        )
        intent = TransactionIntent(to=TARGET, execute_on=84532, pay_from_chain=421614)

        analysis = await optimizer.analyze_optimal_route(intent, ACCOUNT)

        assert {route.pay_from_chain for route in analysis.all_routes} == {421614}

    @pytest.mark.asyncio
    async def test_no_viable_route(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {84532: 10}, {84532: 200_000})

        with pytest.raises(NoViableRoute) as exc_info:
            await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)
        assert exc_info.value.required == 200_000

    @pytest.mark.asyncio
    async def test_unsupported_pinned_chain(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {84532: 5_000_000}, {84532: 200_000})

        with pytest.raises(UnsupportedChainError):
            await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET, execute_on=999), ACCOUNT)


class TestRecommendation:
    @pytest.mark.asyncio
    async def test_optimal_target_is_cheapest_in_usdc(self, registry, make_chain_provider):
        # 84532 burns fewer wei but its gas token makes the USDC quote higher
        optimizer = _optimizer(
            registry,
            make_chain_provider,
            {84532: 10_000_000, 421614: 10_000_000},
            costs={84532: 300_000, 421614: 100_000},
            native={84532: 1, 421614: 50},
        )

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET), ACCOUNT)

        assert analysis.best_route == RouteOption(421614, 421614, 100_000, 120)
        assert analysis.recommendation.chain_id == 421614
        assert analysis.recommendation.estimated_savings is None
        assert "cheapest route" in analysis.recommendation.reason

    @pytest.mark.asyncio
    async def test_switch_recommended_above_threshold(self, registry, make_chain_provider):
        # the cheapest-gas chain is unfunded, so reaching it costs a bridge fee
        optimizer = _optimizer(
            registry,
            make_chain_provider,
            {421614: 10_000_000},
            costs={84532: 100_000, 421614: 200_000},
            native={84532: 1, 421614: 2},
        )

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET), ACCOUNT)

        assert analysis.best_route == RouteOption(421614, 421614, 200_000, 120)
        assert analysis.recommendation.chain_id == 421614
        assert analysis.recommendation.estimated_savings == 100_000 + static_fee(421614, 84532) - 200_000
        assert "saves" in analysis.recommendation.reason

    @pytest.mark.asyncio
    async def test_small_margin_carries_no_savings(self, registry, make_chain_provider):
        optimizer = _optimizer(
            registry,
            make_chain_provider,
            {421614: 10_000_000},
            costs={84532: 100_000, 421614: 600_000},
            native={84532: 1, 421614: 6},
        )

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET), ACCOUNT)

        assert analysis.best_route.execute_on_chain == 421614
        assert analysis.recommendation.chain_id == 421614
        assert analysis.recommendation.estimated_savings is None
        assert "small margin" in analysis.recommendation.reason

    @pytest.mark.asyncio
    async def test_routes_are_sorted(self, registry, make_chain_provider):
        optimizer = _optimizer(
            registry,
            make_chain_provider,
            {84532: 10_000_000, 421614: 10_000_000},
            costs={84532: 1_000_000, 421614: 100_000},
        )

        analysis = await optimizer.analyze_optimal_route(TransactionIntent(to=TARGET), ACCOUNT)
        totals = [route.total_cost for route in analysis.all_routes]

        assert totals == sorted(totals)
        assert analysis.best_route is analysis.all_routes[0]

    @pytest.mark.asyncio
    async def test_quick_estimate_summarises_best_route(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {421614: 5_000_000}, {84532: 200_000})

        quick = await optimizer.get_quick_estimate(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)

        assert quick.can_execute is True
        assert quick.estimated_cost == 200_000 + static_fee(421614, 84532)
        assert quick.recommended_chain == 84532
        assert quick.requires_bridge is True

    @pytest.mark.asyncio
    async def test_quick_estimate_without_route(self, registry, make_chain_provider):
        optimizer = _optimizer(registry, make_chain_provider, {}, {84532: 200_000})

        quick = await optimizer.get_quick_estimate(TransactionIntent(to=TARGET, execute_on=84532), ACCOUNT)

        assert quick == QuickEstimate(
            can_execute=False,
            estimated_cost=0,
            recommended_chain=registry.supported_chain_ids()[0],
            requires_bridge=False,
        )


class TestSavingsOpportunity:
    def test_spread_between_cheapest_and_most_expensive(self):
        cheap = RouteOption(421614, 421614, 100_000, 120)
        pricey = RouteOption(84532, 84532, 400_000, 120)
        analysis = RouteAnalysis(cheap, [cheap, pricey], Recommendation(421614, "cheapest"))

        assert RouteOptimizer.calculate_savings_opportunity(analysis) == {"savings": 300_000, "percentage": 75.0}

    def test_single_route_has_no_savings(self):
        only = RouteOption(421614, 421614, 100_000, 120)
        analysis = RouteAnalysis(only, [only], Recommendation(421614, "only"))

        assert RouteOptimizer.calculate_savings_opportunity(analysis) == {"savings": 0, "percentage": 0.0}
