"""
Route Optimizer.

Enumerates every (execute-on, pay-from) pair the caller's balances can cover,
prices each one and recommends where to execute.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from ..config import settings
from ..core.bridge.oracle import BridgeFeeOracle
from ..core.chains import ChainRegistry
from ..core.models import (
    GasEstimate,
    QuickEstimate,
    Recommendation,
    RouteAnalysis,
    RouteOption,
    TransactionIntent,
    UnifiedBalance,
    Urgency,
    format_usdc,
)
from ..core.recovery.errors import NoViableRoute
from .balances import BalanceAggregator
from .gas_estimator import GasEstimator

logger = logging.getLogger(__name__)


class RouteOptimizer:
    """
    Usage:
        optimizer = RouteOptimizer(registry, balances, gas_estimator, oracle)
        analysis = await optimizer.analyze_optimal_route(intent, "0x...")
        analysis.best_route, analysis.recommendation
    """

    def __init__(
        self,
        registry: ChainRegistry,
        balances: BalanceAggregator,
        gas_estimator: GasEstimator,
        oracle: BridgeFeeOracle,
        savings_threshold: Optional[float] = None,
    ) -> None:
        self._registry = registry
        self._balances = balances
        self._gas = gas_estimator
        self._oracle = oracle
        threshold = savings_threshold if savings_threshold is not None else settings.savings_threshold
        self._savings_threshold = Decimal(str(threshold))

    async def analyze_optimal_route(
        self,
        intent: TransactionIntent,
        account: str,
        urgency: Optional[Urgency] = None,
    ) -> RouteAnalysis:
        """
        Rank every route for ``intent`` and recommend one.

        Raises:
            UnsupportedChainError: if a pinned chain is not supported
            NoViableRoute: if no chain holds enough USDC to cover gas
        """
        urgency = Urgency(urgency or intent.urgency)
        supported = self._registry.supported_chain_ids()

        if intent.wants_optimal_chain:
            estimates = await self._gas.estimate_multi_chain(intent, supported, urgency)
            target = min(estimates.values(), key=lambda e: (e.stablecoin_cost, e.native_cost)).chain_id
            execution_chains = [target] + [c for c in supported if c != target]
        else:
            target = self._registry.get(intent.execute_on).chain_id
            estimates = {target: await self._gas.estimate(intent, target, urgency, account)}
            execution_chains = [target]

        pay_from: Optional[int] = None
        if isinstance(intent.pay_from_chain, int):
            pay_from = self._registry.get(intent.pay_from_chain).chain_id

        unified = await self._balances.get_unified_balance(account)
        candidates = await asyncio.gather(
            *(self._routes_for(chain_id, estimates[chain_id], unified, intent) for chain_id in execution_chains)
        )
        routes = [route for group in candidates for route in group]
        if pay_from is not None:
            routes = [route for route in routes if route.pay_from_chain == pay_from]

        if not routes:
            required = estimates[target].stablecoin_cost
            raise NoViableRoute(
                f"No chain holds {format_usdc(required)} USDC to cover gas on {self._registry.name_for(target)}",
                required=required,
                target_chain=target,
            )

        routes.sort(key=RouteOption.sort_key)
        best = routes[0]
        recommendation = self._recommend(routes, target)
        logger.info(
            f"Route analysis: {len(routes)} routes, best executes on {best.execute_on_chain} "
            f"paying from {best.pay_from_chain} for {best.total_cost}"
        )
        return RouteAnalysis(best_route=best, all_routes=routes, recommendation=recommendation)

    async def _routes_for(
        self,
        execute_on: int,
        estimate: GasEstimate,
        unified: UnifiedBalance,
        intent: TransactionIntent,
    ) -> List[RouteOption]:
        gas_cost = estimate.stablecoin_cost
        routes: List[RouteOption] = []

        if unified.balance_on(execute_on) >= gas_cost:
            routes.append(RouteOption(
                execute_on_chain=execute_on,
                pay_from_chain=execute_on,
                gas_cost=gas_cost,
                estimated_time_seconds=estimate.estimated_time_seconds,
            ))

        if not self._registry.is_cctp_supported(execute_on):
            return routes

        sources = [
            entry.chain_id
            for entry in unified.per_chain
            if entry.chain_id != execute_on
            and entry.balance >= gas_cost
            and self._registry.is_cctp_supported(entry.chain_id)
        ]
        quotes = await asyncio.gather(
            *(self._oracle.quote(gas_cost, source, execute_on, intent.transfer_mode) for source in sources)
        )
        for quote in quotes:
            routes.append(RouteOption(
                execute_on_chain=execute_on,
                pay_from_chain=quote.from_chain,
                gas_cost=gas_cost,
                estimated_time_seconds=estimate.estimated_time_seconds + quote.estimated_time_seconds,
                bridge_cost=quote.fee,
            ))
        return routes

    def _recommend(self, routes: List[RouteOption], preferred: int) -> Recommendation:
        best = routes[0]
        if best.execute_on_chain == preferred:
            return Recommendation(
                chain_id=preferred,
                reason=f"{self._registry.name_for(preferred)} is the cheapest route",
            )

        preferred_routes = [route for route in routes if route.execute_on_chain == preferred]
        if not preferred_routes:
            return Recommendation(
                chain_id=best.execute_on_chain,
                reason=f"No route executes on {self._registry.name_for(preferred)}",
            )

        preferred_best = preferred_routes[0]
        savings = preferred_best.total_cost - best.total_cost
        if savings > preferred_best.total_cost * self._savings_threshold:
            percent = Decimal(savings) * 100 / preferred_best.total_cost
            return Recommendation(
                chain_id=best.execute_on_chain,
                reason=(
                    f"Executing on {self._registry.name_for(best.execute_on_chain)} saves "
                    f"{format_usdc(savings)} USDC ({percent:.0f}%)"
                ),
                estimated_savings=savings,
            )

        return Recommendation(
            chain_id=best.execute_on_chain,
            reason=f"{self._registry.name_for(best.execute_on_chain)} is cheapest by a small margin",
        )

    async def get_quick_estimate(self, intent: TransactionIntent, account: str) -> QuickEstimate:
        """
        Medium-urgency analysis condensed to whether and where ``intent`` can run.

        Never raises; any analysis failure reports ``can_execute=False``.
        """
        try:
            analysis = await self.analyze_optimal_route(intent, account, Urgency.MEDIUM)
        except Exception as exc:
            logger.warning(f"Quick estimate failed for {account}: {exc}")
            return QuickEstimate(
                can_execute=False,
                estimated_cost=0,
                recommended_chain=self._registry.supported_chain_ids()[0],
                requires_bridge=False,
            )

        best = analysis.best_route
        return QuickEstimate(
            can_execute=bool(analysis.all_routes),
            estimated_cost=best.total_cost,
            recommended_chain=best.execute_on_chain,
            requires_bridge=not best.is_direct,
        )

    @staticmethod
    def calculate_savings_opportunity(analysis: RouteAnalysis) -> Dict[str, float]:
        """Spread between the cheapest and the most expensive enumerated route."""
        cheapest = analysis.all_routes[0].total_cost
        most_expensive = max(route.total_cost for route in analysis.all_routes)
        savings = most_expensive - cheapest
        percentage = round(savings * 100 / most_expensive, 2) if most_expensive else 0.0
        return {"savings": savings, "percentage": percentage}
