"""
GasFlow client.

Wires the chain registry, providers, services, bridge and execution layers
into one object and exposes the caller-facing operations.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .cache import TTLCache
from .config import Settings, settings
from .core.bridge.oracle import BridgeFeeOracle
from .core.bridge.orchestrator import CctpBridgeOrchestrator
from .core.bridge.service import BridgeService, build_bridge_service
from .core.chains import ChainConfig, ChainRegistry
from .core.execution.auth import ExecutionAuth
from .core.execution.backends import DirectExecutionBackend, SponsoredExecutionBackend
from .core.execution.coordinator import ExecutionCoordinator, UpdateListener
from .core.execution.events import UpdateChannel
from .core.models import ExecutionResult, RouteAnalysis, TransactionIntent, UnifiedBalance
from .providers.bundler import BundlerProvider
from .providers.circle import CircleIrisProvider
from .providers.coingecko import CoingeckoProvider
from .providers.paymaster import PaymasterProvider
from .providers.rpc import JsonRpcChainProvider
from .services.balances import BalanceAggregator, BalanceCallback
from .services.gas_estimator import GasEstimator, NativePriceOracle
from .services.route_optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


@dataclass
class ExecutionHandle:
    """A running execute request: consume ``updates`` while awaiting ``task``."""
    updates: UpdateChannel
    task: "asyncio.Task[ExecutionResult]"

    async def result(self) -> ExecutionResult:
        return await self.task

    def cancel(self) -> bool:
        return self.task.cancel()


class GasFlowClient:
    """
    Usage:
        client = GasFlowClient()
        analysis = await client.estimate_transaction(intent, "0x...")
        result = await client.execute(intent, "0x...", ExecutionAuth(private_key="0x..."))
        await client.aclose()
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        registry: Optional[ChainRegistry] = None,
        chain_provider: Optional[JsonRpcChainProvider] = None,
        attestation_provider: Optional[CircleIrisProvider] = None,
        price_provider: Optional[CoingeckoProvider] = None,
        bundler: Optional[BundlerProvider] = None,
        paymaster: Optional[PaymasterProvider] = None,
        bridge_service: Optional[BridgeService] = None,
    ) -> None:
        self.config = config or settings
        self.registry = registry or ChainRegistry(
            use_testnet=self.config.use_testnet,
            rpc_overrides=self.config.rpc_urls,
        )

        self._chain = chain_provider or JsonRpcChainProvider(self.registry)
        self._iris = attestation_provider or CircleIrisProvider()
        self._prices = price_provider or CoingeckoProvider()
        self._bundler = bundler or BundlerProvider()
        self._paymaster = paymaster or PaymasterProvider()

        # Caches are shared by every request this client serves
        self.balances = BalanceAggregator(
            self.registry,
            self._chain,
            cache=TTLCache(
                default_ttl=self.config.balance_cache_ttl_seconds,
                max_size=self.config.max_cache_size,
                name="balances",
            ),
        )
        self.gas_estimator = GasEstimator(
            self.registry,
            self._chain,
            NativePriceOracle(
                self._prices,
                cache=TTLCache(default_ttl=self.config.price_cache_ttl_seconds, max_size=16, name="native-prices"),
            ),
            gas_price_cache=TTLCache(
                default_ttl=self.config.gas_price_cache_ttl_seconds,
                max_size=64,
                name="gas-prices",
            ),
        )
        self.oracle = BridgeFeeOracle(
            self.registry,
            fee_source=self._iris,
            fee_timeout_s=self.config.fee_api_timeout_seconds,
            allowance_timeout_s=self.config.allowance_api_timeout_seconds,
        )
        self.bridge = bridge_service or build_bridge_service(
            self.config,
            self.registry,
            self.oracle,
            orchestrator=CctpBridgeOrchestrator(self.registry, self._chain, self._iris, self.balances),
        )
        self.optimizer = RouteOptimizer(
            self.registry,
            self.balances,
            self.gas_estimator,
            self.bridge.oracle,
            savings_threshold=self.config.savings_threshold,
        )
        self.coordinator = ExecutionCoordinator(
            self.registry,
            self._chain,
            self.gas_estimator,
            self.optimizer,
            self.bridge,
            SponsoredExecutionBackend(self.registry, self._chain, self._bundler, self._paymaster),
            DirectExecutionBackend(self.registry, self._chain),
        )
        self._listeners: List[UpdateListener] = []

    async def estimate_transaction(self, intent: TransactionIntent, account: str) -> RouteAnalysis:
        return await self.coordinator.estimate(intent, account)

    async def get_optimal_route(self, intent: TransactionIntent, account: str) -> RouteAnalysis:
        return await self.optimizer.analyze_optimal_route(intent, account)

    async def execute(
        self,
        intent: TransactionIntent,
        account: str,
        auth: ExecutionAuth,
        updates: Optional[UpdateChannel] = None,
    ) -> ExecutionResult:
        return await self.coordinator.execute(intent, account, auth, updates=updates, listeners=list(self._listeners))

    def execute_stream(self, intent: TransactionIntent, account: str, auth: ExecutionAuth) -> ExecutionHandle:
        """Start execution in a task and return its update channel alongside it."""
        channel = UpdateChannel(maxsize=self.config.update_channel_size)
        task = asyncio.create_task(self.execute(intent, account, auth, updates=channel))
        return ExecutionHandle(updates=channel, task=task)

    def on(self, listener: UpdateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def off(self, listener: UpdateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def get_unified_balance(self, account: str) -> UnifiedBalance:
        return await self.balances.get_unified_balance(account)

    def subscribe_balance(self, account: str, interval_ms: int, callback: BalanceCallback) -> None:
        self.balances.subscribe(account, interval_ms, callback)

    def unsubscribe_balance(self) -> None:
        self.balances.unsubscribe()

    def get_supported_chains(self) -> List[ChainConfig]:
        return self.registry.all()

    def get_chain_status(self, chain_id: int) -> Dict[str, Any]:
        supported = self.registry.is_supported(chain_id)
        config = self.registry.get(chain_id) if supported else None
        return {
            "chain_id": chain_id,
            "name": self.registry.name_for(chain_id),
            "available": supported,
            "paymaster_supported": bool(config and config.paymaster_address),
            "cctp_supported": self.registry.is_cctp_supported(chain_id),
        }

    async def health_check(self) -> Dict[str, Any]:
        providers = [self._chain, self._iris, self._prices, self._bundler, self._paymaster]
        results = await asyncio.gather(*(p.health_check() for p in providers))
        return {p.name: r for p, r in zip(providers, results)}

    async def aclose(self) -> None:
        self.balances.unsubscribe()
        for provider in (self._chain, self._iris, self._prices, self._bundler, self._paymaster):
            await provider.close()


_client: Optional[GasFlowClient] = None


def get_gasflow_client() -> GasFlowClient:
    """Get the shared client instance."""
    global _client
    if _client is None:
        _client = GasFlowClient()
    return _client
