"""
Execution Coordinator.

Runs one transaction end to end:
1. Pick the route (pinned, or via the Route Optimizer)
2. Bridge the gas cost to the execution chain when paying cross-chain
3. Execute through the sponsored or direct backend
4. Report progress on the request's update channel

Phases are strictly sequential; a failure in any of them ends the request
with a ``failed`` update carrying the error code and retryable flag.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, List, Optional, Set, Union

from ...logging_config import bind_request_context, clear_request_context
from ...providers.rpc import JsonRpcChainProvider
from ...services.gas_estimator import GasEstimator
from ...services.route_optimizer import RouteOptimizer
from ..bridge.models import BridgeRequest
from ..bridge.service import BridgeService
from ..chains import ChainRegistry
from ..models import (
    ExecutionResult,
    RouteAnalysis,
    RouteOption,
    TransactionIntent,
    TransactionUpdate,
    UpdateStatus,
)
from ..recovery.errors import Cancelled, NoExecutionMethod, classify_error, error_code
from .auth import ExecutionAuth
from .backends import DirectExecutionBackend, SponsoredExecutionBackend
from .events import UpdateChannel

logger = logging.getLogger(__name__)

UpdateListener = Callable[[TransactionUpdate], Any]

ExecutionBackend = Union[SponsoredExecutionBackend, DirectExecutionBackend]

# Pending async listener tasks, held until they finish.
_listener_tasks: Set[asyncio.Future] = set()


class ExecutionCoordinator:
    """
    Usage:
        coordinator = ExecutionCoordinator(registry, chain_provider, gas, optimizer, bridge, sponsored, direct)
        result = await coordinator.execute(intent, account, ExecutionAuth(private_key=...))
    """

    def __init__(
        self,
        registry: ChainRegistry,
        chain_provider: JsonRpcChainProvider,
        gas_estimator: GasEstimator,
        optimizer: RouteOptimizer,
        bridge: BridgeService,
        sponsored: SponsoredExecutionBackend,
        direct: DirectExecutionBackend,
    ) -> None:
        self._registry = registry
        self._chain = chain_provider
        self._gas = gas_estimator
        self._optimizer = optimizer
        self._bridge = bridge
        self._sponsored = sponsored
        self._direct = direct

    async def estimate(self, intent: TransactionIntent, account: str) -> RouteAnalysis:
        return await self._optimizer.analyze_optimal_route(intent, account)

    async def execute(
        self,
        intent: TransactionIntent,
        account: str,
        auth: ExecutionAuth,
        updates: Optional[UpdateChannel] = None,
        listeners: Optional[List[UpdateListener]] = None,
    ) -> ExecutionResult:
        request_id = uuid.uuid4().hex[:12]
        bind_request_context(request_id=request_id, account=account)

        def emit(status: UpdateStatus, **fields) -> None:
            self._publish(TransactionUpdate(status=status, **fields), updates, listeners)

        bridge_tx_hash: Optional[str] = None
        tx_hash: Optional[str] = None
        try:
            emit(UpdateStatus.PENDING)

            estimated_savings: Optional[int] = None
            if intent.is_pinned:
                route = await self._pinned_route(intent, account)
            else:
                analysis = await self._optimizer.analyze_optimal_route(intent, account)
                route = analysis.best_route
                estimated_savings = analysis.recommendation.estimated_savings
            bind_request_context(chain_id=route.execute_on_chain, pay_from_chain=route.pay_from_chain)
            logger.info(
                f"Executing on chain {route.execute_on_chain}, paying gas from chain {route.pay_from_chain}"
            )

            if not route.is_direct:
                emit(UpdateStatus.BRIDGING)
                bridge_tx_hash = await self._bridge_gas(route, account, intent, auth)

            emit(UpdateStatus.EXECUTING, bridge_tx_hash=bridge_tx_hash)
            backend = await self._select_backend(route.execute_on_chain, auth)
            logger.info(f"Using {backend.name} execution on chain {route.execute_on_chain}")
            outcome = await backend.execute(intent, route.execute_on_chain, account, auth)
            tx_hash = outcome.tx_hash

            result = ExecutionResult(
                tx_hash=outcome.tx_hash,
                executed_on_chain=route.execute_on_chain,
                gas_payment_chain=route.pay_from_chain,
                total_cost=route.total_cost,
                gas_used=outcome.gas_used,
                bridge_tx_hash=bridge_tx_hash,
                estimated_savings=estimated_savings,
            )
            emit(UpdateStatus.COMPLETED, tx_hash=outcome.tx_hash, bridge_tx_hash=bridge_tx_hash)
            logger.info(f"Execution completed: {outcome.tx_hash}")
            return result
        except asyncio.CancelledError:
            emit(
                UpdateStatus.FAILED,
                tx_hash=tx_hash,
                bridge_tx_hash=bridge_tx_hash,
                error="Execution cancelled",
                error_code=Cancelled.code,
                retryable=False,
            )
            raise
        except Exception as exc:
            logger.error(f"Execution failed: {exc}")
            emit(
                UpdateStatus.FAILED,
                tx_hash=tx_hash,
                bridge_tx_hash=bridge_tx_hash,
                error=str(exc),
                error_code=error_code(exc),
                retryable=classify_error(exc).recoverable,
            )
            raise
        finally:
            clear_request_context("request_id", "account", "chain_id", "pay_from_chain")

    async def _pinned_route(self, intent: TransactionIntent, account: str) -> RouteOption:
        execute_on = self._registry.get(intent.execute_on).chain_id
        pay_from = self._registry.get(intent.pay_from_chain).chain_id
        estimate = await self._gas.estimate(intent, execute_on, from_address=account)

        if execute_on == pay_from:
            return RouteOption(
                execute_on_chain=execute_on,
                pay_from_chain=pay_from,
                gas_cost=estimate.stablecoin_cost,
                estimated_time_seconds=estimate.estimated_time_seconds,
            )

        quote = await self._bridge.oracle.quote(estimate.stablecoin_cost, pay_from, execute_on, intent.transfer_mode)
        return RouteOption(
            execute_on_chain=execute_on,
            pay_from_chain=pay_from,
            gas_cost=estimate.stablecoin_cost,
            estimated_time_seconds=estimate.estimated_time_seconds + quote.estimated_time_seconds,
            bridge_cost=quote.fee,
        )

    async def _bridge_gas(
        self,
        route: RouteOption,
        account: str,
        intent: TransactionIntent,
        auth: ExecutionAuth,
    ) -> Optional[str]:
        signer = auth.signer_for(route.pay_from_chain, self._chain)
        if signer is None:
            raise NoExecutionMethod(
                f"No signer to bridge gas from chain {route.pay_from_chain}",
                chain_id=route.pay_from_chain,
            )

        request = BridgeRequest(
            amount=route.gas_cost,
            from_chain=route.pay_from_chain,
            to_chain=route.execute_on_chain,
            recipient=account,
            transfer_mode=intent.transfer_mode,
        )
        transfer = await self._bridge.bridge(
            request,
            signer,
            destination_signer=auth.signer_for(route.execute_on_chain, self._chain),
        )
        return transfer.source_tx_hash

    async def _select_backend(self, chain_id: int, auth: ExecutionAuth) -> ExecutionBackend:
        if await self._sponsored.supports(chain_id, auth):
            return self._sponsored
        if await self._direct.supports(chain_id, auth):
            return self._direct
        raise NoExecutionMethod(
            f"No paymaster-backed key or signer available for chain {chain_id}",
            chain_id=chain_id,
        )

    @staticmethod
    def _publish(
        update: TransactionUpdate,
        updates: Optional[UpdateChannel],
        listeners: Optional[List[UpdateListener]],
    ) -> None:
        if updates is not None:
            updates.publish(update)
        for listener in listeners or []:
            try:
                outcome = listener(update)
                if asyncio.iscoroutine(outcome):
                    task = asyncio.ensure_future(_guard_listener(outcome, update))
                    _listener_tasks.add(task)
                    task.add_done_callback(_listener_tasks.discard)
            except Exception as exc:
                logger.error(f"Update listener failed on {update.status.value}: {exc}")


async def _guard_listener(coro, update: TransactionUpdate) -> None:
    try:
        await coro
    except Exception as exc:
        logger.error(f"Update listener failed on {update.status.value}: {exc}")
