"""
Balance Aggregator.

Reads the caller's USDC balance on every supported chain and presents it as
one unified balance.

Features:
- Parallel fan-out across chains
- Per (account, chain) TTL cache shared by concurrent requests
- Degrades a failing chain to zero instead of failing the aggregate
- Optional periodic refresh subscription
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Union

from ..cache import TTLCache
from ..config import settings
from ..core.chains import ChainRegistry
from ..core.models import ChainBalance, UnifiedBalance
from ..core.recovery import ChainUnavailable, RetryConfig, RetryStrategy
from ..providers.base import ChainDataProvider

logger = logging.getLogger(__name__)

BalanceCallback = Callable[[UnifiedBalance], Union[None, Awaitable[None]]]


class BalanceAggregator:
    """
    Multi-chain USDC balance reader.

    Usage:
        aggregator = BalanceAggregator(registry, chain_provider)
        unified = await aggregator.get_unified_balance("0x...")
        unified.total_amount, unified.per_chain
    """

    def __init__(
        self,
        registry: ChainRegistry,
        chain_provider: ChainDataProvider,
        cache: Optional[TTLCache] = None,
        retry: Optional[RetryStrategy] = None,
    ) -> None:
        self._registry = registry
        self._provider = chain_provider
        self._cache = cache or TTLCache(
            default_ttl=settings.balance_cache_ttl_seconds,
            max_size=settings.max_cache_size,
            name="balances",
        )
        self._retry = retry or RetryStrategy(
            RetryConfig(max_attempts=settings.rpc_max_attempts),
            logger=logger,
        )
        self._subscription: Optional[asyncio.Task] = None

    async def get_balance(self, account: str, chain_id: int) -> int:
        """
        USDC balance on one chain, cached for the balance TTL.

        A chain query that still fails after retry is logged and reported as
        zero; the zero is not cached so the next call queries again.
        """
        key = (account.lower(), chain_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        try:
            balance = await self.fetch_balance(account, chain_id)
        except ChainUnavailable as exc:
            logger.warning(f"Balance unavailable for {account} on chain {chain_id}, using 0: {exc}")
            return 0

        await self._cache.set(key, balance)
        return balance

    async def fetch_balance(self, account: str, chain_id: int) -> int:
        """
        Uncached balance read for settlement paths.

        Raises:
            ChainUnavailable: if the chain cannot be queried after retry
        """
        config = self._registry.get(chain_id)

        async def read() -> int:
            return await self._provider.get_token_balance(chain_id, config.usdc_address, account)

        try:
            return await self._retry.execute(read, description=f"balanceOf on {config.name}")
        except ChainUnavailable:
            raise
        except Exception as exc:
            raise ChainUnavailable(
                f"Balance query failed on chain {chain_id}: {exc}",
                chain_id=chain_id,
                operation="balanceOf",
            ) from exc

    async def get_unified_balance(self, account: str) -> UnifiedBalance:
        """Balances on every supported chain, awaited jointly."""
        chain_ids = self._registry.supported_chain_ids()
        balances = await asyncio.gather(*(self.get_balance(account, c) for c in chain_ids))
        return UnifiedBalance(
            per_chain=[ChainBalance(chain_id=c, balance=b) for c, b in zip(chain_ids, balances)],
            last_updated=time.time(),
        )

    async def has_enough_balance(self, account: str, chain_id: int, required: int) -> bool:
        return await self.get_balance(account, chain_id) >= required

    async def find_chains_with_sufficient_balance(self, account: str, required: int) -> List[int]:
        unified = await self.get_unified_balance(account)
        return [entry.chain_id for entry in unified.per_chain if entry.balance >= required]

    async def get_optimal_source_chain(
        self,
        account: str,
        required: int,
        target_chain: Optional[int] = None,
    ) -> Optional[int]:
        """
        Chain to pay from: the target chain when it has enough, otherwise the
        chain with the largest sufficient balance.
        """
        unified = await self.get_unified_balance(account)
        if target_chain is not None and unified.balance_on(target_chain) >= required:
            return target_chain

        candidates = [entry for entry in unified.per_chain if entry.balance >= required]
        if not candidates:
            return None
        return max(candidates, key=lambda entry: entry.balance).chain_id

    def subscribe(self, account: str, interval_ms: int, callback: BalanceCallback) -> None:
        """Refresh the unified balance every ``interval_ms`` and hand it to ``callback``.

        A new subscription replaces the previous one.
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.unsubscribe()
        self._subscription = asyncio.create_task(
            self._refresh_loop(account, interval_ms / 1000, callback),
            name=f"balance-subscription-{account.lower()}",
        )

    def unsubscribe(self) -> None:
        if self._subscription and not self._subscription.done():
            self._subscription.cancel()
        self._subscription = None

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.done()

    async def _refresh_loop(self, account: str, interval_s: float, callback: BalanceCallback) -> None:
        while True:
            try:
                unified = await self.get_unified_balance(account)
                outcome = callback(unified)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error(f"Balance subscription callback failed for {account}: {exc}")
            await asyncio.sleep(interval_s)

    async def clear_cache(self) -> None:
        await self._cache.clear()
