"""Bridge fee and timing estimates for CCTP v2 transfers.

Display-only: nothing here needs a signer or touches the chain. Circle's fee
and allowance APIs are consulted with short timeouts and every failure falls
back to a static heuristic.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Protocol

from ..chains import ChainRegistry
from ..models import BridgeQuote, TransferMode

logger = logging.getLogger(__name__)

FAST_FINALITY_THRESHOLD = 1000
STANDARD_FINALITY_THRESHOLD = 2000

# Fast transfers are only assumed available below $1000 when the allowance API is down
FAST_TRANSFER_THRESHOLD = 1_000_000_000

FAST_TRANSFER_SECONDS = 30
ATTESTATION_SECONDS = 60
DESTINATION_EXECUTION_SECONDS = 30

STATIC_BASE_FEE = 500_000
STATIC_CHAIN_FEES: Dict[int, int] = {
    1: 200_000,
    11155111: 200_000,
    42161: 100_000,
    421614: 100_000,
    8453: 100_000,
    84532: 100_000,
    43114: 150_000,
    43113: 150_000,
    137: 150_000,
    80002: 150_000,
}
STATIC_DEFAULT_CHAIN_FEE = 100_000

BPS_DENOMINATOR = 10_000


class FeeScheduleSource(Protocol):
    async def get_burn_fees(self, source_domain: int, dest_domain: int) -> list: ...

    async def get_fast_burn_allowance(self) -> int: ...


def static_fee(from_chain: int, to_chain: int) -> int:
    return STATIC_BASE_FEE + STATIC_CHAIN_FEES.get(from_chain, STATIC_DEFAULT_CHAIN_FEE)


class BridgeFeeOracle:
    def __init__(
        self,
        registry: ChainRegistry,
        fee_source: Optional[FeeScheduleSource] = None,
        fee_timeout_s: float = 5.0,
        allowance_timeout_s: float = 3.0,
    ) -> None:
        self._registry = registry
        self._source = fee_source
        self._fee_timeout = fee_timeout_s
        self._allowance_timeout = allowance_timeout_s

    async def estimate_fee(self, amount: int, from_chain: int, to_chain: int, fast: bool = False) -> int:
        """Protocol fee in USDC minor units for burning ``amount`` on ``from_chain``."""
        src = self._registry.domain_for(from_chain)
        dst = self._registry.domain_for(to_chain)
        if self._source is None:
            return static_fee(from_chain, to_chain)

        try:
            tiers = await asyncio.wait_for(self._source.get_burn_fees(src, dst), self._fee_timeout)
            bps = self._select_fee_bps(tiers, fast)
        except Exception as exc:
            logger.warning(f"Fee API unavailable for {from_chain}->{to_chain}, using static fee: {exc!r}")
            return static_fee(from_chain, to_chain)

        return int(Decimal(amount) * bps / BPS_DENOMINATOR)

    @staticmethod
    def _select_fee_bps(tiers: list, fast: bool) -> Decimal:
        if not tiers:
            raise ValueError("Empty fee schedule")
        wanted = FAST_FINALITY_THRESHOLD if fast else STANDARD_FINALITY_THRESHOLD
        for tier in tiers:
            if tier.finality_threshold == wanted:
                return tier.minimum_fee_bps
        return min(tier.minimum_fee_bps for tier in tiers)

    async def can_use_fast_mode(self, amount: int, from_chain: int, to_chain: int) -> bool:
        if self._source is None:
            return amount < FAST_TRANSFER_THRESHOLD

        try:
            allowance = await asyncio.wait_for(self._source.get_fast_burn_allowance(), self._allowance_timeout)
        except Exception as exc:
            logger.warning(f"Fast allowance API unavailable for {from_chain}->{to_chain}: {exc!r}")
            return amount < FAST_TRANSFER_THRESHOLD
        return amount <= allowance

    async def estimate_time(
        self,
        amount: int,
        from_chain: int,
        to_chain: int,
        fast: Optional[bool] = None,
    ) -> int:
        if fast is None:
            fast = await self.can_use_fast_mode(amount, from_chain, to_chain)
        if fast:
            return FAST_TRANSFER_SECONDS
        return self._registry.finality_seconds(from_chain) + ATTESTATION_SECONDS + DESTINATION_EXECUTION_SECONDS

    async def determine_transfer_mode(
        self,
        amount: int,
        from_chain: int,
        to_chain: int,
        preferred: TransferMode = TransferMode.AUTO,
    ) -> bool:
        """True when the transfer should use fast mode."""
        preferred = TransferMode(preferred)
        if preferred == TransferMode.STANDARD:
            return False

        eligible = await self.can_use_fast_mode(amount, from_chain, to_chain)
        if preferred == TransferMode.FAST:
            if not eligible:
                logger.info(f"Fast transfer requested but not available for {amount}; using standard")
            return eligible
        return eligible and amount < FAST_TRANSFER_THRESHOLD

    async def quote(
        self,
        amount: int,
        from_chain: int,
        to_chain: int,
        mode: TransferMode = TransferMode.AUTO,
    ) -> BridgeQuote:
        fast = await self.determine_transfer_mode(amount, from_chain, to_chain, mode)
        fee, seconds = await asyncio.gather(
            self.estimate_fee(amount, from_chain, to_chain, fast),
            self.estimate_time(amount, from_chain, to_chain, fast),
        )
        return BridgeQuote(
            from_chain=from_chain,
            to_chain=to_chain,
            amount=amount,
            fee=fee,
            estimated_time_seconds=seconds,
            fast=fast,
        )

    async def get_optimal_route(
        self,
        amount: int,
        from_chains: List[int],
        to_chain: int,
        mode: TransferMode = TransferMode.AUTO,
    ) -> Optional[BridgeQuote]:
        """Cheapest (then fastest) source chain for bridging ``amount`` to ``to_chain``."""
        sources = [c for c in from_chains if c != to_chain]
        if not sources:
            return None
        quotes = await asyncio.gather(*(self.quote(amount, c, to_chain, mode) for c in sources))
        return min(quotes, key=lambda q: (q.fee, q.estimated_time_seconds))
