"""
Bridge service variants.

The variant is chosen once, when the client is built:
- ``ProductionBridgeService`` moves real USDC through CCTP v2
- ``MockBridgeService`` walks the same state machine with fabricated hashes,
  for development without funds

Both validate requests identically and expose the same surface.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Dict, Optional, Union

from eth_utils import keccak

from ...config import Settings
from ..chains import ChainRegistry
from ..execution.auth import TransactionSigner
from .models import BridgeRequest, BridgeState, BridgeStatus, BridgeTransfer
from .oracle import BridgeFeeOracle
from .orchestrator import CctpBridgeOrchestrator, validate_bridge_request

logger = logging.getLogger(__name__)


class BridgeServiceKind(str, Enum):
    MOCK = "mock"
    PRODUCTION = "production"


class ProductionBridgeService:
    kind = BridgeServiceKind.PRODUCTION

    def __init__(self, registry: ChainRegistry, oracle: BridgeFeeOracle, orchestrator: CctpBridgeOrchestrator):
        self._registry = registry
        self.oracle = oracle
        self._orchestrator = orchestrator

    async def bridge(
        self,
        request: BridgeRequest,
        signer: TransactionSigner,
        destination_signer: Optional[TransactionSigner] = None,
    ) -> BridgeTransfer:
        validate_bridge_request(request, self._registry)
        fast = await self.oracle.determine_transfer_mode(
            request.amount, request.from_chain, request.to_chain, request.transfer_mode
        )
        return await self._orchestrator.bridge(request, signer, fast=fast, destination_signer=destination_signer)

    async def get_bridge_status(self, source_tx_hash: str, from_chain: int) -> BridgeStatus:
        return await self._orchestrator.get_bridge_status(source_tx_hash, from_chain)


class MockBridgeService:
    """Simulated transfers. No funds move and no chain is contacted."""

    kind = BridgeServiceKind.MOCK

    def __init__(
        self,
        registry: ChainRegistry,
        oracle: BridgeFeeOracle,
        step_delay_s: float = 0.0,
        sleep: Callable = asyncio.sleep,
    ):
        self._registry = registry
        self.oracle = oracle
        self._step_delay = step_delay_s
        self._sleep = sleep
        self._transfers: Dict[str, BridgeTransfer] = {}

    async def bridge(
        self,
        request: BridgeRequest,
        signer: TransactionSigner,
        destination_signer: Optional[TransactionSigner] = None,
    ) -> BridgeTransfer:
        validate_bridge_request(request, self._registry)
        fast = await self.oracle.determine_transfer_mode(
            request.amount, request.from_chain, request.to_chain, request.transfer_mode
        )
        transfer = BridgeTransfer.from_request(request, fast=fast)
        logger.info(f"Mock bridge {transfer.transfer_id}: {request.amount} {request.from_chain}->{request.to_chain}")

        burn_hash = self._fake_hash(transfer, "burn")
        self._transfers[burn_hash] = transfer
        transfer.transition(
            BridgeState.BURNED,
            source_tx_hash=burn_hash,
            message_handle=self._fake_hash(transfer, "message"),
        )
        await self._sleep(self._step_delay)
        transfer.transition(BridgeState.ATTESTED, attestation=self._fake_hash(transfer, "attestation"))
        await self._sleep(self._step_delay)
        transfer.transition(BridgeState.COMPLETED, destination_tx_hash=self._fake_hash(transfer, "mint"))
        return transfer

    async def get_bridge_status(self, source_tx_hash: str, from_chain: int) -> BridgeStatus:
        transfer = self._transfers.get(source_tx_hash)
        if transfer is None:
            return BridgeStatus.PENDING
        return {
            BridgeState.COMPLETED: BridgeStatus.COMPLETED,
            BridgeState.FAILED: BridgeStatus.FAILED,
            BridgeState.ATTESTED: BridgeStatus.ATTESTED,
        }.get(transfer.state, BridgeStatus.PENDING)

    @staticmethod
    def _fake_hash(transfer: BridgeTransfer, label: str) -> str:
        return "0x" + keccak(text=f"mock:{transfer.transfer_id}:{label}").hex()


BridgeService = Union[ProductionBridgeService, MockBridgeService]


def build_bridge_service(
    config: Settings,
    registry: ChainRegistry,
    oracle: BridgeFeeOracle,
    orchestrator: Optional[CctpBridgeOrchestrator] = None,
) -> BridgeService:
    """Pick the bridge variant from ``config.bridge_mode``."""
    kind = BridgeServiceKind(config.bridge_mode)
    if kind == BridgeServiceKind.MOCK:
        logger.warning("Bridge service running in mock mode; no USDC will move")
        return MockBridgeService(registry, oracle)
    if orchestrator is None:
        raise ValueError("Production bridge service requires a CCTP orchestrator")
    return ProductionBridgeService(registry, oracle, orchestrator)
