"""
CCTP v2 bridge orchestrator.

Drives one transfer through burn -> attestation -> mint:
- Validates the request before any network call
- Re-reads the source balance uncached right before the burn
- Approves TokenMessengerV2 when the allowance is short
- Polls Circle Iris for the attestation in the caller's task
- Submits receiveMessage on the destination chain

A transfer either reaches ``completed`` or ends in ``failed`` with the typed
error re-raised; nothing is left half-finished silently.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Dict, Optional

from eth_utils import keccak

from ...config import settings
from ...providers.circle import CircleIrisProvider
from ...providers.rpc import JsonRpcChainProvider, RpcError, receipt_succeeded
from ...services.balances import BalanceAggregator
from ..abi import (
    build_approve_call,
    build_deposit_for_burn_call,
    build_receive_message_call,
    find_message_sent,
    message_hash,
)
from ..chains import ChainRegistry
from ..execution.auth import TransactionSigner
from ..models import is_address
from ..recovery.errors import (
    AttestationTimeout,
    BridgeValidationError,
    Cancelled,
    ContractExecutionFailed,
    InsufficientBalance,
    is_transient_execution_error,
)
from ..recovery.strategies import RetryConfig, RetryStrategy
from .models import BridgeRequest, BridgeState, BridgeStatus, BridgeTransfer
from .oracle import FAST_FINALITY_THRESHOLD, STANDARD_FINALITY_THRESHOLD

logger = logging.getLogger(__name__)

MIN_CCTP_AMOUNT = 10_000
LARGE_TRANSFER_WARNING = 10 ** 12

APPROVAL_GAS_LIMIT = 100_000
BURN_GAS_FALLBACK = 350_000
BURN_GAS_MULTIPLIER = Decimal("1.5")
MINT_GAS_MULTIPLIER = Decimal("1.2")
MAX_FEE_MULTIPLIER = Decimal("1.5")

# Expected destination mint cost (USDC minor units) used to size maxFee
DESTINATION_MINT_COSTS: Dict[int, int] = {
    1: 500_000,
    11155111: 200_000,
    42161: 50_000,
    421614: 50_000,
    8453: 50_000,
    84532: 50_000,
    43114: 100_000,
    43113: 100_000,
    137: 100_000,
    80002: 100_000,
    10: 100_000,
}
DEFAULT_DESTINATION_MINT_COST = 100_000


def validate_bridge_request(request: BridgeRequest, registry: ChainRegistry) -> None:
    """
    Reject malformed bridge requests without touching the network.

    Raises:
        BridgeValidationError: with ``reason`` set to the failed check
    """
    if request.amount <= 0:
        raise BridgeValidationError("Bridge amount must be positive", reason="amount_not_positive")
    if request.amount < MIN_CCTP_AMOUNT:
        raise BridgeValidationError(
            f"Bridge amount {request.amount} is below the CCTP minimum of {MIN_CCTP_AMOUNT}",
            reason="below_minimum",
        )
    if not is_address(request.recipient):
        raise BridgeValidationError(f"Invalid recipient address: {request.recipient}", reason="invalid_recipient")
    if request.from_chain == request.to_chain:
        raise BridgeValidationError("Source and destination chains must differ", reason="same_chain")
    for chain_id in (request.from_chain, request.to_chain):
        if not registry.is_cctp_supported(chain_id):
            raise BridgeValidationError(f"Chain {chain_id} does not support CCTP", reason="unsupported_chain")

    if request.amount > LARGE_TRANSFER_WARNING:
        logger.warning(f"Large bridge transfer requested: {request.amount} minor units")


def calculate_max_fee(amount: int, to_chain: int) -> int:
    """maxFee for depositForBurn: 1.5x the destination mint cost, always below ``amount``."""
    base = DESTINATION_MINT_COSTS.get(to_chain, DEFAULT_DESTINATION_MINT_COST)
    max_fee = int(Decimal(base) * MAX_FEE_MULTIPLIER)
    return max(0, min(max_fee, amount - 1))


class CctpBridgeOrchestrator:
    """
    Usage:
        orchestrator = CctpBridgeOrchestrator(registry, chain_provider, iris, balances)
        transfer = await orchestrator.bridge(request, signer, fast=True)
        transfer.destination_tx_hash
    """

    def __init__(
        self,
        registry: ChainRegistry,
        chain_provider: JsonRpcChainProvider,
        attestation_provider: CircleIrisProvider,
        balances: BalanceAggregator,
        poll_interval_s: Optional[float] = None,
        attestation_timeout_s: Optional[float] = None,
        sleep: Callable = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        retry: Optional[RetryStrategy] = None,
    ) -> None:
        self._registry = registry
        self._chain = chain_provider
        self._iris = attestation_provider
        self._balances = balances
        self._poll_interval = (
            poll_interval_s if poll_interval_s is not None else settings.attestation_poll_interval_seconds
        )
        self._attestation_timeout = (
            attestation_timeout_s if attestation_timeout_s is not None else settings.attestation_timeout_seconds
        )
        self._sleep = sleep
        self._clock = clock
        self._retry = retry or RetryStrategy(
            RetryConfig(max_attempts=settings.rpc_max_attempts),
            logger=logger,
            sleep=sleep,
        )

    async def bridge(
        self,
        request: BridgeRequest,
        signer: TransactionSigner,
        fast: bool,
        destination_signer: Optional[TransactionSigner] = None,
    ) -> BridgeTransfer:
        validate_bridge_request(request, self._registry)
        transfer = BridgeTransfer.from_request(request, fast=fast)
        logger.info(
            f"Bridge {transfer.transfer_id}: {request.amount} from chain {request.from_chain} "
            f"to chain {request.to_chain} ({'fast' if fast else 'standard'})"
        )

        try:
            await self.burn(transfer, signer)
            await self.wait_for_attestation(transfer)
            await self.mint(transfer, destination_signer or signer)
        except asyncio.CancelledError:
            error = Cancelled(f"Bridge {transfer.transfer_id} cancelled", tx_hash=transfer.source_tx_hash)
            transfer.fail(error)
            raise error
        except Exception as exc:
            logger.error(f"Bridge {transfer.transfer_id} failed in state {transfer.state.value}: {exc}")
            transfer.fail(exc)
            raise

        logger.info(f"Bridge {transfer.transfer_id} completed: {transfer.destination_tx_hash}")
        return transfer

    async def burn(self, transfer: BridgeTransfer, signer: TransactionSigner) -> None:
        """initiated -> burned."""
        source = self._registry.get(transfer.from_chain)
        destination = self._registry.get(transfer.to_chain)

        balance = await self._balances.fetch_balance(signer.address, source.chain_id)
        if balance < transfer.amount:
            raise InsufficientBalance(
                f"Need {transfer.amount} USDC minor units on {source.name}, have {balance}",
                required=transfer.amount,
                available=balance,
                chain_id=source.chain_id,
            )

        allowance = await self._chain.get_allowance(
            source.chain_id, source.usdc_address, signer.address, source.token_messenger
        )
        if allowance < transfer.amount:
            logger.info(f"Approving TokenMessenger for {transfer.amount} on {source.name}")
            approval_tx = {
                "to": source.usdc_address,
                "data": build_approve_call(source.token_messenger, transfer.amount),
                "gas": APPROVAL_GAS_LIMIT,
            }
            approval_hash = await self._submit(signer, source.chain_id, approval_tx, "approve")
            transfer.approval_tx_hash = approval_hash

        burn_tx = {
            "to": source.token_messenger,
            "data": build_deposit_for_burn_call(
                amount=transfer.amount,
                destination_domain=destination.cctp_domain,
                mint_recipient=transfer.recipient,
                burn_token=source.usdc_address,
                max_fee=calculate_max_fee(transfer.amount, destination.chain_id),
                min_finality_threshold=FAST_FINALITY_THRESHOLD if transfer.fast else STANDARD_FINALITY_THRESHOLD,
            ),
        }
        burn_tx["gas"] = await self._estimate_burn_gas(source.chain_id, signer.address, burn_tx)

        burn_hash = await self._send(signer, source.chain_id, burn_tx, "depositForBurn")
        receipt = await self._confirm(source.chain_id, burn_hash, burn_tx, signer.address, "depositForBurn")

        message = find_message_sent(receipt.get("logs") or [])
        if message:
            handle = message_hash(message)
        else:
            handle = "0x" + keccak(hexstr=burn_hash).hex()
            logger.warning(
                f"No MessageSent log in burn {burn_hash}; using transaction hash as message handle (degraded)"
            )

        transfer.transition(
            BridgeState.BURNED,
            source_tx_hash=burn_hash,
            message=message,
            message_handle=handle,
        )
        logger.info(f"Bridge {transfer.transfer_id} burned: {burn_hash}")

    async def _estimate_burn_gas(self, chain_id: int, sender: str, tx: Dict) -> int:
        try:
            estimated = await self._chain.estimate_gas(chain_id, {"from": sender, **tx})
        except Exception as exc:
            logger.warning(f"Burn gas estimation failed on chain {chain_id}, using {BURN_GAS_FALLBACK}: {exc}")
            return BURN_GAS_FALLBACK
        return int(Decimal(estimated) * BURN_GAS_MULTIPLIER)

    async def wait_for_attestation(self, transfer: BridgeTransfer) -> None:
        """burned -> attested. Polls in the caller's task until complete or the ceiling passes."""
        domain = self._registry.domain_for(transfer.from_chain)
        deadline = self._clock() + self._attestation_timeout
        attempts = 0

        while True:
            attempts += 1
            try:
                attestation = await self._iris.get_attestation(domain, transfer.source_tx_hash)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(f"Attestation poll {attempts} failed for {transfer.source_tx_hash}: {exc}")
                attestation = None

            if attestation is not None and attestation.is_complete:
                transfer.transition(
                    BridgeState.ATTESTED,
                    message=attestation.message,
                    attestation=attestation.attestation,
                )
                logger.info(f"Bridge {transfer.transfer_id} attested after {attempts} polls")
                return

            if self._clock() >= deadline:
                raise AttestationTimeout(
                    f"Attestation for {transfer.source_tx_hash} not ready after {self._attestation_timeout:.0f}s",
                    source_tx_hash=transfer.source_tx_hash,
                    chain_id=transfer.from_chain,
                    timeout_seconds=self._attestation_timeout,
                )
            await self._sleep(self._poll_interval)

    async def mint(self, transfer: BridgeTransfer, signer: TransactionSigner) -> None:
        """attested -> completed."""
        destination = self._registry.get(transfer.to_chain)
        mint_tx = {
            "to": destination.message_transmitter,
            "data": build_receive_message_call(transfer.message, transfer.attestation),
        }

        try:
            estimated = await self._chain.estimate_gas(destination.chain_id, {"from": signer.address, **mint_tx})
        except RpcError as exc:
            reason = exc.revert_reason or exc.message
            raise ContractExecutionFailed(
                f"receiveMessage gas estimation failed on {destination.name}: {reason}",
                chain_id=destination.chain_id,
                revert_reason=reason,
                retryable=is_transient_execution_error(reason),
            ) from exc
        mint_tx["gas"] = int(Decimal(estimated) * MINT_GAS_MULTIPLIER)

        mint_hash = await self._send(signer, destination.chain_id, mint_tx, "receiveMessage")
        await self._confirm(destination.chain_id, mint_hash, mint_tx, signer.address, "receiveMessage")
        transfer.transition(BridgeState.COMPLETED, destination_tx_hash=mint_hash)

    async def _submit(self, signer: TransactionSigner, chain_id: int, tx: Dict, label: str) -> str:
        tx_hash = await self._send(signer, chain_id, tx, label)
        await self._confirm(chain_id, tx_hash, tx, signer.address, label)
        return tx_hash

    async def _send(self, signer: TransactionSigner, chain_id: int, tx: Dict, label: str) -> str:
        """Submit through the signer; nonce and fee races are retried, other rejections are final."""
        async def submit() -> str:
            try:
                return await signer.send_transaction(chain_id, tx)
            except RpcError as exc:
                reason = exc.revert_reason or exc.message
                raise ContractExecutionFailed(
                    f"{label} submission failed on chain {chain_id}: {reason}",
                    chain_id=chain_id,
                    revert_reason=reason,
                    retryable=is_transient_execution_error(reason),
                ) from exc

        return await self._retry.execute(submit, description=f"{label} on chain {chain_id}")

    async def _confirm(self, chain_id: int, tx_hash: str, tx: Dict, sender: str, label: str) -> Dict:
        receipt = await self._chain.wait_for_receipt(chain_id, tx_hash)
        if receipt_succeeded(receipt):
            return receipt

        replay = {"from": sender, "to": tx["to"], "data": tx["data"]}
        reason = await self._chain.get_revert_reason(chain_id, receipt, replay)
        raise ContractExecutionFailed(
            f"{label} reverted on chain {chain_id}" + (f": {reason}" if reason else ""),
            tx_hash=tx_hash,
            chain_id=chain_id,
            revert_reason=reason,
            retryable=is_transient_execution_error(reason),
        )

    async def get_bridge_status(self, source_tx_hash: str, from_chain: int) -> BridgeStatus:
        """Observed status of a burn from the attestation service alone."""
        try:
            attestation = await self._iris.get_attestation(self._registry.domain_for(from_chain), source_tx_hash)
        except Exception as exc:
            logger.error(f"Bridge status lookup failed for {source_tx_hash}: {exc}")
            return BridgeStatus.FAILED

        if attestation is not None and attestation.is_complete:
            return BridgeStatus.ATTESTED
        return BridgeStatus.PENDING
