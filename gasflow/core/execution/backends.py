"""
Execution backends.

- Sponsored: a smart-account UserOperation whose gas the paymaster charges in
  USDC. Needs a configured paymaster for the chain and a private key.
- Direct: a plain transaction sent through the caller's signer, gas paid in
  the native token.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from ...config import settings
from ...providers.bundler import BundlerError, BundlerProvider
from ...providers.paymaster import PaymasterError, PaymasterProvider
from ...providers.rpc import JsonRpcChainProvider, RpcError, receipt_succeeded
from ..abi import build_entrypoint_get_nonce_call, build_execute_call_data, decode_uint
from ..chains import ChainRegistry
from ..models import TransactionIntent, is_address
from ..recovery.errors import (
    ChainUnavailable,
    ContractExecutionFailed,
    IntentValidationError,
    NoExecutionMethod,
    is_transient_execution_error,
)
from .auth import ExecutionAuth
from .userop import UserOperation

logger = logging.getLogger(__name__)

DIRECT_GAS_MULTIPLIER = Decimal("1.2")

# Placeholder limits replaced by the bundler's estimate
DEFAULT_CALL_GAS_LIMIT = 200_000
DEFAULT_VERIFICATION_GAS_LIMIT = 150_000
DEFAULT_PRE_VERIFICATION_GAS = 50_000

# Well-formed 65-byte signature so simulation passes signature length checks
DUMMY_SIGNATURE = "0x" + "ff" * 64 + "1c"


@dataclass
class ExecutionOutcome:
    tx_hash: str
    gas_used: Optional[int] = None


class SponsoredExecutionBackend:
    name = "sponsored"

    def __init__(
        self,
        registry: ChainRegistry,
        chain_provider: JsonRpcChainProvider,
        bundler: BundlerProvider,
        paymaster: PaymasterProvider,
        receipt_timeout_s: Optional[float] = None,
        poll_interval_s: Optional[float] = None,
        sleep: Callable = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._chain = chain_provider
        self._bundler = bundler
        self._paymaster = paymaster
        self._receipt_timeout = receipt_timeout_s or settings.receipt_timeout_seconds
        self._poll_interval = (
            poll_interval_s if poll_interval_s is not None else settings.receipt_poll_interval_seconds
        )
        self._sleep = sleep

    async def supports(self, chain_id: int, auth: ExecutionAuth) -> bool:
        config = self._registry.get(chain_id)
        if not config.paymaster_address or not auth.has_private_key:
            return False
        return await self._paymaster.ready() and await self._bundler.ready()

    async def execute(
        self,
        intent: TransactionIntent,
        chain_id: int,
        account: str,
        auth: ExecutionAuth,
    ) -> ExecutionOutcome:
        config = self._registry.get(chain_id)
        signer = auth.local_signer(self._chain)
        if signer is None:
            raise NoExecutionMethod("Sponsored execution requires a private key", chain_id=chain_id)
        sender = auth.smart_account or account

        nonce_result = await self._chain.call(
            chain_id,
            {"to": config.entry_point, "data": build_entrypoint_get_nonce_call(sender)},
        )
        gas_price = await self._chain.get_gas_price(chain_id)

        user_op = UserOperation(
            sender=sender,
            nonce=decode_uint(nonce_result),
            init_code="0x",
            call_data=build_execute_call_data(
                intent.to, intent.value, intent.data, settings.account_execute_signature
            ),
            call_gas_limit=intent.gas_limit or DEFAULT_CALL_GAS_LIMIT,
            verification_gas_limit=DEFAULT_VERIFICATION_GAS_LIMIT,
            pre_verification_gas=DEFAULT_PRE_VERIFICATION_GAS,
            max_fee_per_gas=gas_price,
            max_priority_fee_per_gas=gas_price,
            signature=DUMMY_SIGNATURE,
        )

        try:
            estimate = await self._bundler.estimate_user_operation_gas(user_op, config.entry_point)
            user_op = user_op.with_gas(estimate)
            user_op.paymaster_and_data = await self._paymaster.sponsor_user_operation(
                user_op, config.entry_point, config.usdc_address
            )
            user_op.signature = signer.sign_hash_message(user_op.hash(config.entry_point, chain_id))
            op_hash = await self._bundler.send_user_operation(user_op, config.entry_point)
        except (BundlerError, PaymasterError) as exc:
            reason = str(exc)
            raise ContractExecutionFailed(
                f"Sponsored submission failed on {config.name}: {reason}",
                chain_id=chain_id,
                revert_reason=reason,
                retryable=is_transient_execution_error(reason),
            ) from exc

        logger.info(f"UserOperation submitted on {config.name}: {op_hash}")
        receipt = await self._wait_for_user_op(chain_id, op_hash)
        if not receipt.success:
            raise ContractExecutionFailed(
                f"UserOperation {op_hash} reverted on {config.name}",
                tx_hash=receipt.transaction_hash,
                chain_id=chain_id,
                revert_reason=receipt.reason,
            )
        return ExecutionOutcome(tx_hash=receipt.transaction_hash or op_hash, gas_used=receipt.gas_used)

    async def _wait_for_user_op(self, chain_id: int, op_hash: str):
        deadline = time.monotonic() + self._receipt_timeout
        while True:
            receipt = await self._bundler.get_user_operation_receipt(op_hash)
            if receipt is not None:
                return receipt
            if time.monotonic() >= deadline:
                raise ChainUnavailable(
                    f"No receipt for UserOperation {op_hash} after {self._receipt_timeout:.0f}s",
                    chain_id=chain_id,
                    operation="eth_getUserOperationReceipt",
                )
            await self._sleep(self._poll_interval)


class DirectExecutionBackend:
    name = "direct"

    def __init__(self, registry: ChainRegistry, chain_provider: JsonRpcChainProvider) -> None:
        self._registry = registry
        self._chain = chain_provider

    async def supports(self, chain_id: int, auth: ExecutionAuth) -> bool:
        return auth.signer_for(chain_id, self._chain) is not None

    async def execute(
        self,
        intent: TransactionIntent,
        chain_id: int,
        account: str,
        auth: ExecutionAuth,
    ) -> ExecutionOutcome:
        if not is_address(intent.to):
            raise IntentValidationError(f"Invalid recipient address: {intent.to!r}")
        if intent.value < 0:
            raise IntentValidationError("Transaction value must be non-negative")

        signer = auth.signer_for(chain_id, self._chain)
        if signer is None:
            raise NoExecutionMethod(f"No signer for chain {chain_id}", chain_id=chain_id)

        tx = {"to": intent.to, "data": intent.data or "0x", "value": intent.value}
        tx["gas"] = intent.gas_limit or await self._estimate_gas(intent, chain_id, signer.address)

        try:
            tx_hash = await signer.send_transaction(chain_id, tx)
        except RpcError as exc:
            reason = exc.revert_reason or exc.message
            raise ContractExecutionFailed(
                f"Transaction submission failed on chain {chain_id}: {reason}",
                chain_id=chain_id,
                revert_reason=reason,
                retryable=is_transient_execution_error(reason),
            ) from exc

        receipt = await self._chain.wait_for_receipt(chain_id, tx_hash)
        if not receipt_succeeded(receipt):
            reason = await self._chain.get_revert_reason(chain_id, receipt, intent.to_call(signer.address))
            raise ContractExecutionFailed(
                f"Transaction {tx_hash} reverted on chain {chain_id}" + (f": {reason}" if reason else ""),
                tx_hash=tx_hash,
                chain_id=chain_id,
                revert_reason=reason,
                retryable=is_transient_execution_error(reason),
            )
        return ExecutionOutcome(tx_hash=tx_hash, gas_used=decode_uint(receipt.get("gasUsed")))

    async def _estimate_gas(self, intent: TransactionIntent, chain_id: int, sender: str) -> int:
        try:
            estimated = await self._chain.estimate_gas(chain_id, intent.to_call(sender))
        except RpcError as exc:
            reason = exc.revert_reason or exc.message
            raise ContractExecutionFailed(
                f"Gas estimation failed on chain {chain_id}: {reason}",
                chain_id=chain_id,
                revert_reason=reason,
                retryable=is_transient_execution_error(reason),
            ) from exc
        return int(Decimal(estimated) * DIRECT_GAS_MULTIPLIER)
