"""Tests for the sponsored and direct execution backends."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from gasflow.core.chains import ChainRegistry
from gasflow.core.execution.auth import ExecutionAuth
from gasflow.core.execution.backends import (
    DUMMY_SIGNATURE,
    DirectExecutionBackend,
    SponsoredExecutionBackend,
)
from gasflow.core.execution.userop import UserOpGasEstimate, UserOpReceipt
from gasflow.core.models import TransactionIntent
from gasflow.core.recovery import ChainUnavailable, ContractExecutionFailed
from gasflow.providers.paymaster import PaymasterError
from gasflow.providers.rpc import RpcError

PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
ACCOUNT = "0x" + "ab" * 20
SMART_ACCOUNT = "0x" + "5a" * 20
TARGET = "0x" + "12" * 20
CHAIN = 84532
PAYMASTER_AND_DATA = "0x" + "9a" * 20 + "00" * 8


def _tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def _bundler(receipts):
    bundler = MagicMock()
    bundler.ready = AsyncMock(return_value=True)
    bundler.estimate_user_operation_gas = AsyncMock(
        return_value=UserOpGasEstimate(call_gas_limit=80_000, verification_gas_limit=90_000, pre_verification_gas=45_000)
    )
    bundler.send_user_operation = AsyncMock(return_value="0xophash")
    bundler.get_user_operation_receipt = AsyncMock(side_effect=receipts)
    return bundler


def _paymaster(result=PAYMASTER_AND_DATA):
    paymaster = MagicMock()
    paymaster.ready = AsyncMock(return_value=True)
    if isinstance(result, Exception):
        paymaster.sponsor_user_operation = AsyncMock(side_effect=result)
    else:
        paymaster.sponsor_user_operation = AsyncMock(return_value=result)
    return paymaster


# =============================================================================
# Sponsored
# =============================================================================

class TestSponsoredExecution:
    def _backend(self, registry, chain_provider, bundler, paymaster, **kwargs):
        return SponsoredExecutionBackend(
            registry, chain_provider, bundler, paymaster, poll_interval_s=0, sleep=AsyncMock(), **kwargs
        )

    @pytest.mark.asyncio
    async def test_supports_requires_key_and_paymaster(self, registry, chain_provider):
        backend = self._backend(registry, chain_provider, _bundler([]), _paymaster())

        assert await backend.supports(CHAIN, ExecutionAuth(private_key=PRIVATE_KEY))
        assert not await backend.supports(CHAIN, ExecutionAuth())

        mainnet = self._backend(ChainRegistry(use_testnet=False), chain_provider, _bundler([]), _paymaster())
        assert not await mainnet.supports(1, ExecutionAuth(private_key=PRIVATE_KEY))

    @pytest.mark.asyncio
    async def test_unconfigured_paymaster_not_supported(self, registry, chain_provider):
        paymaster = _paymaster()
        paymaster.ready = AsyncMock(return_value=False)
        backend = self._backend(registry, chain_provider, _bundler([]), paymaster)

        assert not await backend.supports(CHAIN, ExecutionAuth(private_key=PRIVATE_KEY))

    @pytest.mark.asyncio
    async def test_submits_sponsored_user_operation(self, registry, chain_provider):
        config = registry.get(CHAIN)
        chain_provider.call_results[config.entry_point] = "0x5"
        receipt = UserOpReceipt(user_op_hash="0xophash", success=True, transaction_hash="0xtx", gas_used=60_000)
        bundler = _bundler([None, receipt])
        paymaster = _paymaster()
        backend = self._backend(registry, chain_provider, bundler, paymaster)
        auth = ExecutionAuth(private_key=PRIVATE_KEY, smart_account=SMART_ACCOUNT)

        outcome = await backend.execute(TransactionIntent(to=TARGET, data="0xabcd"), CHAIN, ACCOUNT, auth)

        assert outcome.tx_hash == "0xtx"
        assert outcome.gas_used == 60_000

        paymaster.sponsor_user_operation.assert_awaited_once()
        assert paymaster.sponsor_user_operation.await_args.args[2] == config.usdc_address

        sent_op, entry_point = bundler.send_user_operation.await_args.args
        assert entry_point == config.entry_point
        assert sent_op.sender == SMART_ACCOUNT
        assert sent_op.nonce == 5
        assert sent_op.call_gas_limit == 80_000
        assert sent_op.paymaster_and_data == PAYMASTER_AND_DATA
        assert sent_op.signature != DUMMY_SIGNATURE

        digest = sent_op.hash(config.entry_point, CHAIN)
        signer_address = Account.recover_message(encode_defunct(primitive=digest), signature=sent_op.signature)
        assert signer_address == Account.from_key(PRIVATE_KEY).address

    @pytest.mark.asyncio
    async def test_paymaster_rejection(self, registry, chain_provider):
        backend = self._backend(
            registry, chain_provider, _bundler([]), _paymaster(PaymasterError("AA33 reverted: token not allowed"))
        )

        with pytest.raises(ContractExecutionFailed) as exc_info:
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(private_key=PRIVATE_KEY))

        assert exc_info.value.retryable is False
        assert "AA33" in exc_info.value.revert_reason

    @pytest.mark.asyncio
    async def test_reverted_user_operation(self, registry, chain_provider):
        receipt = UserOpReceipt(user_op_hash="0xophash", success=False, transaction_hash="0xtx", reason="execution reverted")
        backend = self._backend(registry, chain_provider, _bundler([receipt]), _paymaster())

        with pytest.raises(ContractExecutionFailed) as exc_info:
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(private_key=PRIVATE_KEY))

        assert exc_info.value.tx_hash == "0xtx"
        assert exc_info.value.revert_reason == "execution reverted"

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, registry, chain_provider):
        bundler = _bundler(None)
        bundler.get_user_operation_receipt = AsyncMock(return_value=None)
        backend = self._backend(registry, chain_provider, bundler, _paymaster(), receipt_timeout_s=0.001)

        with pytest.raises(ChainUnavailable):
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(private_key=PRIVATE_KEY))


# =============================================================================
# Direct
# =============================================================================

class TestDirectExecution:
    @pytest.mark.asyncio
    async def test_supports_needs_signer(self, registry, chain_provider, signer):
        backend = DirectExecutionBackend(registry, chain_provider)

        assert await backend.supports(CHAIN, ExecutionAuth(signers={CHAIN: signer}))
        assert await backend.supports(CHAIN, ExecutionAuth(private_key=PRIVATE_KEY))
        assert not await backend.supports(CHAIN, ExecutionAuth())

    @pytest.mark.asyncio
    async def test_sends_with_buffered_gas(self, registry, chain_provider, signer):
        backend = DirectExecutionBackend(registry, chain_provider)

        outcome = await backend.execute(
            TransactionIntent(to=TARGET, value=7, data="0xabcd"), CHAIN, ACCOUNT, ExecutionAuth(signers={CHAIN: signer})
        )

        assert outcome.tx_hash == _tx_hash(1)
        assert outcome.gas_used == 21_000
        assert signer.sent == [{"chain_id": CHAIN, "to": TARGET, "data": "0xabcd", "value": 7, "gas": 120_000}]

    @pytest.mark.asyncio
    async def test_explicit_gas_limit(self, registry, chain_provider, signer):
        backend = DirectExecutionBackend(registry, chain_provider)

        await backend.execute(TransactionIntent(to=TARGET, gas_limit=60_000), CHAIN, ACCOUNT, ExecutionAuth(signers={CHAIN: signer}))

        assert signer.sent[0]["gas"] == 60_000

    @pytest.mark.asyncio
    async def test_estimate_revert_is_not_sent(self, registry, chain_provider, signer):
        chain_provider.estimate_error = RpcError("execution reverted: not owner")
        backend = DirectExecutionBackend(registry, chain_provider)

        with pytest.raises(ContractExecutionFailed) as exc_info:
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(signers={CHAIN: signer}))

        assert "not owner" in exc_info.value.revert_reason
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_submission_error_is_classified(self, registry, chain_provider):
        signer = MagicMock()
        signer.address = ACCOUNT
        signer.send_transaction = AsyncMock(side_effect=RpcError("nonce too low"))
        backend = DirectExecutionBackend(registry, chain_provider)

        with pytest.raises(ContractExecutionFailed) as exc_info:
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(signers={CHAIN: signer}))

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_mined_revert(self, registry, chain_provider, signer):
        chain_provider.receipts[_tx_hash(1)] = {"status": "0x0", "gasUsed": "0x5208"}
        chain_provider.revert_reason = "Pausable: paused"
        backend = DirectExecutionBackend(registry, chain_provider)

        with pytest.raises(ContractExecutionFailed) as exc_info:
            await backend.execute(TransactionIntent(to=TARGET), CHAIN, ACCOUNT, ExecutionAuth(signers={CHAIN: signer}))

        assert exc_info.value.tx_hash == _tx_hash(1)
        assert exc_info.value.revert_reason == "Pausable: paused"
        assert exc_info.value.retryable is False
