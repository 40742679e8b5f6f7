"""Shared fakes for chain, attestation and signer dependencies."""

from typing import Any, Dict, List, Optional

import pytest

from gasflow.core.chains import ChainRegistry

ACCOUNT = "0x" + "ab" * 20
RECIPIENT = "0x" + "cd" * 20


class FakeChainProvider:
    """In-memory stand-in for JsonRpcChainProvider."""

    name = "rpc"

    def __init__(self, balances: Optional[Dict[int, int]] = None, gas_price: int = 10 ** 9):
        self.balances: Dict[int, int] = dict(balances or {})
        self.allowances: Dict[int, int] = {}
        self.gas_price = gas_price
        self.gas_estimate = 100_000
        self.estimate_error: Optional[Exception] = None
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.default_receipt: Dict[str, Any] = {"status": "0x1", "logs": [], "gasUsed": "0x5208"}
        self.revert_reason: Optional[str] = None
        self.balance_reads: List[int] = []
        self.call_results: Dict[str, str] = {}

    async def get_token_balance(self, chain_id: int, token: str, owner: str) -> int:
        self.balance_reads.append(chain_id)
        return self.balances.get(chain_id, 0)

    async def get_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        return self.allowances.get(chain_id, 0)

    async def get_gas_price(self, chain_id: int) -> int:
        return self.gas_price

    async def estimate_gas(self, chain_id: int, call: Dict[str, Any]) -> int:
        if self.estimate_error is not None:
            raise self.estimate_error
        return self.gas_estimate

    async def call(self, chain_id: int, call: Dict[str, Any], block: str = "latest") -> str:
        return self.call_results.get(call["to"], "0x0")

    async def get_transaction_count(self, chain_id: int, address: str) -> int:
        return 0

    async def send_raw_transaction(self, chain_id: int, raw_tx: str) -> str:
        return "0x" + "11" * 32

    async def get_transaction_receipt(self, chain_id: int, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.receipts.get(tx_hash, self.default_receipt)

    async def wait_for_receipt(self, chain_id: int, tx_hash: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.receipts.get(tx_hash, self.default_receipt)

    async def get_revert_reason(self, chain_id: int, receipt: Dict[str, Any], tx: Dict[str, Any]) -> Optional[str]:
        return self.revert_reason

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "chains": {}}

    async def ready(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class FakeSigner:
    """TransactionSigner that records what it was asked to send."""

    def __init__(self, address: str = ACCOUNT):
        self.address = address
        self.sent: List[Dict[str, Any]] = []

    async def send_transaction(self, chain_id: int, tx: Dict[str, Any]) -> str:
        self.sent.append({"chain_id": chain_id, **tx})
        return "0x" + f"{len(self.sent):064x}"


@pytest.fixture
def registry():
    return ChainRegistry(use_testnet=True)


@pytest.fixture
def chain_provider():
    return FakeChainProvider()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def make_chain_provider():
    return FakeChainProvider


@pytest.fixture
def make_signer():
    return FakeSigner
