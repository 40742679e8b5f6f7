"""
Transaction authorization supplied by the caller for one request.

Nothing here is persisted: an ``ExecutionAuth`` lives only as long as the
execute call it was passed to.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct

if TYPE_CHECKING:  # pragma: no cover
    from ...providers.base import ChainDataProvider

logger = logging.getLogger(__name__)


@runtime_checkable
class TransactionSigner(Protocol):
    """Signs and broadcasts transactions for one address (wallet, KMS, local key)."""

    address: str

    async def send_transaction(self, chain_id: int, tx: Dict[str, Any]) -> str:
        """Submit ``tx`` and return its hash."""
        ...


class LocalAccountSigner:
    """Signs locally with a private key and broadcasts through the chain provider."""

    def __init__(self, private_key: str, chain_provider: "ChainDataProvider") -> None:
        self._account = Account.from_key(private_key)
        self._provider = chain_provider
        self._nonce_lock = asyncio.Lock()
        self.address: str = self._account.address

    async def send_transaction(self, chain_id: int, tx: Dict[str, Any]) -> str:
        async with self._nonce_lock:
            call = {
                "from": self.address,
                "to": tx["to"],
                "data": tx.get("data", "0x"),
                "value": int(tx.get("value", 0)),
            }
            gas = tx.get("gas")
            if gas is None:
                gas = await self._provider.estimate_gas(chain_id, {**call, "value": hex(call["value"])})
            gas_price = tx.get("gasPrice") or await self._provider.get_gas_price(chain_id)
            nonce = await self._provider.get_transaction_count(chain_id, self.address)

            signed = self._account.sign_transaction({
                **call,
                "gas": int(gas),
                "gasPrice": int(gas_price),
                "nonce": nonce,
                "chainId": chain_id,
            })
            raw = "0x" + bytes(signed.raw_transaction).hex()
            return await self._provider.send_raw_transaction(chain_id, raw)

    def sign_hash_message(self, message_hash: bytes) -> str:
        """EIP-191 signature over a 32-byte hash (smart-account UserOperation signing)."""
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return "0x" + bytes(signed.signature).hex()


@dataclass
class ExecutionAuth:
    """
    Authorization for one request.

    ``private_key`` enables the sponsored (paymaster) backend and local
    signing; ``signers`` maps chain ids to interactive signers used by the
    direct backend and for bridge transactions.
    """
    private_key: Optional[str] = field(default=None, repr=False)
    signers: Dict[int, TransactionSigner] = field(default_factory=dict)
    smart_account: Optional[str] = None

    @property
    def has_private_key(self) -> bool:
        return bool(self.private_key)

    def local_signer(self, chain_provider: "ChainDataProvider") -> Optional[LocalAccountSigner]:
        if not self.private_key:
            return None
        return LocalAccountSigner(self.private_key, chain_provider)

    def signer_for(self, chain_id: int, chain_provider: Optional["ChainDataProvider"] = None) -> Optional[TransactionSigner]:
        signer = self.signers.get(chain_id)
        if signer is not None:
            return signer
        if self.private_key and chain_provider is not None:
            return LocalAccountSigner(self.private_key, chain_provider)
        return None
