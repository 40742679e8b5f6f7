"""
ERC-4337 (EntryPoint v0.6) UserOperation models and hashing.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from eth_utils import keccak

from ..abi import _encode_address, _encode_uint


def _to_hex(value: int) -> str:
    return hex(value)


def _keccak_hex(data: str) -> str:
    return keccak(hexstr=data or "0x").hex()


@dataclass
class UserOperation:
    """
    ERC-4337 UserOperation payload.

    Values are raw units (wei / gas units) and are hex-encoded for RPC calls.
    """
    sender: str
    nonce: int
    init_code: str
    call_data: str
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    paymaster_and_data: str = "0x"
    signature: str = "0x"

    def to_rpc_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "nonce": _to_hex(self.nonce),
            "initCode": self.init_code,
            "callData": self.call_data,
            "callGasLimit": _to_hex(self.call_gas_limit),
            "verificationGasLimit": _to_hex(self.verification_gas_limit),
            "preVerificationGas": _to_hex(self.pre_verification_gas),
            "maxFeePerGas": _to_hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _to_hex(self.max_priority_fee_per_gas),
            "paymasterAndData": self.paymaster_and_data,
            "signature": self.signature,
        }

    def with_gas(self, estimate: "UserOpGasEstimate") -> "UserOperation":
        return replace(
            self,
            call_gas_limit=estimate.call_gas_limit or self.call_gas_limit,
            verification_gas_limit=estimate.verification_gas_limit or self.verification_gas_limit,
            pre_verification_gas=estimate.pre_verification_gas or self.pre_verification_gas,
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """EntryPoint v0.6 getUserOpHash, computed off-chain."""
        packed = (
            _encode_address(self.sender)
            + _encode_uint(self.nonce)
            + _keccak_hex(self.init_code)
            + _keccak_hex(self.call_data)
            + _encode_uint(self.call_gas_limit)
            + _encode_uint(self.verification_gas_limit)
            + _encode_uint(self.pre_verification_gas)
            + _encode_uint(self.max_fee_per_gas)
            + _encode_uint(self.max_priority_fee_per_gas)
            + _keccak_hex(self.paymaster_and_data)
        )
        inner = keccak(hexstr=packed)
        outer = inner.hex() + _encode_address(entry_point) + _encode_uint(chain_id)
        return keccak(hexstr=outer)


@dataclass
class UserOpGasEstimate:
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "UserOpGasEstimate":
        def parse_hex(value: Optional[str]) -> Optional[int]:
            if value is None:
                return None
            return int(value, 16) if isinstance(value, str) else int(value)

        return cls(
            call_gas_limit=parse_hex(data.get("callGasLimit")) or 0,
            verification_gas_limit=parse_hex(data.get("verificationGasLimit")) or 0,
            pre_verification_gas=parse_hex(data.get("preVerificationGas")) or 0,
        )


@dataclass
class UserOpReceipt:
    user_op_hash: str
    success: bool
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    reason: Optional[str] = None
