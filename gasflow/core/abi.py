"""
Calldata builders and log decoders for the handful of contract calls the
engine makes: ERC-20 balance/allowance/approve, CCTP v2 depositForBurn and
receiveMessage, and smart-account execute.
"""

from __future__ import annotations

from typing import Optional

from eth_utils import keccak

ZERO_BYTES32 = "0x" + "0" * 64

ERROR_STRING_SELECTOR = "0x08c379a0"


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _encode_uint(value: int) -> str:
    if value < 0:
        raise ValueError("Value must be non-negative")
    return hex(value)[2:].rjust(64, "0")


def _encode_address(address: str) -> str:
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    return addr.rjust(64, "0")


def _encode_bytes(data: str) -> str:
    hex_data = _strip_0x(data)
    if len(hex_data) % 2 != 0:
        raise ValueError("Byte data must have an even-length hex string")
    data_len = len(hex_data) // 2
    padded_len = ((data_len + 31) // 32) * 32
    padding = "0" * ((padded_len - data_len) * 2)
    return _encode_uint(data_len) + hex_data + padding


def selector(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def event_topic(signature: str) -> str:
    return "0x" + keccak(text=signature).hex()


BALANCE_OF_SELECTOR = selector("balanceOf(address)")
ALLOWANCE_SELECTOR = selector("allowance(address,address)")
APPROVE_SELECTOR = selector("approve(address,uint256)")
DEPOSIT_FOR_BURN_SELECTOR = selector("depositForBurn(uint256,uint32,bytes32,address,bytes32,uint256,uint32)")
RECEIVE_MESSAGE_SELECTOR = selector("receiveMessage(bytes,bytes)")
MESSAGE_SENT_TOPIC = event_topic("MessageSent(bytes)")


def address_to_bytes32(address: str) -> str:
    """Left-pad a 20-byte address into the bytes32 form CCTP uses for recipients."""
    return "0x" + _encode_address(address)


def build_balance_of_call(owner: str) -> str:
    return BALANCE_OF_SELECTOR + _encode_address(owner)


def build_allowance_call(owner: str, spender: str) -> str:
    return ALLOWANCE_SELECTOR + _encode_address(owner) + _encode_address(spender)


def build_approve_call(spender: str, amount: int) -> str:
    return APPROVE_SELECTOR + _encode_address(spender) + _encode_uint(amount)


def build_deposit_for_burn_call(
    amount: int,
    destination_domain: int,
    mint_recipient: str,
    burn_token: str,
    max_fee: int,
    min_finality_threshold: int,
    destination_caller: str = ZERO_BYTES32,
) -> str:
    """
    Build calldata for TokenMessengerV2.depositForBurn.

    A zero destination caller lets anyone submit the mint on the destination.
    """
    return (
        DEPOSIT_FOR_BURN_SELECTOR
        + _encode_uint(amount)
        + _encode_uint(destination_domain)
        + _strip_0x(address_to_bytes32(mint_recipient))
        + _encode_address(burn_token)
        + _strip_0x(destination_caller).rjust(64, "0")
        + _encode_uint(max_fee)
        + _encode_uint(min_finality_threshold)
    )


def build_receive_message_call(message: str, attestation: str) -> str:
    """Build calldata for MessageTransmitterV2.receiveMessage(bytes,bytes)."""
    encoded_message = _encode_bytes(message)
    encoded_attestation = _encode_bytes(attestation)
    head = _encode_uint(64) + _encode_uint(64 + len(encoded_message) // 2)
    return RECEIVE_MESSAGE_SELECTOR + head + encoded_message + encoded_attestation


def build_execute_call_data(
    to_address: str,
    value_wei: int,
    data: str,
    signature: str = "execute(address,uint256,bytes)",
) -> str:
    """Build calldata for a smart account's execute(address,uint256,bytes)."""
    head = (
        _encode_address(to_address)
        + _encode_uint(value_wei)
        + _encode_uint(96)  # offset to bytes data
    )
    return selector(signature) + head + _encode_bytes(data)


def build_entrypoint_get_nonce_call(sender: str, key: int = 0) -> str:
    """Build calldata for EntryPoint.getNonce(address,uint192)."""
    return selector("getNonce(address,uint192)") + _encode_address(sender) + _encode_uint(key)


def decode_uint(result: Optional[str]) -> int:
    if not result or result == "0x":
        return 0
    return int(result, 16)


def decode_bytes(data: str) -> str:
    """Decode a single ABI-encoded dynamic ``bytes`` value (e.g. MessageSent data)."""
    raw = _strip_0x(data)
    offset = int(raw[0:64], 16) * 2
    length = int(raw[offset:offset + 64], 16) * 2
    start = offset + 64
    if len(raw) < start + length:
        raise ValueError("Truncated bytes payload")
    return "0x" + raw[start:start + length]


def message_hash(message: str) -> str:
    return "0x" + keccak(hexstr=message).hex()


def find_message_sent(logs: list) -> Optional[str]:
    """Return the CCTP message bytes from a receipt's MessageSent log, if any."""
    for log in logs or []:
        topics = log.get("topics") or []
        if topics and topics[0].lower() == MESSAGE_SENT_TOPIC:
            return decode_bytes(log.get("data", "0x"))
    return None


def decode_revert_reason(data: Optional[str]) -> Optional[str]:
    """Decode an Error(string) revert payload, or None if it is not one."""
    if not data or not data.startswith(ERROR_STRING_SELECTOR):
        return None
    try:
        payload = decode_bytes("0x" + data[len(ERROR_STRING_SELECTOR):])
        return bytes.fromhex(_strip_0x(payload)).decode("utf-8", errors="replace")
    except ValueError:
        return None
