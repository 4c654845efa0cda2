"""
backend/marketsync/chain/codec.py

Purpose:
    Decode the double-wrapped event payload carried by CoreEventEmitted logs.
    The log data is an ABI-encoded `bytes` value whose content is the ABI
    encoding of the event's declared field tuple.

Dependencies:
    - eth_abi
    - web3
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from web3 import Web3

from marketsync.errors import DecodeError

CORE_EVENT_NAME = "CoreEventEmitted(bytes32,address,bytes)"


def keccak_hex(text: str) -> str:
    return Web3.to_hex(Web3.keccak(text=text)).lower()


CORE_EVENT_SIGNATURE = keccak_hex(CORE_EVENT_NAME)


def event_type_id(name: str) -> str:
    """bytes32 event-type identifier published as the second log topic."""
    return keccak_hex(name)


def _as_bytes(data: str | bytes) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    text = str(data).strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise DecodeError(f"payload is not valid hex: {exc}") from exc


def _normalize(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return str(value).lower()
    if abi_type.startswith("bytes") and isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def decode_event_payload(schema: Sequence[str], data: str | bytes) -> list[Any]:
    """Unwrap the outer `bytes` and decode the inner tuple declared by schema.

    Raises DecodeError when either layer does not match.
    """
    raw = _as_bytes(data)
    try:
        (inner,) = decode(["bytes"], raw)
        values = decode(list(schema), inner)
    except (DecodingError, ValueError, TypeError, OverflowError) as exc:
        raise DecodeError(f"payload does not match ({', '.join(schema)}): {exc}") from exc
    return [_normalize(abi_type, value) for abi_type, value in zip(schema, values)]


def encode_event_payload(schema: Sequence[str], values: Sequence[Any]) -> bytes:
    """Inverse of decode_event_payload, used by replay tooling and tests."""
    try:
        inner = encode(list(schema), list(values))
        return encode(["bytes"], [inner])
    except (EncodingError, ValueError, TypeError) as exc:
        raise DecodeError(f"values do not match ({', '.join(schema)}): {exc}") from exc
