"""
cangkulan.address
=================

StrKey address helpers for accounts (``G...``) and contracts (``C...``).

Format
------
An address is the RFC 4648 base32 encoding (no padding) of

    version_byte || payload(32) || crc16_xmodem(version_byte || payload) (LE)

where the version byte is ``6 << 3`` for Ed25519 account ids and ``2 << 3``
for contract ids. Account payloads are the raw Ed25519 public key, which is
what lets a verifier check an authorization signature from the address alone.

This module provides:
- encode_account(pubkey) -> str
- encode_contract(contract_hash) -> str
- decode_account(address) -> bytes (32-byte public key)
- decode_contract(address) -> bytes
- is_account(address) / is_contract(address) -> bool
"""

from __future__ import annotations

import base64
from typing import Tuple

__all__ = [
    "AddressError",
    "VERSION_ACCOUNT",
    "VERSION_CONTRACT",
    "encode_account",
    "encode_contract",
    "decode_account",
    "decode_contract",
    "is_account",
    "is_contract",
]

VERSION_ACCOUNT = 6 << 3
VERSION_CONTRACT = 2 << 3

_PAYLOAD_LEN = 32
_ENCODED_LEN = 56


class AddressError(ValueError):
    """Raised for malformed addresses or payloads."""


# ---- Checksum ---------------------------------------------------------------


def _crc16_xmodem(data: bytes) -> int:
    crc = 0
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


# ---- Encode / decode --------------------------------------------------------


def _encode(version: int, payload: bytes) -> str:
    if len(payload) != _PAYLOAD_LEN:
        raise AddressError(f"payload must be {_PAYLOAD_LEN} bytes, got {len(payload)}")
    body = bytes([version]) + bytes(payload)
    checksum = _crc16_xmodem(body).to_bytes(2, "little")
    return base64.b32encode(body + checksum).decode("ascii")


def _decode(address: str) -> Tuple[int, bytes]:
    if not isinstance(address, str) or len(address) != _ENCODED_LEN:
        raise AddressError("invalid address length")
    try:
        raw = base64.b32decode(address, casefold=False)
    except (ValueError, TypeError) as e:
        raise AddressError(f"invalid base32: {e}") from e
    body, checksum = raw[:-2], raw[-2:]
    if _crc16_xmodem(body).to_bytes(2, "little") != checksum:
        raise AddressError("checksum mismatch")
    return body[0], body[1:]


def encode_account(pubkey: bytes) -> str:
    """Encode a 32-byte Ed25519 public key as a ``G...`` account address."""
    return _encode(VERSION_ACCOUNT, pubkey)


def encode_contract(contract_hash: bytes) -> str:
    """Encode a 32-byte contract id as a ``C...`` address."""
    return _encode(VERSION_CONTRACT, contract_hash)


def decode_account(address: str) -> bytes:
    version, payload = _decode(address)
    if version != VERSION_ACCOUNT:
        raise AddressError("not an account address")
    return payload


def decode_contract(address: str) -> bytes:
    version, payload = _decode(address)
    if version != VERSION_CONTRACT:
        raise AddressError("not a contract address")
    return payload


def is_account(address: str) -> bool:
    try:
        decode_account(address)
        return True
    except AddressError:
        return False


def is_contract(address: str) -> bool:
    try:
        decode_contract(address)
        return True
    except AddressError:
        return False
