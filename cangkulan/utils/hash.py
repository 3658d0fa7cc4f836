"""
Hash helpers.

Keccak-256 (the pre-NIST padding the contracts use) comes from `eth-hash`
with its pycryptodome backend; SHA-256 from hashlib.
"""

from __future__ import annotations

import hashlib

from eth_hash.auto import keccak as _keccak

from .bytes import BytesLike, ensure_bytes


def keccak256(data: BytesLike) -> bytes:
    """Return the 32-byte Keccak-256 digest of *data*."""
    return _keccak(ensure_bytes(data))


def sha256(data: BytesLike) -> bytes:
    return hashlib.sha256(ensure_bytes(data)).digest()


__all__ = ["keccak256", "sha256"]
