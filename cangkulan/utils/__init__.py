"""
Small byte/hash/CBOR helpers shared across the core.

Submodules:
- bytes : hex/base64 conversions and fixed-width integer packing
- hash  : keccak256 / sha256 digests
- cbor  : deterministic CBOR (dumps/loads)
"""

from .bytes import b64decode, b64encode, ensure_bytes, from_hex, to_hex, u32_be  # noqa: F401
from .hash import keccak256, sha256  # noqa: F401

__all__ = [
    "b64decode",
    "b64encode",
    "ensure_bytes",
    "from_hex",
    "to_hex",
    "u32_be",
    "keccak256",
    "sha256",
]
