"""
Shared shuffle seed.

Once both seed reveals verified, the contract seeds its PRNG with

    keccak256(seed_hash_1 || seed_hash_2 || u32_be(session_id))

Either player (or a spectator) can recompute it from the two on-chain seed
hashes. Order matters: player 1's hash comes first.
"""

from __future__ import annotations

from cangkulan.utils.bytes import BytesLike, ensure_bytes, u32_be
from cangkulan.utils.hash import keccak256

__all__ = ["derive_shuffle_seed"]


def derive_shuffle_seed(seed_hash_1: BytesLike, seed_hash_2: BytesLike, session_id: int) -> bytes:
    sh1 = ensure_bytes(seed_hash_1)
    sh2 = ensure_bytes(seed_hash_2)
    if len(sh1) != 32 or len(sh2) != 32:
        raise ValueError("seed hashes must be 32 bytes")
    return keccak256(sh1 + sh2 + u32_be(session_id))
