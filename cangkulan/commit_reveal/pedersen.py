"""
Pedersen seed commitment with a Fiat–Shamir opening proof.

Construction
------------
    s          = keccak256(seed) mod r            (seed scalar)
    C          = s·G + b·H                        (b: random blinding)
    commit_hash = keccak256(encode(C))            (posted during the commit phase)

At reveal time the player publishes ``seed_hash = keccak256(seed)`` and a
224-byte proof ``C || R || z`` showing knowledge of ``b`` such that
``C - s·G = b·H``:

    R = k·H                                       (k: random nonce)
    e = keccak256(C || R || seed_hash || u32_be(session_id) || player || "ZKP4") mod r
    z = k + e·b mod r

Verification recomputes ``e`` and checks ``z·H == R + e·(C - s·G)``.

Binding the session id and player address into ``e`` keeps a proof from
being replayed in another session or attributed to another player. Every
failure (bad encoding, point off-curve or outside the subgroup, ``z >= r``,
commit-hash mismatch, equation mismatch) surfaces as the same
``ProofInvalid``.

Each commitment/proof pair is single use: reusing ``b`` or ``k`` across
sessions leaks the blinding.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional

from cangkulan.commit_reveal import curve
from cangkulan.errors import ProofInvalid
from cangkulan.logging import get_logger
from cangkulan.metrics import METRICS
from cangkulan.utils.bytes import BytesLike, ensure_bytes, u32_be
from cangkulan.utils.hash import keccak256

__all__ = [
    "DOMAIN_TAG",
    "SEED_SIZE",
    "PROOF_SIZE",
    "SeedCommitment",
    "SeedReveal",
    "generate_seed",
    "has_sufficient_entropy",
    "seed_hash",
    "commit",
    "reveal",
    "verify_reveal",
    "is_valid_reveal",
]

log = get_logger(__name__)

DOMAIN_TAG = b"ZKP4"
SEED_SIZE = 32
PROOF_SIZE = 2 * curve.POINT_SIZE + curve.SCALAR_SIZE  # 224
MIN_DISTINCT_BYTES = 4


@dataclass(frozen=True)
class SeedCommitment:
    """
    Commit-phase output.

    ``commit_hash`` goes on-chain. ``commitment`` and ``blinding`` stay with the
    player until reveal.
    """

    commit_hash: bytes
    commitment: bytes
    blinding: int

    def __repr__(self) -> str:
        return f"SeedCommitment(commit_hash=0x{self.commit_hash.hex()}, blinding=***)"


@dataclass(frozen=True)
class SeedReveal:
    seed_hash: bytes
    proof: bytes


def generate_seed() -> bytes:
    """32 bytes from the OS CSPRNG."""
    return secrets.token_bytes(SEED_SIZE)


def seed_hash(seed: BytesLike) -> bytes:
    return keccak256(seed)


def has_sufficient_entropy(data: BytesLike, min_distinct: int = MIN_DISTINCT_BYTES) -> bool:
    """At least *min_distinct* different byte values (rejects all-zero or 0101... seeds)."""
    return len(set(ensure_bytes(data))) >= min_distinct


def _commitment_point(s: int, blinding: int):
    return curve.add(curve.mul(curve.generator(), s), curve.mul(curve.pedersen_h(), blinding))


def _challenge(c_bytes: bytes, r_bytes: bytes, sh: bytes, session_id: int, player: str) -> int:
    transcript = c_bytes + r_bytes + sh + u32_be(session_id) + player.encode("utf-8") + DOMAIN_TAG
    return curve.scalar_from_hash(keccak256(transcript))


def commit(seed: BytesLike, blinding: Optional[int] = None) -> SeedCommitment:
    """
    Commit to *seed*. A fresh blinding scalar is drawn unless one is supplied.
    """
    seed_b = ensure_bytes(seed)
    if not has_sufficient_entropy(seed_b):
        raise ValueError("seed has too little entropy")
    if blinding is None:
        blinding = curve.random_scalar()
    elif not (0 < blinding < curve.CURVE_ORDER):
        raise ValueError("blinding must be in [1, r-1]")

    s = curve.scalar_from_hash(keccak256(seed_b))
    c_bytes = curve.encode_point(_commitment_point(s, blinding))
    return SeedCommitment(commit_hash=keccak256(c_bytes), commitment=c_bytes, blinding=blinding)


def reveal(
    seed: BytesLike,
    blinding: int,
    session_id: int,
    player_address: str,
    *,
    nonce: Optional[int] = None,
) -> SeedReveal:
    """
    Build ``(seed_hash, proof)`` for the reveal transaction.

    ``nonce`` exists for deterministic test vectors only; leave it unset.
    """
    seed_b = ensure_bytes(seed)
    if not (0 < blinding < curve.CURVE_ORDER):
        raise ValueError("blinding must be in [1, r-1]")

    sh = keccak256(seed_b)
    s = curve.scalar_from_hash(sh)
    c_bytes = curve.encode_point(_commitment_point(s, blinding))

    k = curve.random_scalar() if nonce is None else nonce % curve.CURVE_ORDER
    r_bytes = curve.encode_point(curve.mul(curve.pedersen_h(), k))

    e = _challenge(c_bytes, r_bytes, sh, session_id, player_address)
    z = (k + e * blinding) % curve.CURVE_ORDER

    proof = c_bytes + r_bytes + curve.encode_scalar(z)
    return SeedReveal(seed_hash=sh, proof=proof)


def _verify(
    commit_hash: bytes,
    sh: bytes,
    proof: bytes,
    session_id: int,
    player_address: str,
) -> bool:
    if len(commit_hash) != 32 or len(sh) != 32 or len(proof) != PROOF_SIZE:
        return False

    p = curve.POINT_SIZE
    c_bytes, r_bytes, z_bytes = proof[:p], proof[p : 2 * p], proof[2 * p :]

    if keccak256(c_bytes) != commit_hash:
        return False

    try:
        c_pt = curve.decode_point(c_bytes)
        r_pt = curve.decode_point(r_bytes)
        z = curve.decode_scalar(z_bytes)
        e = _challenge(c_bytes, r_bytes, sh, session_id, player_address)
    except (ValueError, TypeError):
        return False

    s = curve.scalar_from_hash(sh)
    d = curve.sub(c_pt, curve.mul(curve.generator(), s))
    lhs = curve.mul(curve.pedersen_h(), z)
    rhs = curve.add(r_pt, curve.mul(d, e))
    return curve.points_equal(lhs, rhs)


def verify_reveal(
    commit_hash: BytesLike,
    seed_hash: BytesLike,
    proof: BytesLike,
    session_id: int,
    player_address: str,
) -> None:
    """
    Verify a reveal against the on-chain commit hash. Raises ``ProofInvalid``
    on any failure and returns ``None`` on success.
    """
    with METRICS.verify_timer():
        try:
            ok = _verify(
                ensure_bytes(commit_hash),
                ensure_bytes(seed_hash),
                ensure_bytes(proof),
                session_id,
                player_address,
            )
        except (ValueError, TypeError):
            ok = False

    METRICS.record_proof("valid" if ok else "invalid")
    if not ok:
        log.debug("seed_proof_rejected", session_id=session_id, player=player_address)
        raise ProofInvalid()


def is_valid_reveal(
    commit_hash: BytesLike,
    seed_hash: BytesLike,
    proof: BytesLike,
    session_id: int,
    player_address: str,
) -> bool:
    try:
        verify_reveal(commit_hash, seed_hash, proof, session_id, player_address)
    except ProofInvalid:
        return False
    return True
