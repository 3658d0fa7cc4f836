"""
Commit-reveal primitives.

- pedersen : seed commitment on BLS12-381 G1 with a Fiat–Shamir opening proof
- play     : per-trick keccak commitments (card id or cannot-follow)
- shuffle  : shared shuffle seed from both revealed seed hashes
- curve    : G1 codec and group helpers (py_ecc)
"""

from .pedersen import (  # noqa: F401
    DOMAIN_TAG,
    PROOF_SIZE,
    SeedCommitment,
    SeedReveal,
    commit,
    generate_seed,
    has_sufficient_entropy,
    is_valid_reveal,
    reveal,
    seed_hash,
    verify_reveal,
)
from .play import (  # noqa: F401
    CANNOT_FOLLOW,
    PlayCommitment,
    commit_play,
    generate_play_salt,
    play_commit_hash,
    verify_play_opening,
)
from .shuffle import derive_shuffle_seed  # noqa: F401

__all__ = [
    "DOMAIN_TAG",
    "PROOF_SIZE",
    "SeedCommitment",
    "SeedReveal",
    "commit",
    "generate_seed",
    "has_sufficient_entropy",
    "is_valid_reveal",
    "reveal",
    "seed_hash",
    "verify_reveal",
    "CANNOT_FOLLOW",
    "PlayCommitment",
    "commit_play",
    "generate_play_salt",
    "play_commit_hash",
    "verify_play_opening",
    "derive_shuffle_seed",
]
