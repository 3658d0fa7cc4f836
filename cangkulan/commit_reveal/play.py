"""
Per-trick play commitments.

A simpler commit-reveal run once per trick, with no curve proof:

    commit_hash = keccak256(u32_be(action) || salt)      salt: 32 random bytes

``action`` is a card id (0..35) or ``CANNOT_FOLLOW`` to declare that the
player cannot follow suit. The opening ``(action, salt)`` is published with
``reveal_play`` once both players have committed.
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass

from cangkulan.utils.bytes import BytesLike, ensure_bytes, u32_be
from cangkulan.utils.hash import keccak256

__all__ = [
    "SALT_SIZE",
    "DECK_SIZE",
    "CANNOT_FOLLOW",
    "PlayCommitment",
    "generate_play_salt",
    "play_commit_hash",
    "commit_play",
    "verify_play_opening",
]

SALT_SIZE = 32
DECK_SIZE = 36
CANNOT_FOLLOW = 0xFFFFFFFF


@dataclass(frozen=True)
class PlayCommitment:
    commit_hash: bytes
    action: int
    salt: bytes

    def __repr__(self) -> str:
        return f"PlayCommitment(commit_hash=0x{self.commit_hash.hex()}, action=***, salt=***)"


def _check_action(action: int) -> None:
    if action != CANNOT_FOLLOW and not (0 <= action < DECK_SIZE):
        raise ValueError(f"action must be a card id in [0, {DECK_SIZE}) or CANNOT_FOLLOW, got {action}")


def generate_play_salt() -> bytes:
    return secrets.token_bytes(SALT_SIZE)


def play_commit_hash(action: int, salt: BytesLike) -> bytes:
    """keccak256(u32_be(action) || salt); *salt* must be exactly 32 bytes."""
    salt_b = ensure_bytes(salt)
    if len(salt_b) != SALT_SIZE:
        raise ValueError(f"salt must be {SALT_SIZE} bytes, got {len(salt_b)}")
    return keccak256(u32_be(action) + salt_b)


def commit_play(action: int) -> PlayCommitment:
    """Draw a fresh salt and commit to *action*."""
    _check_action(action)
    salt = generate_play_salt()
    return PlayCommitment(commit_hash=play_commit_hash(action, salt), action=action, salt=salt)


def verify_play_opening(commit_hash: BytesLike, action: int, salt: BytesLike) -> bool:
    try:
        computed = play_commit_hash(action, salt)
    except (ValueError, TypeError):
        return False
    return hmac.compare_digest(computed, ensure_bytes(commit_hash))
