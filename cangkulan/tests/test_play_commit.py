import pytest

from cangkulan.commit_reveal.play import (
    CANNOT_FOLLOW,
    DECK_SIZE,
    SALT_SIZE,
    commit_play,
    generate_play_salt,
    play_commit_hash,
    verify_play_opening,
)
from cangkulan.utils.hash import keccak256


def test_hash_layout_is_u32_be_then_salt():
    salt = bytes(range(SALT_SIZE))
    expected = keccak256(b"\x00\x00\x00\x05" + salt)
    assert play_commit_hash(5, salt) == expected
    assert play_commit_hash(CANNOT_FOLLOW, salt) == keccak256(b"\xff\xff\xff\xff" + salt)


def test_commit_hashes_unique_over_many_trials():
    seen = set()
    trials = 10_000
    for i in range(trials):
        c = commit_play(i % DECK_SIZE)
        seen.add(c.commit_hash)
    assert len(seen) == trials


def test_salts_are_fresh():
    assert len({generate_play_salt() for _ in range(64)}) == 64


def test_opening_roundtrip_and_mismatch():
    c = commit_play(17)
    assert verify_play_opening(c.commit_hash, 17, c.salt)
    assert not verify_play_opening(c.commit_hash, 18, c.salt)
    assert not verify_play_opening(c.commit_hash, 17, bytes(SALT_SIZE))
    assert not verify_play_opening(c.commit_hash, 17, c.salt[:-1])


def test_cannot_follow_commit():
    c = commit_play(CANNOT_FOLLOW)
    assert verify_play_opening(c.commit_hash, CANNOT_FOLLOW, c.salt)


@pytest.mark.parametrize("action", [-1, DECK_SIZE, 1000])
def test_invalid_actions_rejected(action):
    with pytest.raises(ValueError):
        commit_play(action)


def test_salt_length_enforced():
    with pytest.raises(ValueError):
        play_commit_hash(1, b"\x00" * 31)


def test_repr_hides_secret():
    c = commit_play(3)
    assert c.salt.hex() not in repr(c)
    assert "action=***" in repr(c)
