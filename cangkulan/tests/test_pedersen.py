import random

import pytest

from cangkulan.commit_reveal import curve
from cangkulan.commit_reveal.pedersen import (
    PROOF_SIZE,
    commit,
    generate_seed,
    has_sufficient_entropy,
    is_valid_reveal,
    reveal,
    seed_hash,
    verify_reveal,
)
from cangkulan.commit_reveal.shuffle import derive_shuffle_seed
from cangkulan.errors import ProofInvalid
from cangkulan.utils.hash import keccak256

PLAYER = "GBRPYHIL2CI3FNQ4BXLFMNDLFJUNPU2HY3ZMFSHONUCEOASW7QC7OX2H"
OTHER = "GDQP2KPQGKIHYJGXNUIYOMHARUARCA7DJT5FO2FFOOKY3B2WSQHG4W37"
SESSION = 42


@pytest.fixture(scope="module")
def seed() -> bytes:
    return bytes(range(1, 33))


@pytest.fixture(scope="module")
def committed(seed):
    return commit(seed)


@pytest.fixture(scope="module")
def revealed(seed, committed):
    return reveal(seed, committed.blinding, SESSION, PLAYER)


def test_proof_layout(committed, revealed, seed):
    assert len(revealed.proof) == PROOF_SIZE == 224
    assert revealed.seed_hash == seed_hash(seed)
    # The proof opens the published commitment.
    assert revealed.proof[: curve.POINT_SIZE] == committed.commitment
    assert len(committed.commit_hash) == 32


@pytest.mark.parametrize("nonce", [0, 1, curve.CURVE_ORDER - 1])
def test_proof_size_is_fixed_for_edge_nonces(seed, committed, nonce):
    # nonce 0 puts R at infinity; the encoding keeps its 96 bytes.
    assert len(reveal(seed, committed.blinding, SESSION, PLAYER, nonce=nonce).proof) == PROOF_SIZE


def test_honest_reveal_verifies(committed, revealed):
    verify_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof, SESSION, PLAYER)
    assert is_valid_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof, SESSION, PLAYER)


def test_fresh_nonce_each_reveal(seed, committed):
    a = reveal(seed, committed.blinding, SESSION, PLAYER)
    b = reveal(seed, committed.blinding, SESSION, PLAYER)
    assert a.proof != b.proof
    assert is_valid_reveal(committed.commit_hash, b.seed_hash, b.proof, SESSION, PLAYER)


def test_deterministic_with_fixed_nonce(seed, committed):
    a = reveal(seed, committed.blinding, SESSION, PLAYER, nonce=12345)
    b = reveal(seed, committed.blinding, SESSION, PLAYER, nonce=12345)
    assert a == b


def test_proof_byte_mutations_fail(committed, revealed):
    rnd = random.Random(7)
    # One byte in each region (C, R, z) plus a few random positions.
    positions = [0, 50, 95, 96, 150, 191, 192, 210, 223] + rnd.sample(range(PROOF_SIZE), 6)
    for pos in positions:
        mutated = bytearray(revealed.proof)
        mutated[pos] ^= 1 << rnd.randrange(8)
        assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, bytes(mutated), SESSION, PLAYER), pos


def test_wrong_session_fails(committed, revealed):
    for sid in (SESSION + 1, SESSION ^ 0x100, 0):
        with pytest.raises(ProofInvalid):
            verify_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof, sid, PLAYER)


def test_wrong_player_fails(committed, revealed):
    assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof, SESSION, OTHER)
    # Single character change in the address.
    tweaked = PLAYER[:-1] + ("A" if PLAYER[-1] != "A" else "B")
    assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof, SESSION, tweaked)


def test_wrong_seed_hash_or_commit_fails(committed, revealed):
    bad_sh = bytearray(revealed.seed_hash)
    bad_sh[0] ^= 0x80
    assert not is_valid_reveal(committed.commit_hash, bytes(bad_sh), revealed.proof, SESSION, PLAYER)

    bad_ch = bytearray(committed.commit_hash)
    bad_ch[31] ^= 0x01
    assert not is_valid_reveal(bytes(bad_ch), revealed.seed_hash, revealed.proof, SESSION, PLAYER)


def test_wrong_lengths_fail(committed, revealed):
    assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof[:-1], SESSION, PLAYER)
    assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, revealed.proof + b"\x00", SESSION, PLAYER)
    assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, b"", SESSION, PLAYER)


def test_out_of_range_response_scalar_fails(committed, revealed):
    p = curve.POINT_SIZE
    z = int.from_bytes(revealed.proof[2 * p :], "big")
    # z + r encodes the same residue but is out of range (when it still fits in 32 bytes).
    bumped = z + curve.CURVE_ORDER
    if bumped < 1 << 256:
        proof = revealed.proof[: 2 * p] + bumped.to_bytes(32, "big")
        assert not is_valid_reveal(committed.commit_hash, revealed.seed_hash, proof, SESSION, PLAYER)


def test_other_seed_cannot_open_commitment(committed):
    other_seed = bytes(range(100, 132))
    forged = reveal(other_seed, committed.blinding, SESSION, PLAYER)
    assert not is_valid_reveal(committed.commit_hash, forged.seed_hash, forged.proof, SESSION, PLAYER)


def test_commitments_hide_equal_seeds(seed):
    # Same seed, fresh blinding each time: commitments never repeat.
    hashes = {commit(seed).commit_hash for _ in range(8)}
    assert len(hashes) == 8


def test_commit_hashes_do_not_collide_over_10k_blindings(seed):
    # C(s, r + i) = C(s, r) + i*H: walk 10,000 consecutive blindings of one seed.
    start = commit(seed, blinding=1)
    h = curve.pedersen_h()
    point = curve.decode_point(start.commitment)
    hashes = {start.commit_hash}
    for _ in range(10_000):
        point = curve.add(point, h)
        hashes.add(keccak256(curve.encode_point(point)))
    assert len(hashes) == 10_001
    assert commit(seed, blinding=10_001).commit_hash in hashes


def test_distinct_seeds_distinct_commitments():
    seen = set()
    for _ in range(8):
        c = commit(generate_seed(), blinding=7)
        seen.add(c.commit_hash)
    assert len(seen) == 8


def test_weak_seeds_rejected():
    assert not has_sufficient_entropy(bytes(32))
    assert not has_sufficient_entropy(b"\x01\x02" * 16)
    assert has_sufficient_entropy(bytes(range(32)))
    with pytest.raises(ValueError):
        commit(bytes(32))


def test_bad_blinding_rejected(seed):
    with pytest.raises(ValueError):
        commit(seed, blinding=0)
    with pytest.raises(ValueError):
        commit(seed, blinding=curve.CURVE_ORDER)
    with pytest.raises(ValueError):
        reveal(seed, 0, SESSION, PLAYER)


def test_shuffle_seed_binds_both_players_and_session():
    sh1 = seed_hash(bytes(range(32)))
    sh2 = seed_hash(bytes(range(32, 64)))
    base = derive_shuffle_seed(sh1, sh2, SESSION)
    assert len(base) == 32
    assert derive_shuffle_seed(sh1, sh2, SESSION) == base
    assert derive_shuffle_seed(sh2, sh1, SESSION) != base
    assert derive_shuffle_seed(sh1, sh2, SESSION + 1) != base
    with pytest.raises(ValueError):
        derive_shuffle_seed(sh1[:31], sh2, SESSION)


def test_point_codec_rejects_off_curve():
    h = curve.encode_point(curve.pedersen_h())
    assert curve.points_equal(curve.decode_point(h), curve.pedersen_h())
    bad = bytearray(h)
    bad[95] ^= 0x01
    with pytest.raises(curve.PointDecodeError):
        curve.decode_point(bytes(bad))
