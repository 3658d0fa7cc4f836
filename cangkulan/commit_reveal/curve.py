"""
BLS12-381 G1 helpers for the seed commitment.

Thin layer over ``py_ecc.optimized_bls12_381`` (Jacobian points) plus the
96-byte point codec the contract uses:

    encode(P) = x (48 bytes, big-endian) || y (48 bytes, big-endian)
    encode(O) = 0x40 || 0x00 * 95

Decoding is strict: flag bits other than the infinity flag are rejected,
coordinates must be below the field modulus, and the point must lie on the
curve and in the prime-order subgroup.

The second generator ``H`` is derived with RFC 9380 hash-to-curve
(BLS12381G1_XMD:SHA-256_SSWU_RO_) so nobody knows ``log_G(H)``.
"""

from __future__ import annotations

import hashlib
import secrets
from functools import lru_cache
from typing import Any

from py_ecc.bls.hash_to_curve import hash_to_G1
from py_ecc.optimized_bls12_381 import FQ, G1, Z1
from py_ecc.optimized_bls12_381 import add as _add
from py_ecc.optimized_bls12_381 import b as _B
from py_ecc.optimized_bls12_381 import curve_order, field_modulus
from py_ecc.optimized_bls12_381 import eq as _eq
from py_ecc.optimized_bls12_381 import is_inf as _is_inf
from py_ecc.optimized_bls12_381 import is_on_curve as _is_on_curve
from py_ecc.optimized_bls12_381 import multiply as _mul
from py_ecc.optimized_bls12_381 import neg as _neg
from py_ecc.optimized_bls12_381 import normalize as _normalize

__all__ = [
    "G1Point",
    "CURVE_ORDER",
    "POINT_SIZE",
    "SCALAR_SIZE",
    "PEDERSEN_H_MSG",
    "PEDERSEN_H_DST",
    "PointDecodeError",
    "generator",
    "pedersen_h",
    "add",
    "sub",
    "mul",
    "points_equal",
    "encode_point",
    "decode_point",
    "encode_scalar",
    "decode_scalar",
    "scalar_from_hash",
    "random_scalar",
]

G1Point = Any  # opaque py_ecc Jacobian point

CURVE_ORDER: int = curve_order
POINT_SIZE = 96
SCALAR_SIZE = 32
_COORD_SIZE = 48

_FLAG_COMPRESSED = 0x80
_FLAG_INFINITY = 0x40
_FLAG_SIGN = 0x20

PEDERSEN_H_MSG = b"PEDERSEN_H"
PEDERSEN_H_DST = b"SGS_CANGKULAN_V1"


class PointDecodeError(ValueError):
    """Bytes do not encode a valid G1 subgroup point."""


# ---- Generators -------------------------------------------------------------


def generator() -> G1Point:
    return G1


@lru_cache(maxsize=1)
def pedersen_h() -> G1Point:
    """H = hash_to_G1("PEDERSEN_H", DST="SGS_CANGKULAN_V1"). Computed once."""
    return hash_to_G1(PEDERSEN_H_MSG, PEDERSEN_H_DST, hashlib.sha256)


# ---- Group ops --------------------------------------------------------------


def add(p: G1Point, q: G1Point) -> G1Point:
    return _add(p, q)


def sub(p: G1Point, q: G1Point) -> G1Point:
    return _add(p, _neg(q))


def mul(p: G1Point, k: int) -> G1Point:
    k %= CURVE_ORDER
    if k == 0:
        return Z1
    return _mul(p, k)


def points_equal(p: G1Point, q: G1Point) -> bool:
    return bool(_eq(p, q))


def _in_subgroup(p: G1Point) -> bool:
    return bool(_is_inf(_mul(p, CURVE_ORDER)))


# ---- Codec ------------------------------------------------------------------


def encode_point(p: G1Point) -> bytes:
    if _is_inf(p):
        return bytes([_FLAG_INFINITY]) + bytes(POINT_SIZE - 1)
    x, y = _normalize(p)
    return int(x.n).to_bytes(_COORD_SIZE, "big") + int(y.n).to_bytes(_COORD_SIZE, "big")


def decode_point(data: bytes) -> G1Point:
    if len(data) != POINT_SIZE:
        raise PointDecodeError(f"point must be {POINT_SIZE} bytes, got {len(data)}")
    flags = data[0] & (_FLAG_COMPRESSED | _FLAG_INFINITY | _FLAG_SIGN)
    if flags & (_FLAG_COMPRESSED | _FLAG_SIGN):
        raise PointDecodeError("compressed/sign flags not allowed in uncompressed encoding")
    if flags & _FLAG_INFINITY:
        if data[0] != _FLAG_INFINITY or any(data[1:]):
            raise PointDecodeError("non-canonical point at infinity")
        return Z1
    x = int.from_bytes(data[:_COORD_SIZE], "big")
    y = int.from_bytes(data[_COORD_SIZE:], "big")
    if x >= field_modulus or y >= field_modulus:
        raise PointDecodeError("coordinate not reduced")
    p = (FQ(x), FQ(y), FQ.one())
    if not _is_on_curve(p, _B):
        raise PointDecodeError("point not on curve")
    if not _in_subgroup(p):
        raise PointDecodeError("point not in G1 subgroup")
    return p


def encode_scalar(k: int) -> bytes:
    return int(k).to_bytes(SCALAR_SIZE, "big")


def decode_scalar(data: bytes) -> int:
    """Strict scalar decode: 32 bytes big-endian, value below the group order."""
    if len(data) != SCALAR_SIZE:
        raise ValueError(f"scalar must be {SCALAR_SIZE} bytes, got {len(data)}")
    k = int.from_bytes(data, "big")
    if k >= CURVE_ORDER:
        raise ValueError("scalar not below group order")
    return k


def scalar_from_hash(digest: bytes) -> int:
    """Reduce a 32-byte digest into the scalar field."""
    return int.from_bytes(digest, "big") % CURVE_ORDER


def random_scalar() -> int:
    """Uniform non-zero scalar from the OS CSPRNG."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1
