from __future__ import annotations

import base64
import binascii
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

U32_MAX = 0xFFFFFFFF


def ensure_bytes(data: Union[BytesLike, str]) -> bytes:
    """
    Ensure input is bytes.

    Accepts:
      - bytes / bytearray / memoryview  -> bytes(data)
      - str: treated as hex; optional '0x' prefix; even-length enforced

    Raises:
      ValueError on invalid hex strings.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        return from_hex(data)
    raise TypeError(f"Unsupported type for ensure_bytes: {type(data)!r}")


def to_hex(b: BytesLike, prefix: bool = True) -> str:
    """
    Bytes -> hex string (lowercase). Prefix with '0x' by default.
    """
    s = bytes(b).hex()
    return f"0x{s}" if prefix else s


def from_hex(s: str) -> bytes:
    """
    Hex string (optionally '0x' prefixed) -> bytes.
    """
    if not isinstance(s, str):
        raise TypeError("from_hex expects a string")
    if s.startswith(("0x", "0X")):
        s = s[2:]
    if len(s) % 2 != 0:
        raise ValueError("hex string must have even length")
    try:
        return bytes.fromhex(s)
    except ValueError as e:
        raise ValueError(f"invalid hex string: {e}") from e


def b64encode(b: BytesLike) -> str:
    return base64.b64encode(bytes(b)).decode("ascii")


def b64decode(s: Union[str, BytesLike]) -> bytes:
    """Strict base64 decode; raises ValueError on bad padding/alphabet."""
    raw = s.encode("ascii") if isinstance(s, str) else bytes(s)
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def u32_be(n: int) -> bytes:
    """Unsigned 32-bit big-endian encoding (session ids, card/action ids)."""
    if not isinstance(n, int) or isinstance(n, bool):
        raise TypeError("u32 value must be an int")
    if not (0 <= n <= U32_MAX):
        raise ValueError(f"value {n} out of u32 range")
    return n.to_bytes(4, "big")


__all__ = [
    "BytesLike",
    "U32_MAX",
    "ensure_bytes",
    "to_hex",
    "from_hex",
    "b64encode",
    "b64decode",
    "u32_be",
]
