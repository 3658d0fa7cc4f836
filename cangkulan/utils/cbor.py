"""
Deterministic (canonical) CBOR for authorization entries and envelopes.

We encode with `cbor2` in canonical mode so map keys are sorted by their
encoded bytes and integers are minimally encoded (RFC 8949 deterministic
ordering). The same logical object therefore always serializes to the same
bytes, which is what signature preimages and byte-for-byte envelope
comparisons rely on.

API
---
- dumps(obj) -> bytes
- loads(data) -> object
- CBOREncodeError / CBORDecodeError
"""

from __future__ import annotations

from typing import Any

import cbor2

from .bytes import BytesLike, ensure_bytes


class CBOREncodeError(ValueError):
    pass


class CBORDecodeError(ValueError):
    pass


def dumps(obj: Any) -> bytes:
    """Encode *obj* to deterministic CBOR bytes."""
    try:
        return cbor2.dumps(obj, canonical=True)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
        raise CBOREncodeError(str(e)) from e


def loads(data: BytesLike) -> Any:
    """Decode CBOR *data* (bytes-like) into Python objects."""
    buf = ensure_bytes(data)
    try:
        return cbor2.loads(buf)
    except (cbor2.CBORDecodeError, TypeError, ValueError, EOFError) as e:
        raise CBORDecodeError(str(e)) from e


__all__ = ["dumps", "loads", "CBOREncodeError", "CBORDecodeError"]
