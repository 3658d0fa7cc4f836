"""
Transient-error classification.

``is_transient_error(err)`` answers one question: can a fresh attempt of the
same action plausibly succeed? True for infrastructure trouble (timeouts,
resets, DNS, rate limits, 429/503) and for ledger races on sequence numbers
or time bounds. False for everything else, in particular contract-logic
rejections ("duplicate session", "wrong card"): retrying those would hide a
real bug or double-submit a stale action.

Rules, in order, for each exception along the ``__cause__``/``__context__``
chain (outermost first):

1. Typed final errors (``ProtocolError``, ``ContractRejection``,
   ``NoSignatureNeeded``, ``FinalityTimeout``) stop the walk: final.
2. Typed transient errors (``TransientError``, httpx timeouts / network
   errors, ``asyncio.TimeoutError``, ``ConnectionError``) and ``RpcError``
   with HTTP status 429/502/503/504: transient.
3. The message, lower-cased, matches a known transient phrase: transient.

``is_contention_error(err)`` covers the one class of contract rejection that a
rebuilt transaction can get past: two players writing the same game record
at once. The later transaction fails on a stale action nonce or a footprint
conflict; a fresh simulation sees the new state.
"""

from __future__ import annotations

import asyncio
import re
from typing import Iterator, Optional, Union

import httpx

from cangkulan.errors import (
    INVALID_NONCE,
    ContractRejection,
    FinalityTimeout,
    NoSignatureNeeded,
    ProtocolError,
    RpcError,
    TransientError,
)

__all__ = [
    "TRANSIENT_PATTERNS",
    "TRANSIENT_HTTP_STATUSES",
    "is_transient_error",
    "CONTENTION_MARKERS",
    "is_contention_error",
    "error_message",
]

TRANSIENT_PATTERNS = (
    # timeouts
    "timeout",
    "timed out",
    # connection / DNS
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
    "enotfound",
    "getaddrinfo",
    "socket hang up",
    # generic network / fetch
    "network",
    "fetch failed",
    "failed to fetch",
    "failed to send transaction",
    # overload / rate limiting
    "service unavailable",
    "too many requests",
    "rate limit",
    "resource exhausted",
    "try again",
    "try_again_later",
    # ledger races on sequence numbers and time bounds
    "txbadseq",
    "tx_bad_seq",
    "txtoolate",
    "tx_too_late",
    "txtooearly",
    "tx_too_early",
)

TRANSIENT_HTTP_STATUSES = frozenset({429, 502, 503, 504})

_STATUS_RE = re.compile(r"\b(429|503)\b")

_FINAL_TYPES = (ProtocolError, ContractRejection, NoSignatureNeeded, FinalityTimeout)
_TRANSIENT_TYPES = (
    TransientError,
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)

_MAX_CHAIN = 16


def error_message(err: Union[BaseException, str, None]) -> str:
    if err is None:
        return ""
    if isinstance(err, str):
        return err
    return str(err) or type(err).__name__


def _chain(err: BaseException) -> Iterator[BaseException]:
    seen = set()
    cur: Optional[BaseException] = err
    while cur is not None and id(cur) not in seen and len(seen) < _MAX_CHAIN:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__ or cur.__context__


def _message_is_transient(msg: str) -> bool:
    low = msg.lower()
    if any(p in low for p in TRANSIENT_PATTERNS):
        return True
    return bool(_STATUS_RE.search(low))


def is_transient_error(err: Union[BaseException, str, None]) -> bool:
    """True when *err* is retry-eligible infrastructure trouble."""
    if err is None:
        return False
    if isinstance(err, str):
        return _message_is_transient(err)

    for exc in _chain(err):
        if isinstance(exc, _FINAL_TYPES):
            return False
        if isinstance(exc, _TRANSIENT_TYPES):
            return True
        if isinstance(exc, RpcError) and exc.http_status in TRANSIENT_HTTP_STATUSES:
            return True
        if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in TRANSIENT_HTTP_STATUSES:
            return True
        if _message_is_transient(error_message(exc)):
            return True
    return False


CONTENTION_MARKERS = (
    "invalidnonce",
    "invalid nonce",
    "expired in flight",
    "resource_limit_exceeded",
)


def is_contention_error(err: Union[BaseException, str, None]) -> bool:
    """
    True when *err* is a ``ContractRejection`` caused by a concurrent write to
    the game record: the invalid-nonce contract error, or an execution failure
    carrying no contract error code at all.
    """
    if not isinstance(err, ContractRejection):
        return False
    if err.error_code is not None:
        return err.error_code == INVALID_NONCE
    if err.status == "FAILED":
        return True
    low = error_message(err.message).lower()
    return any(m in low for m in CONTENTION_MARKERS)
