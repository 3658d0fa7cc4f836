"""
cangkulan.tx.send
=================

Submit signed envelopes and await finality.

Primary entry points
--------------------
- send_envelope(rpc, envelope_b64) -> str
    Calls ``sendTransaction``. Returns the transaction hash for PENDING or
    DUPLICATE; raises ``TxSubmissionError`` for ERROR and ``TransientError``
    for TRY_AGAIN_LATER.

- wait_for_transaction(rpc, tx_hash, *, timeout_s=30, poll_interval_s=1.0) -> dict
    Polls ``getTransaction`` until SUCCESS (returned) or FAILED (raises
    ``ContractRejection``). Raises ``FinalityTimeout`` at the deadline. A
    transient error from a poll counts as a missed poll, never as a reason to
    send again.

- send_and_wait(rpc, envelope_b64, ...) -> SentTransaction
    Both of the above, with the return value decoded.

Polling is bounded by the deadline; no timer is left running when these
return or raise.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from cangkulan.errors import ContractRejection, FinalityTimeout, TransientError, TxSubmissionError
from cangkulan.logging import get_logger
from cangkulan.tx.classify import error_message, is_transient_error
from cangkulan.utils.bytes import b64decode
from cangkulan.utils.cbor import loads

__all__ = [
    "SentTransaction",
    "SendRpc",
    "send_envelope",
    "wait_for_transaction",
    "send_and_wait",
    "decode_return_value",
]

log = get_logger(__name__)


@dataclass
class SentTransaction:
    """
    Outcome of a send.

    ``tx_hash`` is ``None`` only for calls resolved inline as read-only; the
    call never reached the ledger.
    """

    result: Any = None
    tx_hash: Optional[str] = None
    response: Optional[Dict[str, Any]] = None


class SendRpc(Protocol):
    async def send_transaction(self, envelope_b64: str) -> Dict[str, Any]: ...
    async def get_transaction(self, tx_hash: str) -> Dict[str, Any]: ...


# -----------------------------------------------------------------------------
# Submission
# -----------------------------------------------------------------------------


async def send_envelope(rpc: SendRpc, envelope_b64: str) -> str:
    resp = await rpc.send_transaction(envelope_b64)
    status = str(resp.get("status", "")).upper()
    tx_hash = resp.get("hash")

    if status in ("PENDING", "DUPLICATE"):
        if not tx_hash:
            raise TxSubmissionError(message=f"{status} response without hash", response=resp)
        return str(tx_hash)
    if status == "TRY_AGAIN_LATER":
        raise TransientError(f"sendTransaction returned TRY_AGAIN_LATER for {tx_hash}")
    if status == "ERROR":
        detail = resp.get("errorResult") or resp.get("error") or "ERROR"
        raise TxSubmissionError(message=str(detail), tx_hash=tx_hash, response=resp)
    raise TxSubmissionError(message=f"unexpected sendTransaction status {status!r}", tx_hash=tx_hash, response=resp)


# -----------------------------------------------------------------------------
# Finality
# -----------------------------------------------------------------------------


def decode_return_value(resp: Dict[str, Any]) -> Any:
    """Decode the base64 CBOR ``returnValue`` of a SUCCESS response, if any."""
    raw = resp.get("returnValue")
    if raw is None:
        return None
    return loads(b64decode(raw))


def _failure_message(resp: Dict[str, Any]) -> str:
    for key in ("error", "resultError", "resultXdr"):
        val = resp.get(key)
        if val:
            return str(val)
    return "transaction failed"


async def wait_for_transaction(
    rpc: SendRpc,
    tx_hash: str,
    *,
    timeout_s: float = 30.0,
    poll_interval_s: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Dict[str, Any]:
    deadline = clock() + timeout_s
    polls = 0
    while True:
        polls += 1
        try:
            resp = await rpc.get_transaction(tx_hash)
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            log.warning("tx_poll_failed", tx_hash=tx_hash, polls=polls, error=error_message(exc))
            resp = {}
        status = str(resp.get("status", "")).upper()
        if status == "SUCCESS":
            log.debug("tx_confirmed", tx_hash=tx_hash, polls=polls, ledger=resp.get("ledger"))
            return resp
        if status == "FAILED":
            raise ContractRejection(
                message=_failure_message(resp),
                tx_hash=tx_hash,
                status="FAILED",
                response=resp,
            )

        remaining = deadline - clock()
        if remaining <= 0:
            log.warning("tx_finality_timeout", tx_hash=tx_hash, polls=polls, timeout_s=timeout_s)
            raise FinalityTimeout(tx_hash=tx_hash, timeout_s=timeout_s)
        await sleep(min(poll_interval_s, remaining))


async def send_and_wait(
    rpc: SendRpc,
    envelope_b64: str,
    *,
    timeout_s: float = 30.0,
    poll_interval_s: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SentTransaction:
    tx_hash = await send_envelope(rpc, envelope_b64)
    log.info("tx_sent", tx_hash=tx_hash)
    resp = await wait_for_transaction(
        rpc, tx_hash, timeout_s=timeout_s, poll_interval_s=poll_interval_s, sleep=sleep
    )
    return SentTransaction(result=decode_return_value(resp), tx_hash=tx_hash, response=resp)
