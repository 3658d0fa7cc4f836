"""
Resilient submitter.

``submit(build_and_simulate, policy)`` runs simulate-then-send under a
bounded retry budget:

    for attempt in 1..policy.max_attempts:
        pending = await build_and_simulate()     # fresh simulation each attempt
        sent    = await send_with_read_only_fallback(pending)

Only errors ``is_transient_error`` accepts are retried. Contract rejections
and protocol precondition failures surface after the attempt that raised
them, unchanged.

Once ``sendTransaction`` has answered with a hash the envelope is never sent
again: ``attempt_timeout`` bounds only the build-and-simulate step, and the
finality wait either resolves or raises ``FinalityTimeout``, which is final.

Misreported read-only simulations
---------------------------------
The binding layer sometimes classifies a state-changing call as a read call
and refuses to sign it ("This is a read call ... force: true").
``send_with_read_only_fallback`` forces one send; if that still reports a
read call, the simulated return value is taken as the result and no
transaction hash exists. This happens at most once per send and is not a
retry.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Protocol

from cangkulan.errors import NoSignatureNeeded, RetryExhausted
from cangkulan.logging import get_logger
from cangkulan.metrics import METRICS
from cangkulan.tx.classify import error_message, is_transient_error
from cangkulan.tx.retry import RetryPolicy, aretry_call
from cangkulan.tx.send import SentTransaction

__all__ = [
    "READ_CALL_MARKERS",
    "PendingTransaction",
    "BuildAndSimulate",
    "is_read_call_rejection",
    "send_with_read_only_fallback",
    "submit",
]

log = get_logger(__name__)

READ_CALL_MARKERS = (
    "nosignatureneedederror",
    "this is a read call",
    "requires no signature",
    "force: true",
)


class PendingTransaction(Protocol):
    """A simulated transaction as produced by the contract-binding layer."""

    @property
    def result(self) -> Any: ...

    async def sign_and_send(self, *, force: bool = False) -> SentTransaction: ...


BuildAndSimulate = Callable[[], Awaitable[PendingTransaction]]


def is_read_call_rejection(err: BaseException) -> bool:
    if isinstance(err, NoSignatureNeeded):
        return True
    low = error_message(err).lower()
    return any(m in low for m in READ_CALL_MARKERS)


async def send_with_read_only_fallback(pending: PendingTransaction) -> SentTransaction:
    try:
        return await pending.sign_and_send()
    except Exception as err:
        if not is_read_call_rejection(err):
            raise
        log.info("read_call_reported", action="force_send", reason=error_message(err))

    METRICS.record_read_only_reclassified()
    try:
        return await pending.sign_and_send(force=True)
    except Exception as err:
        if not is_read_call_rejection(err):
            raise
        log.info("read_call_confirmed", action="use_simulated_result")

    return SentTransaction(result=pending.result, tx_hash=None)


async def submit(
    build_and_simulate: BuildAndSimulate,
    policy: Optional[RetryPolicy] = None,
    *,
    attempt_timeout: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    label: str = "submit",
) -> SentTransaction:
    """
    Simulate and send with retries. Returns the ``SentTransaction`` or raises
    the final error (unchanged) or ``RetryExhausted``.

    ``attempt_timeout`` bounds ``build_and_simulate`` of each attempt.
    """
    policy = policy or RetryPolicy()

    async def _attempt() -> SentTransaction:
        try:
            if attempt_timeout is not None:
                pending = await asyncio.wait_for(build_and_simulate(), timeout=attempt_timeout)
            else:
                pending = await build_and_simulate()
            sent = await send_with_read_only_fallback(pending)
        except Exception as exc:
            METRICS.record_attempt("transient" if is_transient_error(exc) else "final")
            raise
        METRICS.record_attempt("success")
        return sent

    def _on_retry(attempt: int, exc: BaseException, sleep_s: float) -> None:
        METRICS.record_retry()
        log.warning(
            "submit_retry",
            label=label,
            attempt=attempt,
            max_attempts=policy.max_attempts,
            sleep_s=round(sleep_s, 3),
            error=error_message(exc),
        )

    try:
        return await aretry_call(
            _attempt,
            policy=policy,
            retry_if=is_transient_error,
            on_retry=_on_retry,
            sleep=sleep,
            rng=rng,
        )
    except RetryExhausted as exc:
        METRICS.record_attempt("exhausted")
        log.error("submit_exhausted", label=label, attempts=exc.attempts, error=error_message(exc.last_error))
        raise
