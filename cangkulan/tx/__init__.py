"""
Transaction submission: classification, retry policy, send + finality.

- classify : is_transient_error, is_contention_error
- retry    : RetryPolicy, backoff_delay, aretry_call
- send     : send_envelope, wait_for_transaction, SentTransaction
- submit   : submit, send_with_read_only_fallback
"""

from .classify import is_contention_error, is_transient_error  # noqa: F401
from .retry import RetryPolicy, aretry_call, backoff_delay, raw_delay  # noqa: F401
from .send import SentTransaction, send_and_wait, send_envelope, wait_for_transaction  # noqa: F401
from .submit import (  # noqa: F401
    PendingTransaction,
    is_read_call_rejection,
    send_with_read_only_fallback,
    submit,
)

__all__ = [
    "is_contention_error",
    "is_transient_error",
    "RetryPolicy",
    "aretry_call",
    "backoff_delay",
    "raw_delay",
    "SentTransaction",
    "send_and_wait",
    "send_envelope",
    "wait_for_transaction",
    "PendingTransaction",
    "is_read_call_rejection",
    "send_with_read_only_fallback",
    "submit",
]
