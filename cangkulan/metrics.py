"""
Prometheus metrics for the cangkulan core.

Instruments
-----------
  • submit_attempts_total      — send attempts, labeled by outcome
  • submit_retries_total       — backoff sleeps taken before a re-attempt
  • read_only_reclassified_total — misreported read-only simulations forced through
  • footprint_repairs_total    — nonce-slot repairs, labeled by action
  • proof_verifications_total  — opening-proof checks, labeled by outcome
  • proof_verify_seconds       — time spent verifying opening proofs

Label cardinality is kept low: every label has a small fixed vocabulary and
unknown values fold into a catch-all.

Usage
-----
    from cangkulan.metrics import METRICS

    METRICS.record_attempt("success")
    METRICS.record_footprint_repair("patched")
    with METRICS.verify_timer():
        verify_reveal(...)

Construct your own ``Metrics`` with a fresh ``CollectorRegistry`` when you
need isolation (tests, several cores in one process).
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable

from prometheus_client import REGISTRY, Counter, Histogram

_ATTEMPT_OUTCOMES = (
    "success",      # the send landed (or a read call resolved inline)
    "transient",    # retry-eligible failure
    "final",        # contract rejection / precondition failure
    "exhausted",    # transient failure on the last attempt
)

_REPAIR_ACTIONS = (
    "patched",      # existing nonce key rewritten in place
    "appended",     # no nonce key for the address; one was added
    "unchanged",    # stub and signed nonces already matched
)

_PROOF_OUTCOMES = (
    "valid",
    "invalid",
)

_VERIFY_BUCKETS = (
    0.01, 0.025, 0.05,
    0.1, 0.25, 0.5,
    1.0, 2.5, 5.0,
)


class Metrics:
    """
    Container for all core Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "cangkulan",
        subsystem: str = "core",
        registry = REGISTRY,
        verify_buckets: Iterable[float] = _VERIFY_BUCKETS,
    ) -> None:
        self.submit_attempts_total = Counter(
            "submit_attempts_total",
            "Transaction send attempts, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.submit_retries_total = Counter(
            "submit_retries_total",
            "Backoff sleeps taken before re-attempting a send.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.read_only_reclassified_total = Counter(
            "read_only_reclassified_total",
            "Sends forced through after the simulation misreported a read call.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.footprint_repairs_total = Counter(
            "footprint_repairs_total",
            "Nonce footprint repairs performed by the auth coordinator, labeled by action.",
            labelnames=("action",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.proof_verifications_total = Counter(
            "proof_verifications_total",
            "Seed opening-proof verifications, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.proof_verify_seconds = Histogram(
            "proof_verify_seconds",
            "Time spent verifying seed opening proofs (seconds).",
            buckets=tuple(verify_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_attempt(self, outcome: str) -> None:
        if outcome not in _ATTEMPT_OUTCOMES:
            outcome = "final"
        self.submit_attempts_total.labels(outcome=outcome).inc()

    def record_retry(self) -> None:
        self.submit_retries_total.inc()

    def record_read_only_reclassified(self) -> None:
        self.read_only_reclassified_total.inc()

    def record_footprint_repair(self, action: str) -> None:
        if action not in _REPAIR_ACTIONS:
            action = "patched"
        self.footprint_repairs_total.labels(action=action).inc()

    def record_proof(self, outcome: str) -> None:
        if outcome not in _PROOF_OUTCOMES:
            outcome = "invalid"
        self.proof_verifications_total.labels(outcome=outcome).inc()

    # ----- Context managers --------------------------------------------------

    @contextmanager
    def verify_timer(self):
        start = perf_counter()
        try:
            yield
        finally:
            self.proof_verify_seconds.observe(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = [
    "Metrics",
    "METRICS",
]
