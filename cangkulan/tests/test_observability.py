import json
import logging

import pytest
import structlog
from prometheus_client import CollectorRegistry

from cangkulan.logging import _redact_secrets, get_logger, setup_logging
from cangkulan.metrics import Metrics


def test_redacts_secret_fields():
    ev = _redact_secrets(None, "info", {"event": "seed_committed", "seed": b"\x01" * 32, "salt": "ab", "session_id": 7})
    assert ev["seed"] == "***"
    assert ev["salt"] == "***"
    assert ev["session_id"] == 7


def test_setup_logging_rejects_unknown_format():
    with pytest.raises(ValueError):
        setup_logging(log_format="xml")


def test_metrics_outcomes_are_bounded():
    registry = CollectorRegistry()
    m = Metrics(registry=registry)

    m.record_attempt("success")
    m.record_attempt("transient")
    m.record_attempt("weird")
    m.record_footprint_repair("appended")
    m.record_retry()
    with m.verify_timer():
        pass

    def sample(name, **labels):
        return registry.get_sample_value(f"cangkulan_core_{name}", labels)

    assert sample("submit_attempts_total", outcome="success") == 1
    assert sample("submit_attempts_total", outcome="transient") == 1
    assert sample("submit_attempts_total", outcome="final") == 1
    assert sample("footprint_repairs_total", action="appended") == 1
    assert sample("submit_retries_total") == 1
    assert sample("proof_verify_seconds_count") == 1


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_module_logger_follows_later_setup(restore_logging, capsys):
    log = get_logger("cangkulan.sample")  # created before configuration, like module-level loggers
    setup_logging(log_format="json", level="INFO")

    log.info("seed_committed", session_id=7, seed=b"\x01" * 32)

    lines = [ln for ln in capsys.readouterr().err.splitlines() if ln.strip()]
    event = json.loads(lines[-1])
    assert event["event"] == "seed_committed"
    assert event["logger"] == "cangkulan.sample"
    assert event["level"] == "info"
    assert event["session_id"] == 7
    assert event["seed"] == "***"
    assert event["service"] == "cangkulan-core"
