from __future__ import annotations

"""
Structured logging for the cangkulan core.

Configures **structlog** over the stdlib ``logging`` package so that:
- Core events (retries, auth-entry discovery, footprint repairs) are emitted as
  structured JSON by default, or with the console renderer in dev.
- Context variables (e.g. session id, player) bound by the caller are merged
  into each event.
- Protocol secrets never reach a log line: values under well-known keys
  (seed, blinding, signature, ...) are redacted.

Quick start
-----------
    from cangkulan.logging import setup_logging, get_logger, bind_context

    setup_logging()                    # once, at process start
    bind_context(session_id=42)
    log = get_logger(__name__)
    log.info("seed_committed", player="GABC...")

Environment
-----------
- CANGKULAN_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- CANGKULAN_LOG_FORMAT: "json" (default) or "console"
"""

import logging
import os
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

# ------------------------------ Redaction ------------------------------------


REDACT_KEYS = {
    "seed",
    "blinding",
    "nonce_scalar",
    "salt",
    "signature",
    "secret",
    "secret_key",
    "private_key",
}


def _redact_secrets(_: logging.Logger, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if k.lower() in REDACT_KEYS and event_dict[k] is not None:
            event_dict[k] = "***"
    return event_dict


# ------------------------------ Setup ----------------------------------------


def _base_processors(service_name: str) -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    yield structlog.processors.format_exc_info
    yield _redact_secrets
    yield structlog.processors.UnicodeDecoder()

    def _ensure_service(_: logging.Logger, __: str, ev: Dict[str, Any]) -> Dict[str, Any]:
        ev.setdefault("service", service_name)
        return ev

    yield _ensure_service


def setup_logging(
    *,
    service_name: str = "cangkulan-core",
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure structlog + stdlib logging. Safe to call more than once; the
    root handler is replaced, not duplicated.
    """
    env_level = os.getenv("CANGKULAN_LOG_LEVEL", "").upper() or None
    env_format = os.getenv("CANGKULAN_LOG_FORMAT", "").lower() or None

    level = level or env_level or "INFO"
    log_format = (log_format or env_format or "json").lower()
    if log_format not in ("json", "console"):
        raise ValueError(f"log_format must be 'json' or 'console', got {log_format!r}")

    processors = list(_base_processors(service_name))

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False, sort_keys=False)
    else:
        renderer = JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                *processors,
            ],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)

    logging.getLogger("httpcore").setLevel(os.getenv("CANGKULAN_LOG_LEVEL_HTTPCORE", "WARNING"))
    logging.getLogger("httpx").setLevel(os.getenv("CANGKULAN_LOG_LEVEL_HTTPX", "WARNING"))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structlog logger carrying the module name, if provided.

    The name goes to the logger factory (``logging.getLogger(name)`` once
    ``setup_logging`` ran) and the logger stays lazy until first use, so
    module-level loggers pick up whatever was configured later.
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


# ------------------------------ Context helpers -------------------------------


def bind_context(**kv: Any) -> None:
    """Bind key/value pairs (session_id, player, action) into the contextvars store."""
    structlog.contextvars.bind_contextvars(**kv)


def clear_context(*keys: str) -> None:
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "REDACT_KEYS",
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
