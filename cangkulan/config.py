"""
Core configuration: RPC endpoint, network, contract, timeouts and retry budget.

- Loads defaults and supports overrides via environment variables (CANGKULAN_*).
- ``retry_policy()`` turns the retry fields into a ``RetryPolicy``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cangkulan.auth.ledger import DEFAULT_AUTH_TTL_MINUTES, LEDGER_CLOSE_SECONDS, MULTI_SIG_AUTH_TTL_MINUTES
from cangkulan.tx.retry import RetryPolicy
from cangkulan.version import __version__

_DEFAULT_RPC = "http://127.0.0.1:8000/rpc"
_DEFAULT_PASSPHRASE = "Standalone Network ; February 2017"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ValueError(f"URL must start with {allowed}, got: {url!r}")
    return url


def _parse(name: str, raw: Optional[str], conv: Callable[[str], Any]) -> Any:
    try:
        return conv(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ValueError(f"invalid value for {name}: {raw!r}") from e


@dataclass(slots=True)
class CoreConfig:
    # Endpoint / network
    rpc_url: str = _DEFAULT_RPC
    network_passphrase: str = _DEFAULT_PASSPHRASE
    contract_id: Optional[str] = None
    # Timeouts (seconds)
    timeout: float = 30.0
    finality_timeout: float = 30.0
    poll_interval: float = 1.0
    # Authorization validity
    auth_ttl_minutes: float = DEFAULT_AUTH_TTL_MINUTES
    multi_sig_auth_ttl_minutes: float = MULTI_SIG_AUTH_TTL_MINUTES
    ledger_close_seconds: float = LEDGER_CLOSE_SECONDS
    # Retry budget
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    backoff_factor: float = 2.0
    # Rebuilds after a concurrent write to the game record
    contention_retries: int = 2
    contention_delay: float = 1.5
    # Identity
    user_agent: str = f"cangkulan-core/{__version__}"

    def __post_init__(self) -> None:
        _ensure_scheme(self.rpc_url, ("http", "https"))
        if not self.network_passphrase:
            raise ValueError("network_passphrase must be non-empty")
        for name in ("timeout", "finality_timeout", "poll_interval", "auth_ttl_minutes",
                     "multi_sig_auth_ttl_minutes", "ledger_close_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.contention_retries < 0:
            raise ValueError("contention_retries must be >= 0")
        # Validates the retry fields.
        self.retry_policy()
        self.contention_policy()

    @classmethod
    def from_env(cls, prefix: str = "CANGKULAN_") -> "CoreConfig":
        """
        Create config from environment variables:

        CANGKULAN_RPC_URL                     (http/https)
        CANGKULAN_NETWORK_PASSPHRASE          (str)
        CANGKULAN_CONTRACT_ID                 (C... address) optional
        CANGKULAN_TIMEOUT                     (float seconds, per RPC call)
        CANGKULAN_FINALITY_TIMEOUT            (float seconds)
        CANGKULAN_POLL_INTERVAL               (float seconds)
        CANGKULAN_AUTH_TTL_MINUTES            (float)
        CANGKULAN_MULTI_SIG_AUTH_TTL_MINUTES  (float)
        CANGKULAN_LEDGER_CLOSE_SECONDS        (float)
        CANGKULAN_MAX_ATTEMPTS                (int)
        CANGKULAN_BASE_DELAY                  (float seconds)
        CANGKULAN_MAX_DELAY                   (float seconds)
        CANGKULAN_BACKOFF_FACTOR              (float)
        CANGKULAN_CONTENTION_RETRIES          (int)
        CANGKULAN_CONTENTION_DELAY            (float seconds)
        """
        d = cls()

        def num(key: str, default: Any, conv: Callable[[str], Any]) -> Any:
            raw = _env(f"{prefix}{key}")
            return default if raw is None else _parse(f"{prefix}{key}", raw, conv)

        return cls(
            rpc_url=_env(f"{prefix}RPC_URL", d.rpc_url) or d.rpc_url,
            network_passphrase=_env(f"{prefix}NETWORK_PASSPHRASE", d.network_passphrase) or d.network_passphrase,
            contract_id=_env(f"{prefix}CONTRACT_ID") or None,
            timeout=num("TIMEOUT", d.timeout, float),
            finality_timeout=num("FINALITY_TIMEOUT", d.finality_timeout, float),
            poll_interval=num("POLL_INTERVAL", d.poll_interval, float),
            auth_ttl_minutes=num("AUTH_TTL_MINUTES", d.auth_ttl_minutes, float),
            multi_sig_auth_ttl_minutes=num("MULTI_SIG_AUTH_TTL_MINUTES", d.multi_sig_auth_ttl_minutes, float),
            ledger_close_seconds=num("LEDGER_CLOSE_SECONDS", d.ledger_close_seconds, float),
            max_attempts=num("MAX_ATTEMPTS", d.max_attempts, int),
            base_delay=num("BASE_DELAY", d.base_delay, float),
            max_delay=num("MAX_DELAY", d.max_delay, float),
            backoff_factor=num("BACKOFF_FACTOR", d.backoff_factor, float),
            contention_retries=num("CONTENTION_RETRIES", d.contention_retries, int),
            contention_delay=num("CONTENTION_DELAY", d.contention_delay, float),
        )

    @classmethod
    def with_overrides(cls, base: Optional["CoreConfig"] = None, **overrides: Any) -> "CoreConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        data.update({k: v for k, v in overrides.items() if k in data})
        return cls(**data)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=int(self.max_attempts),
            base_delay=float(self.base_delay),
            max_delay=float(self.max_delay),
            backoff_factor=float(self.backoff_factor),
        )

    def contention_policy(self) -> RetryPolicy:
        """Flat, jittered delay between rebuilds of a contended action."""
        return RetryPolicy(
            max_attempts=int(self.contention_retries) + 1,
            base_delay=float(self.contention_delay),
            max_delay=float(self.contention_delay),
            backoff_factor=1.0,
        )

    def http_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rpc_url": self.rpc_url,
            "network_passphrase": self.network_passphrase,
            "contract_id": self.contract_id,
            "timeout": float(self.timeout),
            "finality_timeout": float(self.finality_timeout),
            "poll_interval": float(self.poll_interval),
            "auth_ttl_minutes": float(self.auth_ttl_minutes),
            "multi_sig_auth_ttl_minutes": float(self.multi_sig_auth_ttl_minutes),
            "ledger_close_seconds": float(self.ledger_close_seconds),
            "max_attempts": int(self.max_attempts),
            "base_delay": float(self.base_delay),
            "max_delay": float(self.max_delay),
            "backoff_factor": float(self.backoff_factor),
            "contention_retries": int(self.contention_retries),
            "contention_delay": float(self.contention_delay),
            "user_agent": self.user_agent,
        }


__all__ = ["CoreConfig"]
