"""
Validity windows for authorization signatures.

A signed authorization entry carries ``signature_expiration_ledger``; past
that ledger the signature is dead. The bound is the latest ledger plus a TTL
converted to ledgers at the network's close time:

    valid_until = latest + ceil(ttl_minutes * 60 / ledger_close_seconds)
"""

from __future__ import annotations

import math
from typing import Any, Dict, Protocol

__all__ = [
    "DEFAULT_AUTH_TTL_MINUTES",
    "MULTI_SIG_AUTH_TTL_MINUTES",
    "LEDGER_CLOSE_SECONDS",
    "LatestLedgerRpc",
    "ledgers_for_minutes",
    "calculate_valid_until_ledger",
]

DEFAULT_AUTH_TTL_MINUTES = 5
# Party A's entry may sit in the other player's inbox for a while.
MULTI_SIG_AUTH_TTL_MINUTES = 60
LEDGER_CLOSE_SECONDS = 5


class LatestLedgerRpc(Protocol):
    async def get_latest_ledger(self) -> Dict[str, Any]: ...


def ledgers_for_minutes(ttl_minutes: float, ledger_close_seconds: float = LEDGER_CLOSE_SECONDS) -> int:
    if ttl_minutes <= 0:
        raise ValueError("ttl_minutes must be > 0")
    if ledger_close_seconds <= 0:
        raise ValueError("ledger_close_seconds must be > 0")
    return int(math.ceil(ttl_minutes * 60 / ledger_close_seconds))


async def calculate_valid_until_ledger(
    rpc: LatestLedgerRpc,
    ttl_minutes: float = DEFAULT_AUTH_TTL_MINUTES,
    *,
    ledger_close_seconds: float = LEDGER_CLOSE_SECONDS,
) -> int:
    latest = await rpc.get_latest_ledger()
    return int(latest["sequence"]) + ledgers_for_minutes(ttl_minutes, ledger_close_seconds)
