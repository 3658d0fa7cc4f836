"""
Authorization entries across two signers.

- entry       : preimage, authorize_entry, parse/describe helpers
- ledger      : signature validity windows
- coordinator : coordinate (party B) and prepare_party_a_entry (party A)
"""

from .coordinator import coordinate, find_auth_entries, prepare_party_a_entry, repair_nonce_footprint  # noqa: F401
from .entry import (  # noqa: F401
    EntryInfo,
    authorize_entry,
    build_authorization_preimage,
    describe_entry,
    parse_entry,
    verify_entry_signature,
)
from .ledger import (  # noqa: F401
    DEFAULT_AUTH_TTL_MINUTES,
    MULTI_SIG_AUTH_TTL_MINUTES,
    calculate_valid_until_ledger,
    ledgers_for_minutes,
)

__all__ = [
    "coordinate",
    "find_auth_entries",
    "prepare_party_a_entry",
    "repair_nonce_footprint",
    "EntryInfo",
    "authorize_entry",
    "build_authorization_preimage",
    "describe_entry",
    "parse_entry",
    "verify_entry_signature",
    "DEFAULT_AUTH_TTL_MINUTES",
    "MULTI_SIG_AUTH_TTL_MINUTES",
    "calculate_valid_until_ledger",
    "ledgers_for_minutes",
]
