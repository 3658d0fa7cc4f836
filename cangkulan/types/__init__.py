"""
Data model for authorization entries, footprints and transactions.

Nothing here performs network I/O; these are plain dataclasses with CBOR
codecs.
"""

from .auth import (  # noqa: F401
    NONCE_MAX,
    NONCE_MIN,
    AddressCredential,
    AuthorizationEntry,
    AuthorizedInvocation,
    Credential,
    InvokerCredential,
    check_nonce,
)
from .ledger import (  # noqa: F401
    AccountKey,
    ContractCodeKey,
    ContractDataKey,
    DataKey,
    Durability,
    Footprint,
    LedgerKey,
    NonceKey,
)
from .tx import (  # noqa: F401
    DecoratedSignature,
    InvokeHostFunction,
    SimulationResult,
    SorobanData,
    SorobanResources,
    Transaction,
    TransactionEnvelope,
    network_id,
)

__all__ = [
    "NONCE_MAX",
    "NONCE_MIN",
    "AddressCredential",
    "AuthorizationEntry",
    "AuthorizedInvocation",
    "Credential",
    "InvokerCredential",
    "check_nonce",
    "AccountKey",
    "ContractCodeKey",
    "ContractDataKey",
    "DataKey",
    "Durability",
    "Footprint",
    "LedgerKey",
    "NonceKey",
    "DecoratedSignature",
    "InvokeHostFunction",
    "SimulationResult",
    "SorobanData",
    "SorobanResources",
    "Transaction",
    "TransactionEnvelope",
    "network_id",
]
