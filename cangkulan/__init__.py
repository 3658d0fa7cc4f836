"""
Cangkulan core — Python
Two-party auth co-signing, commit-reveal seeds and resilient submission.
"""

from .version import __version__  # noqa: F401

# Core config & errors
from .config import CoreConfig  # noqa: F401
from .errors import (  # noqa: F401
    CangkulanError,
    TransientError,
    RetryExhausted,
    ProtocolError,
    StubNotFound,
    SignerUnavailable,
    ProofInvalid,
    MalformedEntry,
    SigningError,
    ContractRejection,
    NoSignatureNeeded,
    RpcError,
    FinalityTimeout,
    TxSubmissionError,
    format_error,
)

# RPC
from .rpc.http import SorobanRpcClient  # noqa: F401

# Wallet
from .wallet.signer import KeypairSigner, SignAuthEntryResult, WalletSigner  # noqa: F401

# Auth coordination
from .auth.coordinator import coordinate, prepare_party_a_entry  # noqa: F401
from .auth.entry import authorize_entry, describe_entry  # noqa: F401
from .auth.ledger import calculate_valid_until_ledger  # noqa: F401

# Commit-reveal
from .commit_reveal.pedersen import commit, reveal, verify_reveal  # noqa: F401
from .commit_reveal.play import commit_play, verify_play_opening  # noqa: F401
from .commit_reveal.shuffle import derive_shuffle_seed  # noqa: F401

# Submission
from .tx.classify import is_contention_error, is_transient_error  # noqa: F401
from .tx.retry import RetryPolicy  # noqa: F401
from .tx.send import SentTransaction  # noqa: F401
from .tx.submit import submit  # noqa: F401

# Contract calls & orchestration
from .contract import AssembledTransaction, ContractClient  # noqa: F401
from .orchestrator import GameProtocol  # noqa: F401

__all__ = [
    "__version__",
    # Core
    "CoreConfig",
    "CangkulanError", "TransientError", "RetryExhausted", "ProtocolError",
    "StubNotFound", "SignerUnavailable", "ProofInvalid", "MalformedEntry",
    "SigningError", "ContractRejection", "NoSignatureNeeded", "RpcError",
    "FinalityTimeout", "TxSubmissionError", "format_error",
    # RPC / wallet
    "SorobanRpcClient",
    "KeypairSigner", "SignAuthEntryResult", "WalletSigner",
    # Auth
    "coordinate", "prepare_party_a_entry", "authorize_entry", "describe_entry",
    "calculate_valid_until_ledger",
    # Commit-reveal
    "commit", "reveal", "verify_reveal", "commit_play", "verify_play_opening",
    "derive_shuffle_seed",
    # Submission
    "is_transient_error", "is_contention_error", "RetryPolicy", "SentTransaction", "submit",
    # Contract / orchestration
    "AssembledTransaction", "ContractClient", "GameProtocol",
]
