"""
Typed errors for the cangkulan core.

The hierarchy mirrors how callers are expected to react:

- ``TransientError`` / ``RetryExhausted``: infrastructure trouble. The
  submitter already retried; the caller may offer a manual retry.
- ``ProtocolError`` and subclasses: structurally invalid input (missing stub,
  missing signer capability, invalid proof). Never retried.
- ``ContractRejection``: the ledger executed the call and rejected it for
  domain reasons. Surfaced verbatim; ``error_code`` and ``reason`` carry the
  contract error code and its explanation (``format_error`` does the same
  for any exception).
- ``NoSignatureNeeded``: the binding layer classified a state-changing call
  as read-only. Handled by the submitter's one-shot reclassification.

Callers can catch ``CangkulanError`` to handle everything raised here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

__all__ = [
    "CangkulanError",
    "TransientError",
    "RetryExhausted",
    "ProtocolError",
    "StubNotFound",
    "SignerUnavailable",
    "ProofInvalid",
    "MalformedEntry",
    "SigningError",
    "ContractRejection",
    "NoSignatureNeeded",
    "RpcError",
    "FinalityTimeout",
    "TxSubmissionError",
    "INVALID_NONCE",
    "CONTRACT_ERRORS",
    "extract_error_code",
    "translate_contract_error",
    "format_error",
]


class CangkulanError(Exception):
    """Base class for all core errors."""


class TransientError(CangkulanError):
    """Retry-eligible infrastructure failure."""


@dataclass
class RetryExhausted(TransientError):
    """Raised when every attempt of a submission failed with a transient error."""

    last_error: BaseException
    attempts: int

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"exhausted after {self.attempts} attempts: {self.last_error}"


class ProtocolError(CangkulanError):
    """A precondition of the protocol does not hold. Fatal, never retried."""


@dataclass
class StubNotFound(ProtocolError):
    """
    Party A's address-credential stub is missing from the simulated auth list.

    The transaction was not built expecting a two-party authorization; the
    caller must re-simulate with the right parties.
    """

    address: str
    entries_scanned: int = 0

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return (
            f"StubNotFound: no address-credential entry for {self.address} "
            f"among {self.entries_scanned} auth entries"
        )


@dataclass
class SignerUnavailable(ProtocolError):
    """The signer lacks the capability needed for this step (e.g. auth entry signing)."""

    capability: str
    address: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        who = f" for {self.address}" if self.address else ""
        return f"SignerUnavailable: {self.capability} not available{who}"


class ProofInvalid(ProtocolError):
    """
    The opening proof failed verification.

    Deliberately carries no reason: malformed points, out-of-range scalars and
    challenge mismatches are indistinguishable to the caller.
    """

    def __init__(self) -> None:
        super().__init__("proof invalid")


@dataclass
class MalformedEntry(ProtocolError):
    """An authorization entry could not be decoded or has the wrong shape."""

    message: str

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"MalformedEntry: {self.message}"


@dataclass
class SigningError(CangkulanError):
    """The wallet answered a signing request with an error object."""

    message: str
    address: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        who = f" ({self.address})" if self.address else ""
        return f"Failed to sign auth entry{who}: {self.message}"


@dataclass
class ContractRejection(CangkulanError):
    """
    The ledger executed the invocation and rejected it.

    Fields:
      - message: contract/diagnostic error text, verbatim
      - tx_hash: hash if the transaction reached the ledger
      - status: ledger status string (e.g. "FAILED", "ERROR")
      - response: raw response body for diagnostics
      - error_code: the contract's ``Error(Contract, #N)`` code, parsed from
        ``message`` when not given
    """

    message: str
    tx_hash: Optional[str] = None
    status: Optional[str] = None
    response: Optional[Dict[str, Any]] = None
    error_code: Optional[int] = None

    def __post_init__(self) -> None:
        if self.error_code is None:
            self.error_code = extract_error_code(self.message)

    @property
    def reason(self) -> str:
        """User-facing explanation: the translated contract error, else the message."""
        return translate_contract_error(self.error_code) if self.error_code is not None else self.message

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        suffix = f" tx={self.tx_hash}" if self.tx_hash else ""
        status = f" status={self.status}" if self.status else ""
        return f"ContractRejection{suffix}{status}: {self.message}"


class NoSignatureNeeded(CangkulanError):
    """The binding layer reports the call as read-only ("This is a read call")."""


@dataclass
class RpcError(CangkulanError):
    """Raised when a JSON-RPC call returns an error object or a bad HTTP status."""

    method: Optional[str]
    code: int
    message: str
    data: Optional[Any] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)


@dataclass
class FinalityTimeout(CangkulanError):
    """
    The transaction was accepted but not confirmed before the deadline.

    Final for the submitter: the envelope may still land, so it is never re-sent.
    """

    tx_hash: str
    timeout_s: float

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        return f"timeout waiting for transaction {self.tx_hash} (timeout_s={self.timeout_s})"


@dataclass
class TxSubmissionError(CangkulanError):
    """
    ``sendTransaction`` answered with an ``ERROR`` status.

    Not a contract rejection: the envelope was refused before execution
    (``txBadSeq``, ``txTooLate``, fee problems). The classifier reads the
    message to decide whether a fresh attempt can succeed.
    """

    message: str
    tx_hash: Optional[str] = None
    response: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:  # pragma: no cover - trivial formatting
        suffix = f" tx={self.tx_hash}" if self.tx_hash else ""
        return f"sendTransaction rejected{suffix}: {self.message}"


# ---- Contract error codes ------------------------------------------------------------

INVALID_NONCE = 25

CONTRACT_ERRORS: Dict[int, str] = {
    1: "Game not found: no session with this id exists.",
    2: "Session already exists: this session id is taken, pick another one.",
    3: "Not a player: this address is not part of the session.",
    4: "Self-play not allowed: you cannot play against yourself.",
    5: "Game already ended: this session has finished.",
    6: "Wrong phase: the action is not valid in the current phase.",
    7: "Seed already committed.",
    8: "Seed already revealed.",
    9: "Commit hash mismatch: the revealed seed does not open your commitment.",
    10: "Invalid proof: the seed opening proof did not verify.",
    11: "Missing commit: both players must commit their seeds before revealing.",
    12: "Not your turn: wait for the other player.",
    13: "Card not in hand.",
    14: "Wrong suit: you must follow the trick suit when you hold a matching card.",
    15: "Has matching suit: you cannot declare cannot-follow while holding a matching card.",
    16: "Draw pile empty.",
    17: "No trick in progress.",
    18: "Admin not set: the contract admin has not been configured.",
    19: "Game hub not set: the hub contract address has not been configured.",
    20: "Verifier not set: the verifier contract address has not been configured.",
    21: "Timeout not reached: the deadline has not passed yet.",
    22: "Timeout not configured: no timeout is active for this game.",
    23: "Timeout not applicable in the current game state.",
    24: "Weak seed entropy: the seed is too predictable, use a stronger one.",
    25: "Invalid nonce: the game state changed, refresh and try again.",
    26: "Play already committed for this trick.",
    27: "Play commit missing: commit before revealing.",
    28: "Play reveal mismatch: the card and salt do not open your commitment.",
    29: "Invalid card id.",
    30: "UltraHonk verifier not set.",
    31: "UltraHonk verification failed.",
    32: "Card play proof invalid.",
    33: "Card play proof set empty: no card in hand matches the suit.",
    34: "Card play opening mismatch: the commitment opening does not match the commit hash.",
    35: "Cannot-follow proof invalid.",
    38: "Tick too soon: wait before calling tick_timeout again.",
}

_MAX_CONTRACT_ERROR = max(CONTRACT_ERRORS)
_CONTRACT_CODE_RE = re.compile(r"Error\(Contract,\s*#(\d+)\)")
_LOOSE_CODE_RE = re.compile(r"Contract,\s*#(\d+)")
_HASH_CODE_RE = re.compile(r"#(\d+)")


def extract_error_code(message: Optional[str]) -> Optional[int]:
    """Contract error code from ``Error(Contract, #N)`` (or ``Contract, #N``) text."""
    if not message:
        return None
    m = _CONTRACT_CODE_RE.search(message) or _LOOSE_CODE_RE.search(message)
    return int(m.group(1)) if m else None


def translate_contract_error(code: int) -> str:
    return CONTRACT_ERRORS.get(code, f"Unknown contract error #{code}")


def format_error(err: Any) -> str:
    """
    One user-facing line for any failure: a known contract code becomes its
    explanation; anything else keeps its own message.
    """
    if isinstance(err, ContractRejection) and err.error_code is not None:
        return err.reason
    if isinstance(err, BaseException):
        message = str(err) or type(err).__name__
    elif isinstance(err, Mapping) and isinstance(err.get("message"), str):
        message = err["message"]
    else:
        message = str(err)

    code = extract_error_code(message)
    if code is not None:
        return translate_contract_error(code)
    low = message.lower()
    if "simulation failed" in low or "hosterror" in low:
        m = _HASH_CODE_RE.search(message)
        if m and 1 <= int(m.group(1)) <= _MAX_CONTRACT_ERROR:
            return translate_contract_error(int(m.group(1)))
    return message
