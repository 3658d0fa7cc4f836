"""
Authorization entries and their credentials.

An entry authorizes one invocation tree on behalf of some party. The
credential is a closed union:

- ``AddressCredential``: a named address must sign a preimage bound to a
  single-use ``nonce`` and an expiration ledger.
- ``InvokerCredential``: authorized implicitly by the envelope signature of
  the transaction source. Carries nothing and must never be treated as an
  address credential.

Entries serialize to deterministic CBOR (``to_bytes``) and base64 of that
(``to_base64``), which is the form exchanged between the two parties.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from cangkulan.utils.bytes import b64decode, b64encode
from cangkulan.utils.cbor import CBORDecodeError, dumps, loads

__all__ = [
    "NONCE_MIN",
    "NONCE_MAX",
    "AuthorizedInvocation",
    "AddressCredential",
    "InvokerCredential",
    "Credential",
    "AuthorizationEntry",
    "check_nonce",
]

NONCE_MIN = -(1 << 63)
NONCE_MAX = (1 << 63) - 1


def check_nonce(nonce: int) -> int:
    """Validate a signed 64-bit nonce and return it unchanged."""
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise TypeError(f"nonce must be int, got {type(nonce).__name__}")
    if not (NONCE_MIN <= nonce <= NONCE_MAX):
        raise ValueError(f"nonce out of int64 range: {nonce}")
    return nonce


@dataclass(slots=True)
class AuthorizedInvocation:
    """A contract call and the calls it makes that need the same authorization."""

    contract: str
    function_name: str
    args: List[Any] = field(default_factory=list)
    sub_invocations: List["AuthorizedInvocation"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": self.contract,
            "function": self.function_name,
            "args": list(self.args),
            "subInvocations": [s.to_dict() for s in self.sub_invocations],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AuthorizedInvocation":
        return cls(
            contract=str(d["contract"]),
            function_name=str(d["function"]),
            args=list(d.get("args") or []),
            sub_invocations=[cls.from_dict(s) for s in d.get("subInvocations") or []],
        )


@dataclass(slots=True)
class AddressCredential:
    """
    Credential of a named address.

    ``signature`` is ``None`` while the entry is an unsigned stub straight out
    of simulation.
    """

    KIND: ClassVar[str] = "address"

    address: str
    nonce: int
    signature_expiration_ledger: int = 0
    signature: Optional[bytes] = None

    def __post_init__(self) -> None:
        check_nonce(self.nonce)
        if self.signature_expiration_ledger < 0:
            raise ValueError("signature_expiration_ledger must be >= 0")

    @property
    def is_signed(self) -> bool:
        return self.signature is not None


@dataclass(frozen=True)
class InvokerCredential:
    """Authorized by the transaction source account's envelope signature."""

    KIND: ClassVar[str] = "invoker"


Credential = Union[AddressCredential, InvokerCredential]


def _credential_to_dict(cred: Credential) -> Dict[str, Any]:
    if isinstance(cred, AddressCredential):
        return {
            "type": AddressCredential.KIND,
            "address": cred.address,
            "nonce": cred.nonce,
            "expirationLedger": cred.signature_expiration_ledger,
            "signature": cred.signature,
        }
    if isinstance(cred, InvokerCredential):
        return {"type": InvokerCredential.KIND}
    raise TypeError(f"unknown credential kind: {type(cred).__name__}")


def _credential_from_dict(d: Dict[str, Any]) -> Credential:
    kind = d.get("type")
    if kind == AddressCredential.KIND:
        sig = d.get("signature")
        return AddressCredential(
            address=str(d["address"]),
            nonce=d["nonce"],
            signature_expiration_ledger=int(d.get("expirationLedger", 0)),
            signature=bytes(sig) if sig is not None else None,
        )
    if kind == InvokerCredential.KIND:
        return InvokerCredential()
    raise TypeError(f"unknown credential kind: {kind!r}")


@dataclass(slots=True)
class AuthorizationEntry:
    credentials: Credential
    root_invocation: AuthorizedInvocation

    # --- Accessors ----------------------------------------------------------

    @property
    def address(self) -> Optional[str]:
        """Address of an address credential, ``None`` for invoker credentials."""
        cred = self.credentials
        if isinstance(cred, AddressCredential):
            return cred.address
        if isinstance(cred, InvokerCredential):
            return None
        raise TypeError(f"unknown credential kind: {type(cred).__name__}")

    @property
    def nonce(self) -> Optional[int]:
        cred = self.credentials
        if isinstance(cred, AddressCredential):
            return cred.nonce
        if isinstance(cred, InvokerCredential):
            return None
        raise TypeError(f"unknown credential kind: {type(cred).__name__}")

    def is_address_for(self, address: str) -> bool:
        return self.address == address

    def copy(self) -> "AuthorizationEntry":
        return copy.deepcopy(self)

    # --- Codec --------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credentials": _credential_to_dict(self.credentials),
            "rootInvocation": self.root_invocation.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AuthorizationEntry":
        if not isinstance(d, dict):
            raise TypeError(f"authorization entry must decode to a map, got {type(d).__name__}")
        return cls(
            credentials=_credential_from_dict(d["credentials"]),
            root_invocation=AuthorizedInvocation.from_dict(d["rootInvocation"]),
        )

    def to_bytes(self) -> bytes:
        return dumps(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> "AuthorizationEntry":
        """
        Decode an entry. Structural problems surface as ``ValueError`` (bad CBOR,
        missing fields, nonce out of range) or ``TypeError`` (unknown kinds).
        """
        try:
            obj = loads(bytes(data))
        except CBORDecodeError as e:
            raise ValueError(f"invalid authorization entry encoding: {e}") from e
        try:
            return cls.from_dict(obj)
        except KeyError as e:
            raise ValueError(f"authorization entry missing field {e}") from e
        except AttributeError as e:
            raise ValueError(f"malformed authorization entry: {e}") from e

    def to_base64(self) -> str:
        return b64encode(self.to_bytes())

    @classmethod
    def from_base64(cls, s: str) -> "AuthorizationEntry":
        return cls.from_bytes(b64decode(s))
