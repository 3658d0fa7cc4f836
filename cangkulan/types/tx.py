"""
Transactions, envelopes and simulation results.

Shapes
------
- Transaction(source, sequence, fee, operations, soroban_data)
    One ``InvokeHostFunction`` operation per contract call; its ``auth`` list
    holds the authorization entries that ride along with the call.
- SorobanData(resources=SorobanResources(footprint, ...), resource_fee)
- TransactionEnvelope(tx, signatures)
    Serialized with deterministic CBOR; ``to_base64`` is the string handed
    between parties and to the wallet.
- SimulationResult(auth, footprint, return_value, ...)
    What ``simulateTransaction`` reports for an unsigned transaction.

Signing
-------
``TransactionEnvelope.signature_payload(network_passphrase)`` is the 32-byte
digest a source account signs: sha256 over the CBOR of the network id and
the transaction body. It is also the transaction hash.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cangkulan.types.auth import AuthorizationEntry
from cangkulan.types.ledger import Footprint
from cangkulan.utils.bytes import b64decode, b64encode
from cangkulan.utils.cbor import CBORDecodeError, dumps, loads
from cangkulan.utils.hash import sha256

__all__ = [
    "InvokeHostFunction",
    "SorobanResources",
    "SorobanData",
    "Transaction",
    "DecoratedSignature",
    "TransactionEnvelope",
    "SimulationResult",
    "network_id",
]


def network_id(network_passphrase: str) -> bytes:
    """sha256 of the network passphrase; domain-separates every signature."""
    return sha256(network_passphrase.encode("utf-8"))


@dataclass(slots=True)
class InvokeHostFunction:
    contract: str
    function_name: str
    args: List[Any] = field(default_factory=list)
    auth: List[AuthorizationEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "invokeHostFunction",
            "contract": self.contract,
            "function": self.function_name,
            "args": list(self.args),
            "auth": [e.to_dict() for e in self.auth],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InvokeHostFunction":
        if d.get("type") != "invokeHostFunction":
            raise TypeError(f"unsupported operation type: {d.get('type')!r}")
        return cls(
            contract=str(d["contract"]),
            function_name=str(d["function"]),
            args=list(d.get("args") or []),
            auth=[AuthorizationEntry.from_dict(e) for e in d.get("auth") or []],
        )


@dataclass(slots=True)
class SorobanResources:
    footprint: Footprint = field(default_factory=Footprint)
    instructions: int = 0
    read_bytes: int = 0
    write_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "footprint": self.footprint.to_dict(),
            "instructions": self.instructions,
            "readBytes": self.read_bytes,
            "writeBytes": self.write_bytes,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SorobanResources":
        return cls(
            footprint=Footprint.from_dict(d.get("footprint") or {}),
            instructions=int(d.get("instructions", 0)),
            read_bytes=int(d.get("readBytes", 0)),
            write_bytes=int(d.get("writeBytes", 0)),
        )


@dataclass(slots=True)
class SorobanData:
    resources: SorobanResources = field(default_factory=SorobanResources)
    resource_fee: int = 0

    @property
    def footprint(self) -> Footprint:
        return self.resources.footprint

    def to_dict(self) -> Dict[str, Any]:
        return {"resources": self.resources.to_dict(), "resourceFee": self.resource_fee}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SorobanData":
        return cls(
            resources=SorobanResources.from_dict(d.get("resources") or {}),
            resource_fee=int(d.get("resourceFee", 0)),
        )


@dataclass(slots=True)
class Transaction:
    source: str
    sequence: int
    fee: int
    operations: List[InvokeHostFunction] = field(default_factory=list)
    soroban_data: Optional[SorobanData] = None

    @property
    def invoke(self) -> InvokeHostFunction:
        """The single host-function operation of a contract call."""
        if not self.operations:
            raise ValueError("transaction has no operations")
        return self.operations[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "sequence": self.sequence,
            "fee": self.fee,
            "operations": [op.to_dict() for op in self.operations],
            "sorobanData": self.soroban_data.to_dict() if self.soroban_data else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Transaction":
        sd = d.get("sorobanData")
        return cls(
            source=str(d["source"]),
            sequence=int(d["sequence"]),
            fee=int(d["fee"]),
            operations=[InvokeHostFunction.from_dict(op) for op in d.get("operations") or []],
            soroban_data=SorobanData.from_dict(sd) if sd is not None else None,
        )

    def to_envelope(self) -> "TransactionEnvelope":
        """Unsigned envelope over a detached copy of this transaction."""
        return TransactionEnvelope(tx=copy.deepcopy(self))

    @classmethod
    def from_envelope(cls, envelope: "TransactionEnvelope") -> "Transaction":
        return copy.deepcopy(envelope.tx)


@dataclass(slots=True)
class DecoratedSignature:
    hint: bytes
    signature: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {"hint": self.hint, "signature": self.signature}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DecoratedSignature":
        return cls(hint=bytes(d["hint"]), signature=bytes(d["signature"]))


@dataclass(slots=True)
class TransactionEnvelope:
    tx: Transaction
    signatures: List[DecoratedSignature] = field(default_factory=list)

    def signature_payload(self, network_passphrase: str) -> bytes:
        return sha256(dumps({"networkId": network_id(network_passphrase), "tx": self.tx.to_dict()}))

    def hash_hex(self, network_passphrase: str) -> str:
        return self.signature_payload(network_passphrase).hex()

    def to_dict(self) -> Dict[str, Any]:
        return {"tx": self.tx.to_dict(), "signatures": [s.to_dict() for s in self.signatures]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TransactionEnvelope":
        return cls(
            tx=Transaction.from_dict(d["tx"]),
            signatures=[DecoratedSignature.from_dict(s) for s in d.get("signatures") or []],
        )

    def to_bytes(self) -> bytes:
        return dumps(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> "TransactionEnvelope":
        try:
            obj = loads(bytes(data))
        except CBORDecodeError as e:
            raise ValueError(f"invalid envelope encoding: {e}") from e
        if not isinstance(obj, dict):
            raise ValueError("envelope must decode to a map")
        try:
            return cls.from_dict(obj)
        except KeyError as e:
            raise ValueError(f"envelope missing field {e}") from e

    def to_base64(self) -> str:
        return b64encode(self.to_bytes())

    @classmethod
    def from_base64(cls, s: str) -> "TransactionEnvelope":
        return cls.from_bytes(b64decode(s))


@dataclass(slots=True)
class SimulationResult:
    auth: List[AuthorizationEntry] = field(default_factory=list)
    footprint: Footprint = field(default_factory=Footprint)
    return_value: Any = None
    latest_ledger: int = 0
    min_resource_fee: int = 0

    @property
    def read_only(self) -> bool:
        """No signatures required and nothing written: a pure read call."""
        return not self.auth and not self.footprint.read_write
