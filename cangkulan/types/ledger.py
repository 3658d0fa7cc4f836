"""
Ledger keys and resource footprints.

A transaction declares up front every ledger entry it may touch. For this
protocol the interesting key is the per-address nonce slot:

    ContractDataKey(contract=<address>, key=NonceKey(nonce), durability=TEMPORARY)

The ledger requires that, for each address credential in the transaction,
exactly one read-write nonce key with the same nonce is declared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from cangkulan.types.auth import check_nonce

__all__ = [
    "Durability",
    "NonceKey",
    "DataKey",
    "ContractDataKey",
    "AccountKey",
    "ContractCodeKey",
    "LedgerKey",
    "Footprint",
    "ledger_key_to_dict",
    "ledger_key_from_dict",
]


class Durability(str, Enum):
    TEMPORARY = "temporary"
    PERSISTENT = "persistent"


@dataclass(frozen=True)
class NonceKey:
    nonce: int

    def __post_init__(self) -> None:
        check_nonce(self.nonce)


@dataclass(frozen=True)
class DataKey:
    """Any other contract storage key (a symbol, an encoded tuple, ...)."""

    value: Any


@dataclass(frozen=True)
class ContractDataKey:
    contract: str
    key: Union[NonceKey, DataKey]
    durability: Durability = Durability.PERSISTENT

    @property
    def is_nonce(self) -> bool:
        return isinstance(self.key, NonceKey)

    def is_nonce_slot_of(self, address: str) -> bool:
        return self.is_nonce and self.contract == address


@dataclass(frozen=True)
class AccountKey:
    account: str


@dataclass(frozen=True)
class ContractCodeKey:
    code_hash: bytes


LedgerKey = Union[AccountKey, ContractDataKey, ContractCodeKey]


# ---- Codec ------------------------------------------------------------------


def ledger_key_to_dict(key: LedgerKey) -> Dict[str, Any]:
    if isinstance(key, ContractDataKey):
        if isinstance(key.key, NonceKey):
            inner: Dict[str, Any] = {"type": "nonce", "nonce": key.key.nonce}
        else:
            inner = {"type": "value", "value": key.key.value}
        return {
            "type": "contractData",
            "contract": key.contract,
            "key": inner,
            "durability": key.durability.value,
        }
    if isinstance(key, AccountKey):
        return {"type": "account", "account": key.account}
    if isinstance(key, ContractCodeKey):
        return {"type": "contractCode", "hash": key.code_hash}
    raise TypeError(f"unknown ledger key kind: {type(key).__name__}")


def ledger_key_from_dict(d: Dict[str, Any]) -> LedgerKey:
    kind = d.get("type")
    if kind == "contractData":
        inner = d["key"]
        if inner.get("type") == "nonce":
            k: Union[NonceKey, DataKey] = NonceKey(inner["nonce"])
        else:
            k = DataKey(inner.get("value"))
        return ContractDataKey(
            contract=str(d["contract"]),
            key=k,
            durability=Durability(d.get("durability", Durability.PERSISTENT.value)),
        )
    if kind == "account":
        return AccountKey(str(d["account"]))
    if kind == "contractCode":
        return ContractCodeKey(bytes(d["hash"]))
    raise TypeError(f"unknown ledger key kind: {kind!r}")


@dataclass(slots=True)
class Footprint:
    read_only: List[LedgerKey] = field(default_factory=list)
    read_write: List[LedgerKey] = field(default_factory=list)

    def nonce_keys_for(self, address: str) -> List[ContractDataKey]:
        """Read-write nonce keys declared for *address*, in footprint order."""
        return [
            k
            for k in self.read_write
            if isinstance(k, ContractDataKey) and k.is_nonce_slot_of(address)
        ]

    def nonce_for(self, address: str) -> Optional[int]:
        keys = self.nonce_keys_for(address)
        if not keys:
            return None
        return keys[0].key.nonce  # type: ignore[union-attr]

    def copy(self) -> "Footprint":
        # Keys are immutable; copying the lists is enough.
        return Footprint(read_only=list(self.read_only), read_write=list(self.read_write))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "readOnly": [ledger_key_to_dict(k) for k in self.read_only],
            "readWrite": [ledger_key_to_dict(k) for k in self.read_write],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Footprint":
        return cls(
            read_only=[ledger_key_from_dict(k) for k in d.get("readOnly") or []],
            read_write=[ledger_key_from_dict(k) for k in d.get("readWrite") or []],
        )
