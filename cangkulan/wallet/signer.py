"""
cangkulan.wallet.signer
=======================

Wallet interface consumed by the core, plus an Ed25519 keypair wallet.

The core never holds a user's keys. It talks to whatever wallet the caller
provides through the ``WalletSigner`` protocol:

- ``sign_transaction(envelope, *, network_passphrase) -> bytes``
    Returns the envelope with the source account's signature appended.
- ``sign_auth_entry(preimage, *, network_passphrase, address) -> SignAuthEntryResult``
    Signs an authorization preimage for ``address``. Wallets answer with
    either ``signed_auth_entry`` (a raw 64-byte signature or a full signed
    entry) or ``error``.

``KeypairSigner`` implements both with a local Ed25519 key via
``cryptography``. It is meant for dev tooling, bots and tests.

What gets signed
----------------
- Transactions: ``TransactionEnvelope.signature_payload(passphrase)``
  (sha256 over the network id and the transaction body).
- Auth entries: ``sha256(preimage)``.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional, Protocol, Union, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from cangkulan.address import AddressError, decode_account, encode_account
from cangkulan.types.tx import DecoratedSignature, TransactionEnvelope
from cangkulan.utils.bytes import b64decode
from cangkulan.utils.hash import sha256

__all__ = [
    "SignAuthEntryResult",
    "WalletSigner",
    "KeypairSigner",
    "verify_ed25519",
]

SIGNATURE_SIZE = 64


@dataclass(frozen=True)
class SignAuthEntryResult:
    signed_auth_entry: Optional[bytes] = None
    signer_address: Optional[str] = None
    error: Optional[str] = None


@runtime_checkable
class WalletSigner(Protocol):
    async def sign_transaction(self, envelope: bytes, *, network_passphrase: str) -> bytes: ...

    async def sign_auth_entry(
        self, preimage: bytes, *, network_passphrase: str, address: str
    ) -> SignAuthEntryResult: ...


def verify_ed25519(address: str, message: bytes, signature: bytes) -> bool:
    """Check *signature* over *message* against the key encoded in a ``G...`` address."""
    try:
        pub = Ed25519PublicKey.from_public_bytes(decode_account(address))
        pub.verify(bytes(signature), bytes(message))
        return True
    except (AddressError, InvalidSignature, ValueError):
        return False


class KeypairSigner:
    """
    Ed25519 wallet holding its secret key in memory.

    >>> signer = KeypairSigner.generate()
    >>> signer.address.startswith("G")
    True
    """

    __slots__ = ("_sk", "_pk")

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._sk = private_key
        self._pk = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def generate(cls) -> "KeypairSigner":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeypairSigner":
        if len(seed) != 32:
            raise ValueError("Ed25519 seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(bytes(seed)))

    @classmethod
    def random_seed(cls) -> bytes:
        return secrets.token_bytes(32)

    @property
    def public_key(self) -> bytes:
        return self._pk

    @property
    def address(self) -> str:
        return encode_account(self._pk)

    def sign(self, message: bytes) -> bytes:
        return self._sk.sign(bytes(message))

    # --- WalletSigner -------------------------------------------------------

    async def sign_transaction(
        self, envelope: Union[bytes, str], *, network_passphrase: str
    ) -> bytes:
        raw = b64decode(envelope) if isinstance(envelope, str) else bytes(envelope)
        env = TransactionEnvelope.from_bytes(raw)
        payload = env.signature_payload(network_passphrase)
        env.signatures.append(DecoratedSignature(hint=self._pk[-4:], signature=self.sign(payload)))
        return env.to_bytes()

    async def sign_auth_entry(
        self, preimage: bytes, *, network_passphrase: str, address: str
    ) -> SignAuthEntryResult:
        if address != self.address:
            return SignAuthEntryResult(error=f"wallet holds {self.address}, not {address}")
        sig = self.sign(sha256(preimage))
        return SignAuthEntryResult(signed_auth_entry=sig, signer_address=self.address)

    def __repr__(self) -> str:
        return f"KeypairSigner(address={self.address!r})"
