"""
Authorization-entry signing and inspection.

Preimage
--------
An address credential signs ``sha256(preimage)`` where

    preimage = CBOR{
        "type": "sorobanAuthorization",
        "networkId": sha256(network_passphrase),
        "nonce": <credential nonce>,
        "signatureExpirationLedger": <valid_until_ledger>,
        "invocation": <root invocation>,
    }

The nonce and the invocation tree are both covered, so a signature cannot be
moved to another call or replayed once the nonce is consumed.

Entry points
------------
- authorize_entry(entry, sign, valid_until_ledger, network_passphrase)
- parse_entry(value) -> AuthorizationEntry
- describe_entry(entry) -> EntryInfo
- verify_entry_signature(entry, network_passphrase) -> bool
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

from cangkulan.address import is_account
from cangkulan.errors import MalformedEntry, SigningError
from cangkulan.types.auth import AddressCredential, AuthorizationEntry, InvokerCredential
from cangkulan.types.tx import network_id
from cangkulan.utils.bytes import b64decode
from cangkulan.utils.cbor import dumps
from cangkulan.utils.hash import sha256
from cangkulan.wallet.signer import verify_ed25519

__all__ = [
    "SIGNATURE_SIZE",
    "SignFn",
    "EntryInfo",
    "build_authorization_preimage",
    "authorize_entry",
    "parse_entry",
    "describe_entry",
    "verify_entry_signature",
]

SIGNATURE_SIZE = 64

SignFn = Callable[[bytes], Awaitable[Union[bytes, AuthorizationEntry]]]
"""Signs a preimage; returns a raw 64-byte signature or a fully signed entry."""


@dataclass(frozen=True)
class EntryInfo:
    address: Optional[str]
    nonce: Optional[int]
    contract: str
    function_name: str
    args: List[Any]
    expiration_ledger: Optional[int]
    signed: bool


def _address_credential(entry: AuthorizationEntry) -> AddressCredential:
    cred = entry.credentials
    if isinstance(cred, AddressCredential):
        return cred
    if isinstance(cred, InvokerCredential):
        raise MalformedEntry("entry carries an invoker credential, not an address credential")
    raise TypeError(f"unknown credential kind: {type(cred).__name__}")


def build_authorization_preimage(
    entry: AuthorizationEntry,
    valid_until_ledger: int,
    network_passphrase: str,
) -> bytes:
    cred = _address_credential(entry)
    return dumps(
        {
            "type": "sorobanAuthorization",
            "networkId": network_id(network_passphrase),
            "nonce": cred.nonce,
            "signatureExpirationLedger": int(valid_until_ledger),
            "invocation": entry.root_invocation.to_dict(),
        }
    )


def _accept_full_entry(returned: AuthorizationEntry, expected: AuthorizationEntry) -> AuthorizationEntry:
    got = returned.credentials
    want = _address_credential(expected)
    if not isinstance(got, AddressCredential) or got.address != want.address or got.nonce != want.nonce:
        raise SigningError("wallet returned an entry for a different address or nonce", want.address)
    if got.signature is None:
        raise SigningError("wallet returned an unsigned entry", want.address)
    return returned


async def authorize_entry(
    entry: AuthorizationEntry,
    sign: SignFn,
    valid_until_ledger: int,
    network_passphrase: str,
) -> AuthorizationEntry:
    """
    Sign an address-credential entry and return a signed copy; *entry* itself
    is left untouched. Invoker-credential entries need no signature and come
    back as a copy.
    """
    if isinstance(entry.credentials, InvokerCredential):
        return entry.copy()

    signed_entry = entry.copy()
    cred = _address_credential(signed_entry)
    cred.signature_expiration_ledger = int(valid_until_ledger)
    preimage = build_authorization_preimage(signed_entry, valid_until_ledger, network_passphrase)

    returned = await sign(preimage)
    if isinstance(returned, AuthorizationEntry):
        return _accept_full_entry(returned, signed_entry)

    sig = bytes(returned)
    if len(sig) != SIGNATURE_SIZE:
        try:
            full = AuthorizationEntry.from_bytes(sig)
        except (ValueError, TypeError) as e:
            raise SigningError(
                f"wallet returned {len(sig)} bytes: neither a signature nor a signed entry",
                cred.address,
            ) from e
        return _accept_full_entry(full, signed_entry)

    if is_account(cred.address) and not verify_ed25519(cred.address, sha256(preimage), sig):
        raise SigningError("signature doesn't match payload", cred.address)

    cred.signature = sig
    return signed_entry


def parse_entry(value: Union[AuthorizationEntry, bytes, bytearray, str]) -> AuthorizationEntry:
    """Accept an entry object, its CBOR bytes or base64 of those; ``MalformedEntry`` otherwise."""
    if isinstance(value, AuthorizationEntry):
        return value
    try:
        if isinstance(value, str):
            return AuthorizationEntry.from_bytes(b64decode(value.strip()))
        if isinstance(value, (bytes, bytearray, memoryview)):
            return AuthorizationEntry.from_bytes(bytes(value))
    except (ValueError, TypeError) as e:
        raise MalformedEntry(f"cannot decode authorization entry: {e}") from e
    raise MalformedEntry(f"unsupported authorization entry type: {type(value).__name__}")


def describe_entry(value: Union[AuthorizationEntry, bytes, str]) -> EntryInfo:
    entry = parse_entry(value)
    cred = entry.credentials
    inv = entry.root_invocation
    if isinstance(cred, AddressCredential):
        return EntryInfo(
            address=cred.address,
            nonce=cred.nonce,
            contract=inv.contract,
            function_name=inv.function_name,
            args=list(inv.args),
            expiration_ledger=cred.signature_expiration_ledger,
            signed=cred.is_signed,
        )
    if isinstance(cred, InvokerCredential):
        return EntryInfo(
            address=None,
            nonce=None,
            contract=inv.contract,
            function_name=inv.function_name,
            args=list(inv.args),
            expiration_ledger=None,
            signed=False,
        )
    raise TypeError(f"unknown credential kind: {type(cred).__name__}")


def verify_entry_signature(entry: AuthorizationEntry, network_passphrase: str) -> bool:
    """Check an account entry's Ed25519 signature against its own address."""
    cred = entry.credentials
    if not isinstance(cred, AddressCredential) or cred.signature is None:
        return False
    preimage = build_authorization_preimage(entry, cred.signature_expiration_ledger, network_passphrase)
    return verify_ed25519(cred.address, sha256(preimage), cred.signature)
