"""
Two-party authorization coordinator.

Party A signs its authorization entry against one simulation of the call;
party B later builds and simulates the same call itself. The two
simulations ran at different times, so the nonce in party A's signed entry
usually differs from the nonce of the stub (and footprint key) in party B's
transaction. ``coordinate`` merges the artifacts:

1. parse party A's signed entry and take its address;
2. scan ``tx.simulation.auth`` for party A's address-credential stub (and
   its nonce) and for party B's address-credential entry; invoker
   credentials are skipped;
3. no stub for party A: ``StubNotFound``;
4. replace the stub with party A's entry, verbatim;
5. if party B has an entry, sign it through ``authorize_entry`` and replace
   it whole (party B may instead be the invoker and need no entry);
6. write the list into both ``tx.simulation.auth`` and
   ``tx.built.operations[0].auth``;
7. if the stub nonce differs from the signed nonce, rewrite party A's
   read-write nonce key in the envelope footprint (append one if missing)
   and rebuild ``tx.built`` from the serialized envelope.

``prepare_party_a_entry`` is party A's half: find its own stub in a
simulation, sign it and hand back the base64 entry.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Tuple, Union

from cangkulan.auth.entry import authorize_entry, parse_entry
from cangkulan.auth.ledger import (
    DEFAULT_AUTH_TTL_MINUTES,
    LEDGER_CLOSE_SECONDS,
    MULTI_SIG_AUTH_TTL_MINUTES,
    LatestLedgerRpc,
    calculate_valid_until_ledger,
)
from cangkulan.errors import MalformedEntry, ProtocolError, SignerUnavailable, SigningError, StubNotFound
from cangkulan.logging import get_logger
from cangkulan.metrics import METRICS
from cangkulan.types.auth import AddressCredential, AuthorizationEntry, InvokerCredential
from cangkulan.types.ledger import ContractDataKey, Durability, NonceKey
from cangkulan.types.tx import SimulationResult, Transaction, TransactionEnvelope

__all__ = [
    "CoordinatedTransaction",
    "coordinate",
    "prepare_party_a_entry",
    "find_auth_entries",
    "repair_nonce_footprint",
]

log = get_logger(__name__)


class CoordinatedTransaction(Protocol):
    """What the coordinator needs from an assembled transaction."""

    simulation: Optional[SimulationResult]
    built: Transaction
    network_passphrase: str


# ---- Scanning ---------------------------------------------------------------


def find_auth_entries(
    entries: List[AuthorizationEntry],
    party_a_address: str,
    party_b_address: Optional[str] = None,
) -> Tuple[int, Optional[int], Optional[int]]:
    """
    Return ``(stub_index, stub_nonce, party_b_index)``; ``stub_index`` is -1
    when party A has no address-credential entry.
    """
    stub_index, stub_nonce, b_index = -1, None, None
    for i, entry in enumerate(entries):
        cred = entry.credentials
        if isinstance(cred, InvokerCredential):
            log.debug("auth_entry_skipped", index=i, kind=cred.KIND)
            continue
        if not isinstance(cred, AddressCredential):
            raise TypeError(f"unknown credential kind: {type(cred).__name__}")
        if cred.address == party_a_address and stub_index == -1:
            stub_index, stub_nonce = i, cred.nonce
            log.debug("auth_stub_found", index=i, address=cred.address, nonce=cred.nonce)
        elif party_b_address is not None and cred.address == party_b_address and b_index is None:
            b_index = i
            log.debug("auth_entry_found", index=i, address=cred.address, nonce=cred.nonce)
    return stub_index, stub_nonce, b_index


# ---- Footprint repair -------------------------------------------------------


def repair_nonce_footprint(envelope: TransactionEnvelope, address: str, nonce: int) -> str:
    """
    Point *address*'s read-write nonce key at *nonce*. Returns ``"patched"``
    or ``"appended"``.
    """
    sd = envelope.tx.soroban_data
    if sd is None:
        raise ProtocolError("transaction carries no resource footprint; simulate it first")
    rw = sd.resources.footprint.read_write

    for i, key in enumerate(rw):
        if isinstance(key, ContractDataKey) and key.is_nonce_slot_of(address):
            rw[i] = ContractDataKey(contract=key.contract, key=NonceKey(nonce), durability=key.durability)
            return "patched"

    rw.append(ContractDataKey(contract=address, key=NonceKey(nonce), durability=Durability.TEMPORARY))
    return "appended"


# ---- Signing helpers --------------------------------------------------------


def _auth_signer(signer: Any, address: str, network_passphrase: str):
    sign_auth_entry = getattr(signer, "sign_auth_entry", None)
    if sign_auth_entry is None:
        raise SignerUnavailable(capability="sign_auth_entry", address=address)

    async def _sign(preimage: bytes) -> bytes:
        res = await sign_auth_entry(preimage, network_passphrase=network_passphrase, address=address)
        if res.error:
            raise SigningError(str(res.error), address)
        if not res.signed_auth_entry:
            raise SigningError("wallet returned no signed auth entry", address)
        return res.signed_auth_entry

    return _sign


async def _resolve_valid_until(
    tx: Any,
    valid_until_ledger: Optional[int],
    ledger: Optional[LatestLedgerRpc],
    ttl_minutes: float,
    ledger_close_seconds: float,
) -> int:
    if valid_until_ledger is not None:
        return int(valid_until_ledger)
    rpc = ledger if ledger is not None else getattr(tx, "rpc", None)
    if rpc is None:
        raise ProtocolError("no ledger RPC available to compute the signature validity bound")
    return await calculate_valid_until_ledger(rpc, ttl_minutes, ledger_close_seconds=ledger_close_seconds)


# ---- Party A ----------------------------------------------------------------


async def prepare_party_a_entry(
    tx: CoordinatedTransaction,
    party_a_address: str,
    signer: Any,
    *,
    valid_until_ledger: Optional[int] = None,
    ledger: Optional[LatestLedgerRpc] = None,
    ttl_minutes: float = MULTI_SIG_AUTH_TTL_MINUTES,
    ledger_close_seconds: float = LEDGER_CLOSE_SECONDS,
) -> str:
    """Sign party A's stub from *tx*'s simulation and return it as base64."""
    if tx.simulation is None:
        raise ProtocolError("transaction has not been simulated")
    entries = tx.simulation.auth
    stub_index, _, _ = find_auth_entries(entries, party_a_address)
    if stub_index == -1:
        raise StubNotFound(address=party_a_address, entries_scanned=len(entries))

    sign = _auth_signer(signer, party_a_address, tx.network_passphrase)
    until = await _resolve_valid_until(tx, valid_until_ledger, ledger, ttl_minutes, ledger_close_seconds)
    signed = await authorize_entry(entries[stub_index], sign, until, tx.network_passphrase)
    log.info("party_a_entry_signed", address=party_a_address, nonce=signed.nonce, valid_until=until)
    return signed.to_base64()


# ---- Coordination -----------------------------------------------------------


async def coordinate(
    tx: CoordinatedTransaction,
    party_a_signed_entry: Union[AuthorizationEntry, bytes, str],
    party_b_address: str,
    party_b_signer: Any,
    *,
    valid_until_ledger: Optional[int] = None,
    ledger: Optional[LatestLedgerRpc] = None,
    ttl_minutes: float = DEFAULT_AUTH_TTL_MINUTES,
    ledger_close_seconds: float = LEDGER_CLOSE_SECONDS,
) -> CoordinatedTransaction:
    """
    Splice party A's signed entry into *tx*, sign party B's entry and repair
    the nonce footprint. Mutates and returns *tx*.
    """
    signed_a = parse_entry(party_a_signed_entry)
    cred_a = signed_a.credentials
    if not isinstance(cred_a, AddressCredential):
        raise MalformedEntry("party A's entry must carry an address credential")
    party_a_address = cred_a.address

    if tx.simulation is None:
        raise ProtocolError("transaction has not been simulated")
    entries = list(tx.simulation.auth)
    log.debug("coordinate_start", auth_entries=len(entries), party_a=party_a_address, party_b=party_b_address)

    stub_index, stub_nonce, b_index = find_auth_entries(entries, party_a_address, party_b_address)
    if stub_index == -1:
        raise StubNotFound(address=party_a_address, entries_scanned=len(entries))

    entries[stub_index] = signed_a

    if b_index is not None:
        sign = _auth_signer(party_b_signer, party_b_address, tx.network_passphrase)
        until = await _resolve_valid_until(tx, valid_until_ledger, ledger, ttl_minutes, ledger_close_seconds)
        entries[b_index] = await authorize_entry(entries[b_index], sign, until, tx.network_passphrase)
        log.debug("party_b_entry_signed", index=b_index, valid_until=until)
    else:
        log.debug("party_b_is_invoker", address=party_b_address)

    tx.simulation.auth = entries
    tx.built.invoke.auth = list(entries)

    signed_nonce = cred_a.nonce
    if stub_nonce == signed_nonce:
        METRICS.record_footprint_repair("unchanged")
        return tx

    envelope = tx.built.to_envelope()
    action = repair_nonce_footprint(envelope, party_a_address, signed_nonce)
    METRICS.record_footprint_repair(action)
    if action == "appended":
        log.warning("footprint_nonce_appended", address=party_a_address, nonce=signed_nonce)
    else:
        log.info("footprint_nonce_patched", address=party_a_address, stub_nonce=stub_nonce, nonce=signed_nonce)

    tx.built = Transaction.from_envelope(TransactionEnvelope.from_bytes(envelope.to_bytes()))
    tx.simulation.footprint = tx.built.soroban_data.resources.footprint.copy()  # type: ignore[union-attr]
    return tx
