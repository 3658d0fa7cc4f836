from __future__ import annotations

from typing import List, Optional

import pytest

from cangkulan.auth.coordinator import coordinate, find_auth_entries, prepare_party_a_entry, repair_nonce_footprint
from cangkulan.auth.entry import authorize_entry, verify_entry_signature
from cangkulan.errors import MalformedEntry, ProtocolError, SignerUnavailable, SigningError, StubNotFound
from cangkulan.types.auth import AddressCredential, AuthorizationEntry
from cangkulan.types.ledger import ContractDataKey, Durability, NonceKey
from cangkulan.types.tx import InvokeHostFunction, Transaction, TransactionEnvelope
from cangkulan.wallet.signer import SignAuthEntryResult

from .fakes import GAME_KEY, PASSPHRASE, address_entry, invoker_entry, nonce_key, write_simulation

SESSION = 42
VALID_UNTIL = 1_720


def start_game_args(p1: str, p2: str) -> list:
    return [SESSION, p1, p2, 100, 100]


def signed_party_a_entry(address: str, nonce: int) -> AuthorizationEntry:
    """Party A's entry as it arrives out of band: signed against an earlier simulation."""
    entry = address_entry(address, nonce, args=[SESSION, 100])
    entry.credentials.signature = b"\xa1" * 64
    entry.credentials.signature_expiration_ledger = VALID_UNTIL
    return entry


def use_simulation(ledger, auth: List[AuthorizationEntry], extra_rw: Optional[list] = None) -> None:
    ledger.simulate_with = lambda _env: write_simulation(auth=auth, extra_read_write=extra_rw)


async def build_start_game(client, ledger, p1: str, p2, auth, extra_rw=None):
    use_simulation(ledger, auth, extra_rw)
    return await client.build("start_game", start_game_args(p1, p2.address), source=p2.address, signer=p2)


class DecliningWallet:
    async def sign_auth_entry(self, preimage, *, network_passphrase, address):
        return SignAuthEntryResult(error="User declined access")


class TxOnlyWallet:
    async def sign_transaction(self, envelope, *, network_passphrase):
        return envelope


# ---- the GAAA scenario -------------------------------------------------------------


@pytest.mark.asyncio
async def test_gaaa_nonce_mismatch_is_repaired(client, ledger, gaaa, bob):
    # Party B's simulation produced a stub with nonce 55; party A signed nonce 100.
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 55, args=[SESSION, 100]), invoker_entry()],
        extra_rw=[nonce_key(gaaa, 55)],
    )
    signed_a = signed_party_a_entry(gaaa, 100)

    out = await coordinate(tx, signed_a.to_base64(), bob.address, bob, valid_until_ledger=VALID_UNTIL)
    assert out is tx

    # Stub replaced verbatim, in both views.
    assert tx.simulation.auth[0] == signed_a
    assert tx.built.invoke.auth[0] == signed_a
    assert tx.built.invoke.auth[0].to_bytes() == signed_a.to_bytes()
    assert tx.built.invoke.auth[1].credentials == invoker_entry().credentials

    # Footprint nonce rewritten in place; no stale key left behind.
    rw = tx.built.soroban_data.footprint.read_write
    assert len(rw) == 2
    assert rw[0] == GAME_KEY
    assert rw[1] == ContractDataKey(contract=gaaa, key=NonceKey(100), durability=Durability.TEMPORARY)
    assert tx.simulation.footprint.nonce_for(gaaa) == 100

    # And the serialized envelope carries the repair.
    env = TransactionEnvelope.from_base64(tx.to_base64())
    assert env.tx.soroban_data.footprint.nonce_for(gaaa) == 100
    assert env.tx.invoke.auth[0].nonce == 100
    assert env.tx.invoke.auth[0].to_bytes() == signed_a.to_bytes()


@pytest.mark.asyncio
async def test_every_address_entry_has_matching_footprint_nonce(client, ledger, gaaa, bob):
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 55), address_entry(bob.address, 9)],
        extra_rw=[nonce_key(gaaa, 55), nonce_key(bob.address, 9)],
    )
    await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, bob, valid_until_ledger=VALID_UNTIL)

    fp = tx.built.soroban_data.footprint
    for entry in tx.built.invoke.auth:
        cred = entry.credentials
        assert isinstance(cred, AddressCredential)
        assert [k.key.nonce for k in fp.nonce_keys_for(cred.address)] == [cred.nonce]


# ---- party B -------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_party_b_address_entry_is_signed(client, ledger, gaaa, bob):
    stub_b = address_entry(bob.address, 7)
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 55), stub_b],
        extra_rw=[nonce_key(gaaa, 55), nonce_key(bob.address, 7)],
    )
    await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, bob, valid_until_ledger=VALID_UNTIL)

    signed_b = tx.built.invoke.auth[1]
    assert signed_b.credentials.is_signed
    assert signed_b.credentials.nonce == 7
    assert signed_b.credentials.signature_expiration_ledger == VALID_UNTIL
    assert verify_entry_signature(signed_b, PASSPHRASE)
    assert not verify_entry_signature(signed_b, "Public Global Stellar Network ; September 2015")
    # The simulated stub object itself was not signed in place.
    assert stub_b.credentials.signature is None


@pytest.mark.asyncio
async def test_party_b_validity_bound_from_ledger(client, ledger, gaaa, bob):
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 55), address_entry(bob.address, 7)],
        extra_rw=[nonce_key(gaaa, 55)],
    )
    await coordinate(tx, signed_party_a_entry(gaaa, 55), bob.address, bob, ttl_minutes=5)

    # 5 minutes at 5 s per ledger = 60 ledgers past the latest (1000).
    assert tx.built.invoke.auth[1].credentials.signature_expiration_ledger == 1_060
    assert ledger.count("getLatestLedger") == 1


@pytest.mark.asyncio
async def test_party_b_as_invoker_needs_no_signer(client, ledger, gaaa, bob):
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 55), invoker_entry()],
        extra_rw=[nonce_key(gaaa, 55)],
    )
    # No auth-signing capability is needed when party B only appears as invoker.
    await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, TxOnlyWallet(), valid_until_ledger=VALID_UNTIL)
    assert tx.built.soroban_data.footprint.nonce_for(gaaa) == 100


# ---- footprint repair -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_nonce_key_is_appended(client, ledger, gaaa, bob):
    tx = await build_start_game(client, ledger, gaaa, bob, auth=[address_entry(gaaa, 55), invoker_entry()])
    before = list(tx.built.soroban_data.footprint.read_write)

    await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, bob, valid_until_ledger=VALID_UNTIL)

    rw = tx.built.soroban_data.footprint.read_write
    assert rw[: len(before)] == before
    assert rw[-1] == ContractDataKey(contract=gaaa, key=NonceKey(100), durability=Durability.TEMPORARY)


@pytest.mark.asyncio
async def test_matching_nonce_leaves_footprint_alone(client, ledger, gaaa, bob):
    tx = await build_start_game(
        client, ledger, gaaa, bob,
        auth=[address_entry(gaaa, 100), invoker_entry()],
        extra_rw=[nonce_key(gaaa, 100)],
    )
    built_before = tx.built
    fp_before = tx.built.soroban_data.footprint.copy()

    await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, bob, valid_until_ledger=VALID_UNTIL)

    assert tx.built is built_before
    assert tx.built.soroban_data.footprint == fp_before


def test_repair_requires_simulated_envelope(gaaa):
    env = Transaction(source=gaaa, sequence=1, fee=100, operations=[InvokeHostFunction("C", "start_game")]).to_envelope()
    with pytest.raises(ProtocolError):
        repair_nonce_footprint(env, gaaa, 1)


def test_find_auth_entries_skips_invoker(gaaa, bob):
    entries = [invoker_entry(), address_entry(bob.address, 3), address_entry(gaaa, 55)]
    assert find_auth_entries(entries, gaaa, bob.address) == (2, 55, 1)
    assert find_auth_entries(entries, "GNOBODY") == (-1, None, None)


# ---- failures -------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_stub_not_found(client, ledger, gaaa, bob):
    tx = await build_start_game(client, ledger, gaaa, bob, auth=[invoker_entry(), address_entry(bob.address, 7)])
    auth_before = list(tx.built.invoke.auth)

    with pytest.raises(StubNotFound) as ei:
        await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, bob, valid_until_ledger=VALID_UNTIL)

    assert ei.value.address == gaaa
    assert ei.value.entries_scanned == 2
    assert tx.built.invoke.auth == auth_before


@pytest.mark.asyncio
async def test_signer_without_auth_capability(client, ledger, gaaa, bob):
    tx = await build_start_game(client, ledger, gaaa, bob, auth=[address_entry(gaaa, 55), address_entry(bob.address, 7)])
    with pytest.raises(SignerUnavailable) as ei:
        await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, TxOnlyWallet(), valid_until_ledger=VALID_UNTIL)
    assert ei.value.capability == "sign_auth_entry"


@pytest.mark.asyncio
async def test_wallet_error_propagates(client, ledger, gaaa, bob):
    tx = await build_start_game(client, ledger, gaaa, bob, auth=[address_entry(gaaa, 55), address_entry(bob.address, 7)])
    with pytest.raises(SigningError, match="User declined"):
        await coordinate(tx, signed_party_a_entry(gaaa, 100), bob.address, DecliningWallet(), valid_until_ledger=VALID_UNTIL)


@pytest.mark.asyncio
async def test_party_a_entry_must_be_address_credential(client, ledger, gaaa, bob):
    tx = await build_start_game(client, ledger, gaaa, bob, auth=[address_entry(gaaa, 55)])
    with pytest.raises(MalformedEntry):
        await coordinate(tx, invoker_entry(), bob.address, bob, valid_until_ledger=VALID_UNTIL)
    with pytest.raises(MalformedEntry):
        await coordinate(tx, "%%%", bob.address, bob, valid_until_ledger=VALID_UNTIL)


# ---- party A's half and the full two-party flow ---------------------------------------------


@pytest.mark.asyncio
async def test_prepare_party_a_entry_signs_stub(client, ledger, alice, bob):
    tx = await build_start_game(client, ledger, alice.address, bob, auth=[address_entry(alice.address, 100), invoker_entry()])

    b64 = await prepare_party_a_entry(tx, alice.address, alice, ledger=ledger, ttl_minutes=60)
    entry = AuthorizationEntry.from_base64(b64)

    assert entry.nonce == 100
    # 60 minutes at 5 s per ledger = 720 ledgers.
    assert entry.credentials.signature_expiration_ledger == 1_720
    assert verify_entry_signature(entry, PASSPHRASE)


@pytest.mark.asyncio
async def test_prepare_party_a_entry_without_stub(client, ledger, alice, bob):
    tx = await build_start_game(client, ledger, alice.address, bob, auth=[invoker_entry()])
    with pytest.raises(StubNotFound):
        await prepare_party_a_entry(tx, alice.address, alice, valid_until_ledger=VALID_UNTIL)


@pytest.mark.asyncio
async def test_two_party_flow_across_simulations(client, ledger, alice, bob):
    # Party A simulates first and signs nonce 100.
    tx_a = await build_start_game(
        client, ledger, alice.address, bob,
        auth=[address_entry(alice.address, 100), invoker_entry()],
        extra_rw=[nonce_key(alice.address, 100)],
    )
    entry_a = await prepare_party_a_entry(tx_a, alice.address, alice, valid_until_ledger=VALID_UNTIL)

    # Party B's later simulation sees a different stub nonce.
    tx_b = await build_start_game(
        client, ledger, alice.address, bob,
        auth=[address_entry(alice.address, 55), invoker_entry()],
        extra_rw=[nonce_key(alice.address, 55)],
    )
    await coordinate(tx_b, entry_a, bob.address, bob, valid_until_ledger=VALID_UNTIL)

    env = TransactionEnvelope.from_base64(tx_b.to_base64())
    spliced = env.tx.invoke.auth[0]
    assert verify_entry_signature(spliced, PASSPHRASE)
    assert env.tx.soroban_data.footprint.nonce_for(alice.address) == spliced.nonce == 100


# ---- authorize_entry wallet answers -----------------------------------------------------------


@pytest.mark.asyncio
async def test_authorize_entry_accepts_full_signed_entry(alice):
    stub = address_entry(alice.address, 5)

    async def wallet_returns_entry(preimage: bytes):
        signed = await authorize_entry(stub, lambda p: _raw(alice, p), VALID_UNTIL, PASSPHRASE)
        return signed.to_bytes()

    out = await authorize_entry(stub, wallet_returns_entry, VALID_UNTIL, PASSPHRASE)
    assert out.credentials.is_signed
    assert verify_entry_signature(out, PASSPHRASE)


@pytest.mark.asyncio
async def test_authorize_entry_rejects_foreign_signature(alice, bob):
    stub = address_entry(alice.address, 5)
    with pytest.raises(SigningError, match="signature doesn't match payload"):
        await authorize_entry(stub, lambda p: _raw(bob, p), VALID_UNTIL, PASSPHRASE)


@pytest.mark.asyncio
async def test_authorize_entry_passes_invoker_through():
    entry = invoker_entry()

    async def never(_preimage):
        raise AssertionError("invoker entries are not signed")

    out = await authorize_entry(entry, never, VALID_UNTIL, PASSPHRASE)
    assert out == entry and out is not entry


async def _raw(signer, preimage: bytes) -> bytes:
    res = await signer.sign_auth_entry(preimage, network_passphrase=PASSPHRASE, address=signer.address)
    return res.signed_auth_entry
