from __future__ import annotations

import pytest

from cangkulan.address import encode_account
from cangkulan.contract import ContractClient
from cangkulan.wallet.signer import KeypairSigner

from .fakes import CONTRACT_ID, PASSPHRASE, FakeLedger


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def client(ledger: FakeLedger) -> ContractClient:
    return ContractClient(CONTRACT_ID, ledger, PASSPHRASE, finality_timeout=5.0, poll_interval=0.0)


@pytest.fixture()
def alice() -> KeypairSigner:
    return KeypairSigner.from_seed(b"\x01" * 32)


@pytest.fixture()
def bob() -> KeypairSigner:
    return KeypairSigner.from_seed(b"\x02" * 32)


@pytest.fixture()
def gaaa() -> str:
    """The all-zero account address, ``GAAAA...``."""
    return encode_account(bytes(32))
