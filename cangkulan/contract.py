"""
cangkulan.contract
==================

A thin contract-call layer that:
- Builds a one-operation transaction invoking a contract function
- Simulates it to obtain auth entries, footprint and the return value
- Signs the envelope through the caller's wallet and sends it

Example
-------
    from cangkulan.rpc.http import SorobanRpcClient
    from cangkulan.contract import ContractClient

    async with SorobanRpcClient(url) as rpc:
        client = ContractClient(contract_id, rpc, network_passphrase)
        tx = await client.build("get_game", [42], source=viewer)
        print(tx.result)

Read calls
----------
A simulation with no auth entries and an empty read-write footprint is a
read call; ``sign_and_send`` refuses it with ``NoSignatureNeeded`` unless
``force=True`` is passed. The submitter relies on that message when it
recovers from misreported read calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, Union

from cangkulan.errors import NoSignatureNeeded, ProtocolError, SignerUnavailable
from cangkulan.logging import get_logger
from cangkulan.tx.send import SentTransaction, send_and_wait
from cangkulan.types.auth import AddressCredential
from cangkulan.types.tx import (
    InvokeHostFunction,
    SimulationResult,
    SorobanData,
    SorobanResources,
    Transaction,
    TransactionEnvelope,
)
from cangkulan.utils.bytes import b64decode, b64encode

__all__ = ["ContractRpc", "AssembledTransaction", "ContractClient", "DEFAULT_BASE_FEE"]

log = get_logger(__name__)

DEFAULT_BASE_FEE = 100

READ_CALL_MESSAGE = (
    "This is a read call. It requires no signature or sending. "
    "Use `force: true` to sign and send anyway."
)


class ContractRpc(Protocol):
    async def get_latest_ledger(self) -> Any: ...
    async def get_account(self, address: str) -> Any: ...
    async def simulate_transaction(self, envelope_b64: str) -> SimulationResult: ...
    async def send_transaction(self, envelope_b64: str) -> Any: ...
    async def get_transaction(self, tx_hash: str) -> Any: ...


@dataclass
class AssembledTransaction:
    """A built contract call plus its latest simulation."""

    built: Transaction
    network_passphrase: str
    rpc: ContractRpc
    signer: Any = None
    simulation: Optional[SimulationResult] = None
    finality_timeout: float = 30.0
    poll_interval: float = 1.0

    # ------------------------------------------------------------------ views

    @property
    def result(self) -> Any:
        """Return value reported by the simulation (``None`` before simulating)."""
        return self.simulation.return_value if self.simulation is not None else None

    @property
    def is_read_call(self) -> bool:
        return self.simulation is not None and self.simulation.read_only

    def needs_signatures_from(self) -> List[str]:
        """Addresses whose auth entries in the built call are still unsigned."""
        out: List[str] = []
        for entry in self.built.invoke.auth:
            cred = entry.credentials
            if isinstance(cred, AddressCredential) and not cred.is_signed and cred.address not in out:
                out.append(cred.address)
        return out

    def to_envelope(self) -> TransactionEnvelope:
        return self.built.to_envelope()

    def to_bytes(self) -> bytes:
        return self.to_envelope().to_bytes()

    def to_base64(self) -> str:
        return self.to_envelope().to_base64()

    # ------------------------------------------------------------------ lifecycle

    async def simulate(self) -> "AssembledTransaction":
        """Simulate the call and attach auth entries and footprint to ``built``."""
        sim = await self.rpc.simulate_transaction(self.to_base64())
        self.simulation = sim
        self.built.invoke.auth = list(sim.auth)
        self.built.soroban_data = SorobanData(
            resources=SorobanResources(footprint=sim.footprint.copy()),
            resource_fee=sim.min_resource_fee,
        )
        log.debug(
            "call_simulated",
            function=self.built.invoke.function_name,
            auth_entries=len(sim.auth),
            read_only=sim.read_only,
        )
        return self

    async def sign_and_send(self, *, force: bool = False) -> SentTransaction:
        if self.is_read_call and not force:
            raise NoSignatureNeeded(READ_CALL_MESSAGE)
        sign_transaction = getattr(self.signer, "sign_transaction", None)
        if sign_transaction is None:
            raise SignerUnavailable(capability="sign_transaction", address=self.built.source)

        signed = await sign_transaction(self.to_bytes(), network_passphrase=self.network_passphrase)
        return await send_and_wait(
            self.rpc,
            b64encode(signed),
            timeout_s=self.finality_timeout,
            poll_interval_s=self.poll_interval,
        )


class ContractClient:
    """
    Client bound to one deployed contract.

    Parameters
    ----------
    contract_id : ``C...`` address of the contract.
    rpc : object implementing ``ContractRpc`` (e.g. ``SorobanRpcClient``).
    network_passphrase : passphrase of the target network.
    """

    def __init__(
        self,
        contract_id: str,
        rpc: ContractRpc,
        network_passphrase: str,
        *,
        base_fee: int = DEFAULT_BASE_FEE,
        finality_timeout: float = 30.0,
        poll_interval: float = 1.0,
    ) -> None:
        if not contract_id:
            raise ValueError("contract_id is required")
        self.contract_id = contract_id
        self.rpc = rpc
        self.network_passphrase = network_passphrase
        self.base_fee = int(base_fee)
        self.finality_timeout = finality_timeout
        self.poll_interval = poll_interval

    async def next_sequence(self, source: str) -> int:
        account = await self.rpc.get_account(source)
        try:
            return int(account["sequence"]) + 1
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"unexpected account payload for {source}: {account!r}") from e

    def _assemble(self, built: Transaction, signer: Any) -> AssembledTransaction:
        return AssembledTransaction(
            built=built,
            network_passphrase=self.network_passphrase,
            rpc=self.rpc,
            signer=signer,
            finality_timeout=self.finality_timeout,
            poll_interval=self.poll_interval,
        )

    async def build(
        self,
        method: str,
        args: Sequence[Any] = (),
        *,
        source: str,
        signer: Any = None,
        simulate: bool = True,
    ) -> AssembledTransaction:
        """Build a call to *method* with *source* as the transaction source, then simulate it."""
        built = Transaction(
            source=source,
            sequence=await self.next_sequence(source),
            fee=self.base_fee,
            operations=[InvokeHostFunction(contract=self.contract_id, function_name=method, args=list(args))],
        )
        tx = self._assemble(built, signer)
        return await tx.simulate() if simulate else tx

    def from_envelope(self, envelope: Union[str, bytes], *, signer: Any = None) -> AssembledTransaction:
        """Re-hydrate a transaction exported with ``to_base64`` (or ``to_bytes``)."""
        raw = b64decode(envelope.strip()) if isinstance(envelope, str) else bytes(envelope)
        built = Transaction.from_envelope(TransactionEnvelope.from_bytes(raw))
        if built.invoke.contract != self.contract_id:
            raise ProtocolError(f"envelope calls {built.invoke.contract}, not {self.contract_id}")
        tx = self._assemble(built, signer)
        sd = built.soroban_data
        tx.simulation = SimulationResult(
            auth=list(built.invoke.auth),
            footprint=sd.footprint.copy() if sd is not None else SimulationResult().footprint,
        )
        return tx
