from __future__ import annotations

"""
Async JSON-RPC client for the ledger's RPC endpoint.

- httpx.AsyncClient transport; inject your own (e.g. one built on
  ``httpx.MockTransport``) for tests.
- No retries at this layer: transport errors propagate as httpx exceptions,
  HTTP and JSON-RPC failures as ``RpcError``. The submitter decides what to
  retry.
- Binary payloads (envelopes, auth entries, return values, transaction data)
  travel as base64 of deterministic CBOR.

Wire format
-----------
The method names and JSON shapes follow the Soroban RPC API
(``getLatestLedger``, ``simulateTransaction``, ``sendTransaction``,
``getTransaction``), but the payload encoding is this package's own CBOR
codec, not Stellar XDR. A stock Soroban RPC node rejects these envelopes; the
client talks to an endpoint (or gateway) that speaks the CBOR encoding.

Example:
    from cangkulan.rpc.http import SorobanRpcClient

    async with SorobanRpcClient("https://rpc.example.org") as rpc:
        latest = await rpc.get_latest_ledger()
        print(latest["sequence"])
"""

from itertools import count
from typing import Any, Dict, Iterator, Mapping, Optional

import httpx

from cangkulan.errors import ContractRejection, RpcError
from cangkulan.logging import get_logger
from cangkulan.types.auth import AuthorizationEntry
from cangkulan.types.ledger import Footprint
from cangkulan.types.tx import SimulationResult, SorobanData
from cangkulan.utils.bytes import b64decode
from cangkulan.utils.cbor import CBORDecodeError, loads
from cangkulan.version import __version__

__all__ = ["SorobanRpcClient", "parse_simulation"]

log = get_logger(__name__)

# JSON-RPC internal error code used for malformed responses
_INTERNAL = -32603


def parse_simulation(res: Mapping[str, Any]) -> SimulationResult:
    """
    Turn a ``simulateTransaction`` result object into a ``SimulationResult``.

    A result carrying ``error`` means the contract rejected the invocation
    during simulation; that is raised as ``ContractRejection``.
    """
    if res.get("error"):
        raise ContractRejection(message=str(res["error"]), status="SIMULATION_FAILED", response=dict(res))

    results = res.get("results") or []
    first = results[0] if results else {}
    try:
        auth = [AuthorizationEntry.from_base64(a) for a in first.get("auth") or []]
        retval = loads(b64decode(first["retval"])) if first.get("retval") else None
        td = res.get("transactionData")
        soroban_data = SorobanData.from_dict(loads(b64decode(td))) if td else SorobanData()
    except (ValueError, TypeError, KeyError, CBORDecodeError) as e:
        raise RpcError(
            method="simulateTransaction",
            code=_INTERNAL,
            message=f"malformed simulation result: {e}",
            data=dict(res),
        ) from e

    footprint: Footprint = soroban_data.resources.footprint
    return SimulationResult(
        auth=auth,
        footprint=footprint,
        return_value=retval,
        latest_ledger=int(res.get("latestLedger", 0)),
        min_resource_fee=int(res.get("minResourceFee", 0)),
    )


class SorobanRpcClient:
    """Async JSON-RPC 2.0 client over HTTP (Soroban method names, CBOR payloads; see module docs)."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"cangkulan-core/{__version__}",
        }
        if headers:
            merged.update(dict(headers))
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=merged)
        self._ids: Iterator[int] = count(1)

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "SorobanRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- core ------------------------------------------------------------

    async def request(self, method: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Perform a single JSON-RPC request and return ``result`` or raise ``RpcError``."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": dict(params or {})}
        r = await self._client.post(self.url, json=payload, timeout=self.timeout)

        if r.status_code >= 400:
            raise RpcError(
                method=method,
                code=_INTERNAL,
                message=f"HTTP {r.status_code} {r.reason_phrase}".strip(),
                data=r.text[:256],
                http_status=r.status_code,
            )
        try:
            body = r.json()
        except ValueError as e:
            raise RpcError(
                method=method,
                code=_INTERNAL,
                message="Non-JSON response from RPC",
                data=r.text[:256],
                http_status=r.status_code,
            ) from e

        if not isinstance(body, dict):
            raise RpcError(method=method, code=_INTERNAL, message="Invalid JSON-RPC response", data=body)
        if "error" in body and body["error"] is not None:
            err = body["error"]
            raise RpcError(
                method=method,
                code=int(err.get("code", _INTERNAL)),
                message=str(err.get("message", "Unknown error")),
                data=err.get("data"),
                http_status=r.status_code,
            )
        if "result" not in body:
            raise RpcError(method=method, code=_INTERNAL, message="Missing result", data=body)
        return body["result"]

    # --- ledger methods --------------------------------------------------

    async def get_latest_ledger(self) -> Dict[str, Any]:
        return await self.request("getLatestLedger")

    async def get_account(self, address: str) -> Dict[str, Any]:
        return await self.request("getAccount", {"address": address})

    async def simulate_transaction(self, envelope_b64: str) -> SimulationResult:
        res = await self.request("simulateTransaction", {"transaction": envelope_b64})
        sim = parse_simulation(res)
        log.debug(
            "simulated",
            auth_entries=len(sim.auth),
            read_write=len(sim.footprint.read_write),
            latest_ledger=sim.latest_ledger,
        )
        return sim

    async def send_transaction(self, envelope_b64: str) -> Dict[str, Any]:
        return await self.request("sendTransaction", {"transaction": envelope_b64})

    async def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return await self.request("getTransaction", {"hash": tx_hash})
