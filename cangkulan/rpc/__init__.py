"""
Ledger RPC client (async JSON-RPC over httpx).
"""

from .http import SorobanRpcClient, parse_simulation  # noqa: F401

__all__ = ["SorobanRpcClient", "parse_simulation"]
