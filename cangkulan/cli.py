"""
cangkulan.cli
=============

`cangkulan` — developer tooling for the seed protocol and auth entries.

Commands
--------
- version        : print the package version
- env            : effective configuration (CANGKULAN_* environment)
- seed-commit    : draw (or take) a seed, commit to it
- seed-reveal    : build the seed hash and opening proof for a session
- seed-verify    : check a reveal against a published commit hash
- shuffle-seed   : derive the shared shuffle seed from both seed hashes
- play-commit    : commit to a card (or ``cannot-follow``) with a fresh salt
- entry-describe : decode a base64 authorization entry
- explain-error  : turn a contract error (``Error(Contract, #N)`` or a code) into its reason
- latest-ledger  : ask the RPC endpoint for its latest ledger

Hex arguments accept an optional ``0x`` prefix. Output is JSON.

Examples
--------
    $ cangkulan seed-commit
    $ cangkulan seed-reveal --seed 0x.. --blinding 0x.. --session 42 --player G...
    $ cangkulan seed-verify --commit-hash 0x.. --seed-hash 0x.. --proof 0x.. --session 42 --player G...
    $ cangkulan --rpc https://rpc.example.org latest-ledger
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Optional

import typer

from cangkulan.auth.entry import describe_entry
from cangkulan.commit_reveal.pedersen import commit, generate_seed, is_valid_reveal, reveal
from cangkulan.commit_reveal.play import CANNOT_FOLLOW, commit_play
from cangkulan.commit_reveal.shuffle import derive_shuffle_seed
from cangkulan.config import CoreConfig
from cangkulan.errors import CangkulanError, extract_error_code, format_error
from cangkulan.logging import setup_logging
from cangkulan.rpc.http import SorobanRpcClient
from cangkulan.utils.bytes import from_hex, to_hex
from cangkulan.version import __version__

app = typer.Typer(
    name="cangkulan",
    help="Cangkulan core tooling: seed commitments, proofs and auth entries.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main"]


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _hex_arg(name: str, value: str) -> bytes:
    try:
        return from_hex(value)
    except (TypeError, ValueError) as e:
        raise typer.BadParameter(f"{name}: {e}") from e


@app.callback()
def _root(
    ctx: typer.Context,
    rpc: Optional[str] = typer.Option(None, "--rpc", help="RPC endpoint URL.", envvar="CANGKULAN_RPC_URL"),
) -> None:
    setup_logging(service_name="cangkulan-cli")
    base = CoreConfig.from_env()
    ctx.obj = CoreConfig.with_overrides(base, rpc_url=rpc) if rpc else base


@app.command("version")
def version() -> None:
    """Print the package version."""
    typer.echo(f"cangkulan-core {__version__}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    _print_json(ctx.obj.to_dict())


# --- Seed protocol -------------------------------------------------------------


@app.command("seed-commit")
def seed_commit(
    seed: Optional[str] = typer.Option(None, "--seed", help="32-byte hex seed (random if omitted)."),
) -> None:
    """
    Commit to a seed. Keep ``seed`` and ``blinding`` private until the reveal;
    publish only ``commit_hash``.
    """
    seed_b = _hex_arg("--seed", seed) if seed else generate_seed()
    try:
        c = commit(seed_b)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    _print_json(
        {
            "seed": to_hex(seed_b),
            "blinding": to_hex(c.blinding.to_bytes(32, "big")),
            "commitment": to_hex(c.commitment),
            "commit_hash": to_hex(c.commit_hash),
        }
    )


@app.command("seed-reveal")
def seed_reveal(
    seed: str = typer.Option(..., "--seed", help="Committed seed (hex)."),
    blinding: str = typer.Option(..., "--blinding", help="Blinding scalar from seed-commit (hex)."),
    session: int = typer.Option(..., "--session", help="Session id (u32)."),
    player: str = typer.Option(..., "--player", help="Player address the proof is bound to."),
) -> None:
    """Build the seed hash and the 224-byte opening proof."""
    seed_b = _hex_arg("--seed", seed)
    r_int = int.from_bytes(_hex_arg("--blinding", blinding), "big")
    try:
        r = reveal(seed_b, r_int, session, player)
    except (TypeError, ValueError) as e:
        raise typer.BadParameter(str(e)) from e
    _print_json({"seed_hash": to_hex(r.seed_hash), "proof": to_hex(r.proof)})


@app.command("seed-verify")
def seed_verify(
    commit_hash: str = typer.Option(..., "--commit-hash", help="Published commit hash (hex)."),
    seed_hash: str = typer.Option(..., "--seed-hash", help="Revealed seed hash (hex)."),
    proof: str = typer.Option(..., "--proof", help="Opening proof (hex)."),
    session: int = typer.Option(..., "--session", help="Session id (u32)."),
    player: str = typer.Option(..., "--player", help="Player address."),
) -> None:
    """Verify a reveal. Exit status 1 when it does not open the commitment."""
    ok = is_valid_reveal(
        _hex_arg("--commit-hash", commit_hash),
        _hex_arg("--seed-hash", seed_hash),
        _hex_arg("--proof", proof),
        session,
        player,
    )
    _print_json({"valid": ok})
    if not ok:
        raise typer.Exit(code=1)


@app.command("shuffle-seed")
def shuffle_seed(
    seed_hash_1: str = typer.Argument(..., help="Player 1 seed hash (hex)."),
    seed_hash_2: str = typer.Argument(..., help="Player 2 seed hash (hex)."),
    session: int = typer.Option(..., "--session", help="Session id (u32)."),
) -> None:
    """Derive the shared shuffle seed."""
    try:
        out = derive_shuffle_seed(_hex_arg("seed_hash_1", seed_hash_1), _hex_arg("seed_hash_2", seed_hash_2), session)
    except (TypeError, ValueError) as e:
        raise typer.BadParameter(str(e)) from e
    _print_json({"shuffle_seed": to_hex(out)})


@app.command("play-commit")
def play_commit(
    card: str = typer.Argument(..., help="Card id 0..35, or 'cannot-follow'."),
) -> None:
    """Commit to a play. Keep ``salt`` private until the reveal."""
    try:
        action = CANNOT_FOLLOW if card == "cannot-follow" else int(card)
        c = commit_play(action)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    _print_json({"action": c.action, "salt": to_hex(c.salt), "commit_hash": to_hex(c.commit_hash)})


# --- Auth entries & ledger ------------------------------------------------------


@app.command("entry-describe")
def entry_describe(entry: str = typer.Argument(..., help="Base64 authorization entry.")) -> None:
    """Decode an authorization entry and show who it authorizes for what."""
    try:
        info = describe_entry(entry)
    except CangkulanError as e:
        raise typer.BadParameter(str(e)) from e
    _print_json(
        {
            "address": info.address,
            "nonce": info.nonce,
            "contract": info.contract,
            "function": info.function_name,
            "args": [to_hex(a) if isinstance(a, bytes) else a for a in info.args],
            "expiration_ledger": info.expiration_ledger,
            "signed": info.signed,
        }
    )


@app.command("explain-error")
def explain_error(error: str = typer.Argument(..., help="Error text, or a bare contract error code.")) -> None:
    """Explain a contract error code."""
    text = f"Error(Contract, #{error})" if error.isdigit() else error
    _print_json({"code": extract_error_code(text), "reason": format_error(text)})


@app.command("latest-ledger")
def latest_ledger(ctx: typer.Context) -> None:
    """Fetch the latest ledger from the configured RPC endpoint."""
    cfg: CoreConfig = ctx.obj

    async def _fetch() -> Any:
        async with SorobanRpcClient(cfg.rpc_url, timeout=cfg.timeout, headers=cfg.http_headers()) as rpc:
            return await rpc.get_latest_ledger()

    try:
        _print_json(asyncio.run(_fetch()))
    except CangkulanError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=2)


def main() -> None:  # pragma: no cover
    try:
        app(prog_name="cangkulan")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
