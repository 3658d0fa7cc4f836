import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from cangkulan.cli import app
from cangkulan.commit_reveal.pedersen import PROOF_SIZE

from .fakes import address_entry

PLAYER = "GBRPYHIL2CI3FNQ4BXLFMNDLFJUNPU2HY3ZMFSHONUCEOASW7QC7OX2H"
SEED = "0x" + bytes(range(1, 33)).hex()


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_seed_commit_reveal_verify(runner):
    committed = _json(runner.invoke(app, ["seed-commit", "--seed", SEED]))
    assert committed["seed"] == SEED

    revealed = _json(
        runner.invoke(
            app,
            ["seed-reveal", "--seed", SEED, "--blinding", committed["blinding"], "--session", "42", "--player", PLAYER],
        )
    )
    assert len(bytes.fromhex(revealed["proof"][2:])) == PROOF_SIZE

    verify = [
        "seed-verify",
        "--commit-hash", committed["commit_hash"],
        "--seed-hash", revealed["seed_hash"],
        "--proof", revealed["proof"],
        "--player", PLAYER,
    ]
    assert _json(runner.invoke(app, verify + ["--session", "42"])) == {"valid": True}

    wrong = runner.invoke(app, verify + ["--session", "43"])
    assert wrong.exit_code == 1
    assert json.loads(wrong.output) == {"valid": False}


def test_seed_commit_rejects_weak_seed(runner):
    res = runner.invoke(app, ["seed-commit", "--seed", "0x" + "00" * 32])
    assert res.exit_code != 0


def test_play_commit_and_cannot_follow(runner):
    out = _json(runner.invoke(app, ["play-commit", "7"]))
    assert out["action"] == 7
    assert len(out["salt"]) == 2 + 64

    out = _json(runner.invoke(app, ["play-commit", "cannot-follow"]))
    assert out["action"] == 0xFFFFFFFF

    assert runner.invoke(app, ["play-commit", "36"]).exit_code != 0


def test_shuffle_seed(runner):
    sh = "0x" + "11" * 32
    out = _json(runner.invoke(app, ["shuffle-seed", sh, sh, "--session", "1"]))
    assert len(out["shuffle_seed"]) == 2 + 64


def test_entry_describe(runner, gaaa):
    out = _json(runner.invoke(app, ["entry-describe", address_entry(gaaa, 100, args=[42, 100]).to_base64()]))
    assert out["address"] == gaaa
    assert out["nonce"] == 100
    assert out["function"] == "start_game"
    assert out["signed"] is False

    assert runner.invoke(app, ["entry-describe", "not-an-entry"]).exit_code != 0


def test_env_uses_rpc_override(runner, monkeypatch):
    monkeypatch.delenv("CANGKULAN_RPC_URL", raising=False)
    out = _json(runner.invoke(app, ["--rpc", "https://rpc.example.org", "env"]))
    assert out["rpc_url"] == "https://rpc.example.org"


def test_explain_error(runner):
    out = _json(runner.invoke(app, ["explain-error", "HostError: Error(Contract, #25)"]))
    assert out["code"] == 25
    assert out["reason"].startswith("Invalid nonce")

    assert _json(runner.invoke(app, ["explain-error", "12"]))["reason"].startswith("Not your turn")
    assert _json(runner.invoke(app, ["explain-error", "out of gas"])) == {"code": None, "reason": "out of gas"}
