import asyncio

import httpx
import pytest

from cangkulan.errors import (
    ContractRejection,
    FinalityTimeout,
    ProtocolError,
    RpcError,
    StubNotFound,
    TransientError,
    TxSubmissionError,
)
from cangkulan.tx.classify import error_message, is_contention_error, is_transient_error


@pytest.mark.parametrize(
    "message",
    [
        "503 Service Unavailable",
        "Request timed out after 30000ms",
        "read ECONNRESET",
        "connect ECONNREFUSED 127.0.0.1:8000",
        "getaddrinfo ENOTFOUND soroban-testnet.stellar.org",
        "TypeError: Failed to fetch",
        "HTTP 429",
        "Rate limit exceeded, slow down",
        "txBadSeq",
        "transaction failed: txTooLate",
        "tx_too_early",
    ],
)
def test_transient_messages(message):
    assert is_transient_error(message) is True
    assert is_transient_error(RuntimeError(message)) is True


@pytest.mark.parametrize(
    "message",
    [
        "duplicate session",
        "wrong card",
        "Error(Contract, #12)",
        "not your turn",
        "",
    ],
)
def test_final_messages(message):
    assert is_transient_error(message) is False
    assert is_transient_error(ValueError(message)) is False


def test_none_is_final():
    assert is_transient_error(None) is False


def test_status_codes_match_whole_numbers_only():
    # 1503 is a ledger number, not an HTTP status
    assert is_transient_error("ledger 1503 closed") is False
    assert is_transient_error("upstream answered 503") is True


def test_typed_transient_errors():
    assert is_transient_error(TransientError("try later")) is True
    assert is_transient_error(asyncio.TimeoutError()) is True
    assert is_transient_error(ConnectionResetError()) is True
    assert is_transient_error(httpx.ConnectTimeout("boom")) is True
    assert is_transient_error(httpx.ConnectError("boom")) is True


def test_rpc_error_uses_http_status():
    assert is_transient_error(RpcError(method="simulateTransaction", code=-32603, message="x", http_status=503))
    assert is_transient_error(RpcError(method="simulateTransaction", code=-32603, message="x", http_status=504))
    assert not is_transient_error(RpcError(method="simulateTransaction", code=-32602, message="bad params", http_status=400))


def test_http_status_error():
    req = httpx.Request("POST", "http://rpc.local")
    resp = httpx.Response(429, request=req)
    err = httpx.HTTPStatusError("rate", request=req, response=resp)
    assert is_transient_error(err) is True


def test_final_types_win_over_message():
    # Contract text that happens to contain a transient phrase is still final.
    assert is_transient_error(ContractRejection(message="HostError: network timeout in game logic")) is False
    assert is_transient_error(ProtocolError("timeout")) is False
    assert is_transient_error(StubNotFound(address="GABC")) is False
    assert is_transient_error(FinalityTimeout(tx_hash="ab" * 32, timeout_s=30.0)) is False


def test_submission_error_read_by_message():
    assert is_transient_error(TxSubmissionError(message="txBadSeq")) is True
    assert is_transient_error(TxSubmissionError(message="txInsufficientFee")) is False


def test_cause_chain_is_walked():
    try:
        try:
            raise ConnectionResetError("peer reset")
        except ConnectionResetError as inner:
            raise RuntimeError("simulate failed") from inner
    except RuntimeError as outer:
        assert is_transient_error(outer) is True

    try:
        try:
            raise ContractRejection(message="duplicate session")
        except ContractRejection as inner:
            raise RuntimeError("send failed: 503") from inner
    except RuntimeError as outer:
        # The outer message is transient; it is examined before the final cause.
        assert is_transient_error(outer) is True


def test_error_message_falls_back_to_type_name():
    assert error_message(asyncio.TimeoutError()) == "TimeoutError"
    assert error_message("plain") == "plain"
    assert error_message(None) == ""


@pytest.mark.parametrize(
    "err",
    [
        ContractRejection(message="HostError: Error(Contract, #25)", status="FAILED"),
        ContractRejection(message="Error(Contract, #25)", status="SIMULATION_FAILED"),
        ContractRejection(message="transaction failed", status="FAILED"),
        ContractRejection(message="entry expired in flight", status="SIMULATION_FAILED"),
    ],
)
def test_contention_errors(err):
    assert is_contention_error(err)
    assert not is_transient_error(err)


@pytest.mark.parametrize(
    "err",
    [
        ContractRejection(message="HostError: Error(Contract, #12)", status="FAILED"),
        ContractRejection(message="duplicate session", status="SIMULATION_FAILED"),
        FinalityTimeout(tx_hash="ab" * 32, timeout_s=30.0),
        httpx.ConnectError("connection refused"),
        None,
    ],
)
def test_not_contention(err):
    assert not is_contention_error(err)
