"""Tests for the referral gate state machine."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import httpx
import pytest

from core.errors import GateBusyError, GateErrorKind, OperationCancelledError
from integrations.referral import GateState, ReferralGate, extract_token, mask_token

COOKIE_HEADER = {"set-cookie": "student_referral=bound-session; Path=/; HttpOnly"}


def _recording_handler(response: httpx.Response | Callable[[httpx.Request], Any]):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> Any:
        calls.append(request)
        if callable(response):
            return response(request)
        return response

    return handler, calls


def _check(make_client, handler, params: dict[str, object]):
    async def scenario():
        async with make_client(handler) as client:
            gate = ReferralGate(client)
            result = await gate.check(params)
            return gate, result

    return asyncio.run(scenario())


@pytest.mark.parametrize("params", [{}, {"ref": ""}, {"ref": "short"}, {"ref": "x" * 25}])
def test_malformed_token_never_hits_network(make_client, params: dict[str, object]) -> None:
    handler, calls = _recording_handler(httpx.Response(200, json={"success": True}))

    gate, result = _check(make_client, handler, params)

    assert calls == []
    assert gate.state is GateState.INVALID
    assert result.error_kind is GateErrorKind.MALFORMED_TOKEN
    assert result.message == "Invalid referral link"
    assert result.redirect_to == "/404"
    assert result.redirect_delay == 2.0


def test_valid_token_establishes_session(make_client, referral_token: str) -> None:
    handler, calls = _recording_handler(httpx.Response(200, json={"success": True}, headers=COOKIE_HEADER))

    gate, result = _check(make_client, handler, {"ref": referral_token})

    assert len(calls) == 1
    assert calls[0].url.path == "/validate-referral"
    assert calls[0].url.params["ref"] == referral_token
    assert gate.state is GateState.VALID
    assert result.is_valid
    assert result.session_established is True
    assert result.redirect_to is None
    assert result.error is None


def test_valid_token_without_cookie_logs_warning(make_client, referral_token: str, caplog) -> None:
    handler, _ = _recording_handler(httpx.Response(200, json={"success": True}))

    with caplog.at_level(logging.WARNING, logger="integrations.referral"):
        _, result = _check(make_client, handler, {"ref": referral_token})

    assert result.is_valid
    assert result.session_established is False
    assert "no 'student_referral' cookie" in caplog.text
    assert referral_token not in caplog.text


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (httpx.Response(404, json={"success": False, "message": "Referral link is invalid or expired"}), "Referral link is invalid or expired"),
        (httpx.Response(403, json={"success": False, "message": "This referral link is no longer active"}), "This referral link is no longer active"),
        (httpx.Response(404, text="not json"), "Invalid referral link"),
        (httpx.Response(200, json={"success": False}), "Invalid referral link"),
        (httpx.Response(200, json={"ok": True}), "Invalid referral link"),
    ],
)
def test_rejections_keep_server_message(make_client, referral_token: str, response: httpx.Response, message: str) -> None:
    handler, _ = _recording_handler(response)

    gate, result = _check(make_client, handler, {"ref": referral_token})

    assert gate.state is GateState.INVALID
    assert result.error_kind is GateErrorKind.REJECTED
    assert result.message == message
    assert result.redirect_to == "/404"


def test_server_error_counts_as_network_error(make_client, referral_token: str) -> None:
    handler, _ = _recording_handler(httpx.Response(503))

    _, result = _check(make_client, handler, {"ref": referral_token})

    assert result.error_kind is GateErrorKind.NETWORK_ERROR
    assert result.error.status_code == 503
    assert result.message == "Unable to validate referral. Please try again."
    assert result.redirect_to == "/404"


def test_rejected_result_reports_as_plain_data(make_client, referral_token: str) -> None:
    handler, _ = _recording_handler(
        httpx.Response(403, json={"success": False, "message": "This referral link is no longer active"})
    )

    _, result = _check(make_client, handler, {"ref": referral_token})

    assert result.as_dict() == {
        "state": "invalid",
        "valid": False,
        "error_kind": "rejected",
        "message": "This referral link is no longer active",
        "status_code": 403,
        "session_established": False,
        "redirect_to": "/404",
        "redirect_delay": 2.0,
    }

def test_transport_failure_counts_as_network_error(make_client, referral_token: str) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    handler, calls = _recording_handler(refuse)

    gate, result = _check(make_client, handler, {"ref": referral_token})

    assert len(calls) == 1
    assert gate.state is GateState.INVALID
    assert result.error_kind is GateErrorKind.NETWORK_ERROR
    assert result.message == "Unable to validate referral. Please try again."


def test_resolved_gate_returns_cached_result(make_client, referral_token: str) -> None:
    handler, calls = _recording_handler(httpx.Response(200, json={"success": True}, headers=COOKIE_HEADER))

    async def scenario():
        async with make_client(handler) as client:
            gate = ReferralGate(client)
            first = await gate.check({"ref": referral_token})
            second = await gate.check({"ref": "y" * 24})
            return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert len(calls) == 1


def test_first_query_value_wins(make_client, referral_token: str) -> None:
    handler, calls = _recording_handler(httpx.Response(200, json={"success": True}, headers=COOKIE_HEADER))

    _, result = _check(make_client, handler, {"ref": [referral_token, "z" * 24]})

    assert result.is_valid
    assert calls[0].url.params["ref"] == referral_token


def test_concurrent_check_is_rejected(make_client, referral_token: str) -> None:
    release = asyncio.Event()

    async def slow(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, json={"success": True}, headers=COOKIE_HEADER)

    async def scenario():
        async with make_client(slow) as client:
            gate = ReferralGate(client)
            running = asyncio.create_task(gate.check({"ref": referral_token}))
            while gate.state is not GateState.VALIDATING:
                await asyncio.sleep(0)
            with pytest.raises(GateBusyError):
                await gate.check({"ref": referral_token})
            release.set()
            return await running

    result = asyncio.run(scenario())

    assert result.is_valid


def test_teardown_cancels_in_flight_check(make_client, referral_token: str) -> None:
    async def never(request: httpx.Request) -> httpx.Response:
        await asyncio.Event().wait()
        return httpx.Response(200, json={"success": True})

    async def scenario():
        async with make_client(never) as client:
            gate = ReferralGate(client)
            running = asyncio.create_task(gate.check({"ref": referral_token}))
            while gate.state is not GateState.VALIDATING:
                await asyncio.sleep(0)
            gate.teardown("user navigated away")
            with pytest.raises(OperationCancelledError):
                await running
            return gate

    gate = asyncio.run(scenario())

    assert gate.state is GateState.IDLE
    assert gate.result is None


def test_extract_and_mask_token(referral_token: str) -> None:
    assert extract_token({"ref": referral_token}) == referral_token
    assert extract_token({"ref": []}) is None
    assert extract_token({"ref": 42}) is None
    assert mask_token(referral_token) == "0123...(24 chars)"
    assert mask_token(None) == "<none>"
