"""Tests for email one-time code verification and the step gate it drives."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

import config
from core.errors import EMAIL_UNVERIFIED_MESSAGE, SchemaError, ServerRejectedError, VerificationCodeError
from core.schema import WizardSchema
from integrations.email_verification import EmailVerifier
from wizard.engine import WizardEngine
from wizard.session import DraftSession
from wizard.step_registry import AGENT_CREATE_SCHEMA, STUDENT_REGISTER_SCHEMA


def test_send_code_posts_email_and_reads_expiry(make_client) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "message": "OTP sent to your email", "expiresIn": 600})

    async def run() -> int | None:
        async with make_client(handler) as client:
            return await EmailVerifier(client).send_code(" ravi@example.com ")

    assert asyncio.run(run()) == 600
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/otp/send"
    assert json.loads(seen[0].content) == {"email": "ravi@example.com"}


def test_resend_code_uses_resend_path(make_client) -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"success": True})

    async def run() -> int | None:
        async with make_client(handler) as client:
            return await EmailVerifier(client).resend_code("ravi@example.com")

    assert asyncio.run(run()) is None
    assert paths == ["/otp/resend"]


def test_rate_limited_send_raises_with_backend_message(make_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"success": False, "message": "Too many OTP requests. Please try again later."})

    async def run() -> None:
        async with make_client(handler) as client:
            await EmailVerifier(client).send_code("ravi@example.com")

    with pytest.raises(ServerRejectedError, match="Too many OTP requests"):
        asyncio.run(run())


def test_verify_posts_email_and_code(make_client) -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/otp/verify"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "verified": True})

    async def run() -> None:
        async with make_client(handler) as client:
            await EmailVerifier(client).verify("ravi@example.com", " 123456 ")

    asyncio.run(run())
    assert bodies == [{"email": "ravi@example.com", "otp": "123456"}]


@pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456", "١٢٣٤٥٦"])
def test_malformed_code_is_rejected_without_a_request(make_client, code: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async def run() -> None:
        async with make_client(handler) as client:
            await EmailVerifier(client).verify("ravi@example.com", code)

    with pytest.raises(VerificationCodeError):
        asyncio.run(run())


def test_wrong_code_keeps_backend_reason(make_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"success": False, "message": "Invalid OTP", "code": "INVALID_OTP", "attemptsLeft": 2}
        )

    async def run() -> None:
        async with make_client(handler) as client:
            await EmailVerifier(client).verify("ravi@example.com", "000000")

    with pytest.raises(ServerRejectedError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.code == "INVALID_OTP"
    assert excinfo.value.status_code == 400


def test_unverified_email_blocks_first_step(monkeypatch, student_values, today) -> None:
    monkeypatch.setattr(config, "EMAIL_VERIFICATION_ENABLED", True)
    session = DraftSession(STUDENT_REGISTER_SCHEMA, values=student_values, today=today)
    engine = WizardEngine(session)

    assert not engine.next()
    assert session.visible_errors["email"] == EMAIL_UNVERIFIED_MESSAGE

    session.mark_email_verified("Ravi.Kumar@example.com ")

    assert session.email_verified
    assert engine.next()
    assert session.step_index == 2


def test_changing_email_revokes_verification(monkeypatch, student_values, today) -> None:
    monkeypatch.setattr(config, "EMAIL_VERIFICATION_ENABLED", True)
    session = DraftSession(STUDENT_REGISTER_SCHEMA, values=student_values, today=today)
    session.mark_email_verified("ravi.kumar@example.com")
    assert "email" not in session.errors

    session.set_field("email", "someone.else@example.com")

    assert not session.email_verified
    assert session.errors["email"] == EMAIL_UNVERIFIED_MESSAGE


def test_format_error_wins_over_verification(monkeypatch, student_values, today) -> None:
    monkeypatch.setattr(config, "EMAIL_VERIFICATION_ENABLED", True)
    session = DraftSession(STUDENT_REGISTER_SCHEMA, values={**student_values, "email": "not-an-email"}, today=today)

    assert session.errors["email"] != EMAIL_UNVERIFIED_MESSAGE


def test_disabled_verification_leaves_flow_open(student_values, today) -> None:
    session = DraftSession(STUDENT_REGISTER_SCHEMA, values=student_values, today=today)

    assert "email" not in session.errors
    assert WizardEngine(session).next()


def test_flows_without_verified_field_are_unaffected(monkeypatch, agent_values, today) -> None:
    monkeypatch.setattr(config, "EMAIL_VERIFICATION_ENABLED", True)
    session = DraftSession(AGENT_CREATE_SCHEMA, values=agent_values, today=today)

    assert session.email_verified
    assert "email" not in session.errors


def test_schema_rejects_unknown_verified_field() -> None:
    with pytest.raises(SchemaError, match="no field 'mail'"):
        WizardSchema("demo", STUDENT_REGISTER_SCHEMA.steps, verified_email_field="mail")
