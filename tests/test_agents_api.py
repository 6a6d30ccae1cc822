"""Tests for agent record loading used by the edit wizard."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from core.errors import ServerRejectedError, TransportError
from integrations.agents import AgentsApi, extract_agent_record
from wizard.session import DraftSession
from wizard.step_registry import AGENT_EDIT_SCHEMA

AGENT = {
    "_id": "a1",
    "firstName": "Asha",
    "specialization": '["Visa Assistance"]',
    "establishedYear": 2012,
}


@pytest.mark.parametrize(
    "payload",
    [
        {"success": True, "data": {"agent": AGENT}},
        {"success": True, "agent": AGENT},
        {"success": True, "data": AGENT},
        AGENT,
    ],
)
def test_extract_agent_record_accepts_known_shapes(payload: dict[str, object]) -> None:
    assert extract_agent_record(payload) == AGENT


def _fetch(make_client, response):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/agents/a1"
        return response

    async def scenario():
        async with make_client(handler) as client:
            return await AgentsApi(client).fetch("a1")

    return asyncio.run(scenario())


def test_fetch_prefills_edit_session(make_client) -> None:
    record = _fetch(make_client, httpx.Response(200, json={"success": True, "data": {"agent": AGENT}}))

    session = DraftSession.from_record(AGENT_EDIT_SCHEMA, record)

    assert session.record_id == "a1"
    assert session.fields["specialization"] == frozenset({"Visa Assistance"})
    assert session.fields["established_year"] == "2012"


def test_fetch_unknown_agent_is_rejected(make_client) -> None:
    with pytest.raises(ServerRejectedError) as excinfo:
        _fetch(make_client, httpx.Response(404, json={"success": False, "message": "Agent not found"}))
    assert excinfo.value.message == "Agent not found"


def test_fetch_server_error_is_transport_error(make_client) -> None:
    with pytest.raises(TransportError):
        _fetch(make_client, httpx.Response(502))
