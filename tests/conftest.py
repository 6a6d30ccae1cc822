from pathlib import Path
import sys
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

import httpx
import streamlit as st

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import config

from integrations.api_client import build_client

TODAY = date(2025, 6, 1)
REFERRAL_TOKEN = "0123456789abcdef01234567"
API_BASE = "https://api.test"


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin configuration that individual tests may flip."""

    monkeypatch.setattr(config, "API_TOKEN", "", raising=False)
    monkeypatch.setattr(config, "SUBMISSION_REQUEST_ID_ENABLED", False, raising=False)
    monkeypatch.setattr(config, "GATE_REDIRECT_DELAY_SECONDS", 2.0, raising=False)
    monkeypatch.setattr(config, "EMAIL_VERIFICATION_ENABLED", False, raising=False)
    yield


@dataclass
class _SessionDict(dict[str, object]):
    """Lightweight replacement for ``st.session_state`` during tests."""

    def clear(self) -> None:  # type: ignore[override]
        super().clear()


@pytest.fixture(autouse=True)
def _stub_streamlit_session_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace Streamlit's runtime-bound session state with a plain dictionary."""

    session_state = _SessionDict()
    monkeypatch.setattr(st, "session_state", session_state, raising=False)
    yield


@pytest.fixture
def make_client() -> Callable[..., httpx.AsyncClient]:
    """Return a factory building API clients backed by ``httpx.MockTransport``."""

    def _factory(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> httpx.AsyncClient:
        return build_client(
            base_url=API_BASE,
            auth_token="",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _factory


@pytest.fixture
def agent_values() -> dict[str, object]:
    """Field values that satisfy every step of the agent-create flow."""

    return {
        "first_name": "Asha",
        "last_name": "Verma",
        "email": "asha@example.com",
        "phone": "+91 98765 43210",
        "qualification": "MBA",
        "designation": "Director",
        "experience": "6-10 years",
        "company_name": "Verma Overseas",
        "company_type": "Private Limited",
        "registration_number": "U80301DL2010PTC123456",
        "established_year": "2010",
        "website": "https://verma-overseas.example",
        "address": "12 Ring Road",
        "city": "New Delhi",
        "state": "Delhi",
        "pincode": "110001",
        "specialization": {"MBBS Admissions", "Visa Assistance"},
        "services_offered": {"Visa Processing"},
        "current_students": "51-100",
        "team_size": "6-10",
        "partnership_type": "Regional Partner",
        "expected_students": "26-50",
        "why_partner": "Long standing MBBS admissions practice.",
    }


@pytest.fixture
def student_values() -> dict[str, object]:
    return {
        "first_name": "Ravi",
        "last_name": "Kumar",
        "email": "ravi.kumar@example.com",
        "country_code": "91",
        "mobile": "98765 43210",
    }


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def referral_token() -> str:
    return REFERRAL_TOKEN
