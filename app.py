# app.py: placement onboarding (referral gate + registration wizards)
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import sys
from typing import Final

import streamlit as st

APP_ROOT = Path(__file__).resolve().parent
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

import config  # noqa: E402
from constants.keys import StateKeys  # noqa: E402
from core.errors import OperationCancelledError, SubmissionError  # noqa: E402
from integrations.agents import AgentsApi  # noqa: E402
from integrations.api_client import build_client, cookie_snapshot  # noqa: E402
from state import ensure_state  # noqa: E402
from state.ensure_state import get_draft, store_draft  # noqa: E402
from ui.gate_view import navigate_to, render_gate_failure, run_gate  # noqa: E402
from ui.wizard_view import render_wizard  # noqa: E402
from utils.logging_context import configure_logging, set_flow, set_session_id  # noqa: E402
from utils.telemetry import setup_tracing  # noqa: E402
from wizard.session import DraftSession  # noqa: E402
from wizard.step_registry import WizardFlow, get_schema, resolve_flow  # noqa: E402

APP_VERSION = "1.0.0"
FLOW_TITLES: Final[dict[WizardFlow, str]] = {
    WizardFlow.STUDENT_REGISTER: "Student registration",
    WizardFlow.AGENT_CREATE: "Create agent",
    WizardFlow.AGENT_EDIT: "Edit agent",
}

logger = logging.getLogger(__name__)

configure_logging()
setup_tracing()

st.set_page_config(
    page_title="Placement Onboarding",
    page_icon="🎓",
    layout="centered",
)

ensure_state()
st.session_state.setdefault("app_version", APP_VERSION)


def _query_value(name: str) -> str | None:
    value = st.query_params.get(name)
    return value.strip() if isinstance(value, str) and value.strip() else None


def render_not_found() -> None:
    st.title("Page not found")
    st.write("The link you followed is invalid or has expired.")


def render_confirmation() -> None:
    st.title("Registration received")
    outcome = st.session_state.get(StateKeys.LAST_OUTCOME)
    message = getattr(outcome, "message", None)
    st.success(message or "Thank you! Your registration was submitted successfully.")


def render_agents_landing() -> None:
    st.title("Agents")
    outcome = st.session_state.get(StateKeys.LAST_OUTCOME)
    confirmation = getattr(outcome, "confirmation", None)
    if confirmation is not None:
        st.success(confirmation.message or "Agent saved successfully.")
        for slot, message in confirmation.document_errors.items():
            st.warning(f"{slot}: {message}")
    if st.button("Create another agent"):
        st.query_params.clear()
        st.query_params["flow"] = WizardFlow.AGENT_CREATE.value
        st.rerun()


async def _load_agent(agent_id: str, cookies: dict[str, str]) -> tuple[dict[str, object], dict[str, str]]:
    async with build_client(cookies=cookies) as client:
        record = await AgentsApi(client).fetch(agent_id)
        return record, cookie_snapshot(client)


def obtain_draft(flow: WizardFlow, *, record_id: str | None = None, referral: str | None = None) -> DraftSession | None:
    """Return the live draft for ``flow`` or create one."""

    draft = get_draft(flow.value, record_id, referral=referral)
    if draft is not None:
        return draft
    schema = get_schema(flow)
    if flow is WizardFlow.AGENT_EDIT and record_id:
        try:
            with st.spinner("Loading agent..."):
                record, cookies = asyncio.run(_load_agent(record_id, st.session_state[StateKeys.API_COOKIES]))
        except SubmissionError as exc:
            st.error(exc.message)
            return None
        except OperationCancelledError:
            return None
        st.session_state[StateKeys.API_COOKIES] = cookies
        draft = DraftSession.from_record(schema, record, record_id=record_id)
    elif referral:
        draft = DraftSession(schema, values={"referred_by": referral})
    else:
        draft = DraftSession(schema)
    store_draft(draft, record_id=record_id)
    return draft


page = _query_value("page")
if page == config.NOT_FOUND_PATH.strip("/"):
    render_not_found()
    st.stop()
if page == config.CONFIRMATION_PATH.strip("/"):
    render_confirmation()
    st.stop()
if page == config.AGENTS_PATH.strip("/"):
    render_agents_landing()
    st.stop()

flow = resolve_flow(_query_value("flow"))
set_flow(flow.value)
st.title(FLOW_TITLES[flow])

draft: DraftSession | None
if flow is WizardFlow.STUDENT_REGISTER:
    gate_result = run_gate(st.query_params.to_dict())
    if gate_result is None:
        st.info("Referral check was interrupted. Refresh to try again.")
        st.stop()
    if not gate_result.is_valid:
        render_gate_failure(gate_result)
        st.stop()
    draft = obtain_draft(flow, referral=gate_result.token)
else:
    agent_id = _query_value("id")
    if flow is WizardFlow.AGENT_EDIT and not agent_id:
        st.error("Missing agent id.")
        st.stop()
    draft = obtain_draft(flow, record_id=agent_id)

if draft is None:
    st.stop()

set_session_id(draft.session_id)
outcome = render_wizard(draft)
if outcome is not None and outcome.succeeded and outcome.redirect_to:
    navigate_to(outcome.redirect_to)
