"""Tests for Streamlit session state helpers."""

from __future__ import annotations

import streamlit as st

from constants.keys import StateKeys
from state.ensure_state import discard_draft, ensure_state, get_draft, reset_state, store_draft
from wizard.session import DraftSession
from wizard.step_registry import AGENT_CREATE_SCHEMA, AGENT_EDIT_SCHEMA, STUDENT_REGISTER_SCHEMA


def test_ensure_state_sets_defaults_and_repairs_mappings() -> None:
    st.session_state[StateKeys.DRAFTS] = "corrupted"

    ensure_state()

    assert st.session_state[StateKeys.DRAFTS] == {}
    assert st.session_state[StateKeys.API_COOKIES] == {}
    assert st.session_state[StateKeys.GATE_RESULT] is None


def test_ensure_state_preserves_existing_values() -> None:
    st.session_state[StateKeys.API_COOKIES] = {"student_referral": "abc"}

    ensure_state()

    assert st.session_state[StateKeys.API_COOKIES] == {"student_referral": "abc"}


def test_drafts_are_keyed_by_flow_and_record() -> None:
    ensure_state()
    create = DraftSession(AGENT_CREATE_SCHEMA)
    edit = DraftSession(AGENT_EDIT_SCHEMA, record_id="a1")
    store_draft(create)
    store_draft(edit)

    assert get_draft("agent-create") is create
    assert get_draft("agent-edit", "a1") is edit
    assert get_draft("agent-edit", "a2") is None


def test_discarded_draft_is_disposed_and_forgotten() -> None:
    ensure_state()
    draft = DraftSession(AGENT_CREATE_SCHEMA)
    store_draft(draft)

    discard_draft(draft, reason="submitted")

    assert draft.disposed
    assert get_draft("agent-create") is None


def test_reset_state_disposes_drafts() -> None:
    ensure_state()
    draft = DraftSession(AGENT_CREATE_SCHEMA)
    store_draft(draft)

    reset_state()

    assert draft.disposed
    assert st.session_state[StateKeys.DRAFTS] == {}


def test_student_draft_follows_the_current_referral() -> None:
    ensure_state()
    first_ref = "a" * 24
    second_ref = "b" * 24
    draft = DraftSession(STUDENT_REGISTER_SCHEMA, values={"referred_by": first_ref})
    store_draft(draft)

    assert get_draft("student-register", referral=first_ref) is draft
    assert get_draft("student-register", referral=second_ref) is None
    assert draft.disposed
    assert st.session_state[StateKeys.DRAFTS] == {}
