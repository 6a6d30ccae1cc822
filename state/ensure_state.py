"""Helpers for initializing Streamlit session state."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable

import streamlit as st

from constants.keys import StateKeys
from wizard.session import DraftSession

logger = logging.getLogger(__name__)


_DEFAULT_STATE_FACTORIES: Mapping[str, Callable[[], Any]] = MappingProxyType(
    {
        StateKeys.GATE_RESULT: lambda: None,
        StateKeys.API_COOKIES: dict,
        StateKeys.DRAFTS: dict,
        StateKeys.LAST_OUTCOME: lambda: None,
        StateKeys.OTP_SENT_TO: dict,
    }
)

_MAPPING_KEYS: tuple[str, ...] = (StateKeys.API_COOKIES, StateKeys.DRAFTS, StateKeys.OTP_SENT_TO)


def ensure_state() -> None:
    """Initialize ``st.session_state`` with required keys.

    Existing keys are preserved; mapping slots holding something else are
    reset so a stale rerun cannot break the wizard.
    """

    for key, factory in _DEFAULT_STATE_FACTORIES.items():
        if key not in st.session_state:
            st.session_state[key] = factory()
    for key in _MAPPING_KEYS:
        if not isinstance(st.session_state.get(key), dict):
            logger.warning("Resetting malformed session state entry '%s'", key)
            st.session_state[key] = {}


def reset_state() -> None:
    """Dispose every draft and restore the defaults."""

    drafts = st.session_state.get(StateKeys.DRAFTS)
    if isinstance(drafts, dict):
        for draft in drafts.values():
            if isinstance(draft, DraftSession):
                draft.dispose("session reset")
    for key, factory in _DEFAULT_STATE_FACTORIES.items():
        st.session_state[key] = factory()


def draft_key(flow: str, record_id: str | None = None) -> str:
    return f"{flow}:{record_id or 'new'}"


def get_draft(flow: str, record_id: str | None = None, *, referral: str | None = None) -> DraftSession | None:
    """Return the live draft for ``flow``.

    With ``referral`` set, a draft started under another referral is disposed
    and ``None`` is returned so the caller starts over for the new referrer.
    """

    draft = st.session_state[StateKeys.DRAFTS].get(draft_key(flow, record_id))
    if not isinstance(draft, DraftSession) or draft.disposed:
        return None
    if referral is not None and draft.fields.get("referred_by") != referral:
        logger.info("Discarding draft %s started under a different referral", draft.session_id)
        discard_draft(draft, reason="referral changed", record_id=record_id)
        return None
    return draft


def store_draft(draft: DraftSession, *, record_id: str | None = None) -> None:
    key = draft_key(str(draft.schema.flow), record_id or draft.record_id)
    st.session_state[StateKeys.DRAFTS][key] = draft


def discard_draft(draft: DraftSession, *, reason: str, record_id: str | None = None) -> None:
    """Dispose ``draft`` and forget it; a later visit starts a fresh one."""

    draft.dispose(reason)
    drafts = st.session_state[StateKeys.DRAFTS]
    for key in [key for key, value in drafts.items() if value is draft]:
        del drafts[key]
    if record_id:
        drafts.pop(draft_key(str(draft.schema.flow), record_id), None)


__all__ = ["discard_draft", "draft_key", "ensure_state", "get_draft", "reset_state", "store_draft"]
