"""Streamlit rendering of the referral gate."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping

import streamlit as st

from constants.keys import StateKeys
from core.errors import GateBusyError, OperationCancelledError
from integrations.api_client import build_client, cookie_snapshot
from integrations.referral import GateResult, ReferralGate, extract_token

logger = logging.getLogger(__name__)


async def check_referral(query_params: Mapping[str, object], cookies: Mapping[str, str]) -> tuple[GateResult, dict[str, str]]:
    """Run one gate check and return the result with the updated cookie jar."""

    async with build_client(cookies=cookies) as client:
        gate = ReferralGate(client)
        result = await gate.check(query_params)
        return result, cookie_snapshot(client)


def run_gate(query_params: Mapping[str, object]) -> GateResult | None:
    """Return the gate result for the current entry URL.

    A resolved result is cached per token so Streamlit reruns do not hit the
    backend again. ``None`` means the check was interrupted and should be
    retried on the next rerun.
    """

    token = extract_token(query_params)
    cached = st.session_state.get(StateKeys.GATE_RESULT)
    if isinstance(cached, GateResult) and cached.token == token:
        return cached

    with st.spinner("Validating referral link..."):
        try:
            result, cookies = asyncio.run(check_referral(query_params, st.session_state[StateKeys.API_COOKIES]))
        except (GateBusyError, OperationCancelledError) as exc:
            logger.info("Referral check interrupted: %s", exc)
            return None
    st.session_state[StateKeys.API_COOKIES] = cookies
    st.session_state[StateKeys.GATE_RESULT] = result
    return result


def navigate_to(path: str) -> None:
    """Route to one of the app's internal pages via the ``page`` query param."""

    st.query_params.clear()
    st.query_params["page"] = path.strip("/")
    st.rerun()


def render_gate_failure(result: GateResult) -> None:
    st.error(result.message or "Invalid referral link")
    if result.redirect_delay:
        time.sleep(result.redirect_delay)
    navigate_to(result.redirect_to or "/404")


__all__ = ["check_referral", "navigate_to", "render_gate_failure", "run_gate"]
