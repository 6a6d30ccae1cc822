# ui/wizard_view.py
from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Mapping
from typing import Any

import streamlit as st

import config
from constants.keys import StateKeys, UIKeys
from core.errors import (
    AttachmentError,
    OperationCancelledError,
    SubmissionError,
    SubmissionInProgressError,
    VerificationCodeError,
)
from core.schema import FieldKind, FieldSpec
from integrations.api_client import build_client, cookie_snapshot
from integrations.email_verification import EmailVerifier
from integrations.submission import agent_submission_client, client_for_flow
from state.ensure_state import discard_draft
from utils.logging_context import draft_context
from wizard.documents import PHOTO_SLOTS, SLOT_LABELS, DocumentSlot, build_attachment
from wizard.engine import StepProgress, SubmissionOutcome, WizardEngine
from wizard.session import DraftSession, SubmissionState
from wizard.step_registry import WizardFlow

logger = logging.getLogger(__name__)

_CSS_FLAG_KEY = "_onboarding_stepper_css_injected"

_KEYCAP = {
    1: "1️⃣",
    2: "2️⃣",
    3: "3️⃣",
    4: "4️⃣",
    5: "5️⃣",
    6: "6️⃣",
}

_AGENT_FLOWS = frozenset({WizardFlow.AGENT_CREATE, WizardFlow.AGENT_EDIT})


def _esc(s: str) -> str:
    return html.escape(s, quote=True)


def inject_stepper_css() -> None:
    if st.session_state.get(_CSS_FLAG_KEY):
        return
    st.markdown(
        """
<style>
.wiz-stepper{ display:flex; gap:.5rem; flex-wrap:wrap; align-items:center; margin:.25rem 0 1rem; }
.wiz-step{
  padding:.28rem .62rem;
  border-radius:999px;
  border:1px solid rgba(128,128,128,.35);
  opacity:.55;
  white-space:nowrap;
}
.wiz-step.active{ opacity:1; box-shadow: 0 1px 6px rgba(0,0,0,.08); }
.wiz-step.done{ opacity:.85; }
.wiz-step.error{ border-color: rgba(220,38,38,.65); }
</style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state[_CSS_FLAG_KEY] = True


def render_stepper(progress: list[StepProgress]) -> None:
    current = next((item.index for item in progress if item.is_current), 1)
    parts = ['<div class="wiz-stepper">']
    for item in progress:
        cls = ["wiz-step"]
        if item.is_current:
            cls.append("active")
        elif item.index < current:
            cls.append("done")
        if item.error_fields:
            cls.append("error")
        keycap = _KEYCAP.get(item.index, f"{item.index}.")
        parts.append(f'<span class="{" ".join(cls)}">{keycap}&nbsp;{_esc(item.title)}</span>')
    parts.append("</div>")
    st.markdown("\n".join(parts), unsafe_allow_html=True)
    st.progress(int(100 * (current - 1) / max(1, len(progress) - 1)) if len(progress) > 1 else 100)


def _widget_key(session: DraftSession, spec: FieldSpec) -> str:
    return f"{UIKeys.FIELD_PREFIX}{session.session_id}.{spec.name}"


def _render_field(session: DraftSession, spec: FieldSpec) -> Any:
    """Render one input widget and return the value it currently holds."""

    value = session.fields.get(spec.name)
    key = _widget_key(session, spec)
    label = spec.label if not spec.rule.required else f"{spec.label} *"
    if spec.kind is FieldKind.MULTI_CHOICE:
        return st.multiselect(label, options=list(spec.options), default=sorted(value or ()), key=key, help=spec.help)
    if spec.kind is FieldKind.CHOICE:
        options = ["", *spec.options]
        index = options.index(value) if value in options else 0
        return st.selectbox(label, options=options, index=index, key=key, help=spec.help)
    if spec.kind is FieldKind.TEXTAREA:
        return st.text_area(label, value=str(value or ""), key=key, help=spec.help)
    if spec.kind is FieldKind.PASSWORD:
        return st.text_input(label, value=str(value or ""), type="password", key=key, help=spec.help)
    placeholder = "YYYY-MM-DD" if spec.kind is FieldKind.DATE else None
    return st.text_input(label, value=str(value or ""), key=key, help=spec.help, placeholder=placeholder)


def _field_changed(spec: FieldSpec, before: Any, after: Any) -> bool:
    if spec.is_collection:
        return frozenset(before or ()) != frozenset(after or ())
    return str(before or "") != str(after or "")


def _render_documents(session: DraftSession) -> dict[DocumentSlot, Any]:
    """Render upload slots; returns the uploaded files keyed by slot."""

    st.markdown("**Documents**")
    uploads: dict[DocumentSlot, Any] = {}
    for slot in DocumentSlot:
        types = ["jpg", "jpeg", "png"] if slot in PHOTO_SLOTS else ["pdf"]
        label = SLOT_LABELS[slot]
        if slot.value in session.existing_documents:
            label = f"{label} (replace existing)"
        uploads[slot] = st.file_uploader(label, type=types, key=f"{UIKeys.UPLOAD_PREFIX}{session.session_id}.{slot.value}")
    return uploads


def _apply_uploads(session: DraftSession, uploads: Mapping[DocumentSlot, Any]) -> bool:
    ok = True
    for slot, upload in uploads.items():
        if upload is None:
            continue
        try:
            session.attach(build_attachment(slot, upload.name, upload.type, upload.getvalue()))
        except AttachmentError as exc:
            st.error(f"{SLOT_LABELS[slot]}: {exc}")
            ok = False
    return ok


async def _submit(engine: WizardEngine, cookies: Mapping[str, str]) -> tuple[SubmissionOutcome, dict[str, str]]:
    async with build_client(cookies=cookies) as client:
        engine_with_client = WizardEngine(engine.session, client_for_flow(engine.flow, client))
        outcome = await engine_with_client.submit()
        return outcome, cookie_snapshot(client)


async def _remove_document(record_id: str, slot: str, cookies: Mapping[str, str]) -> dict[str, str]:
    async with build_client(cookies=cookies) as client:
        await agent_submission_client(client).remove_document(record_id, slot)
        return cookie_snapshot(client)


def _render_existing_documents(session: DraftSession) -> None:
    if not session.existing_documents or not session.record_id:
        return
    with st.expander("Uploaded documents", expanded=False):
        for slot, path in sorted(session.existing_documents.items()):
            left, right = st.columns([4, 1])
            left.write(f"{slot}: {path}")
            if right.button("Remove", key=f"{UIKeys.REMOVE_DOCUMENT_PREFIX}{session.session_id}.{slot}"):
                try:
                    cookies = asyncio.run(
                        _remove_document(session.record_id, slot, st.session_state[StateKeys.API_COOKIES])
                    )
                except (SubmissionError, AttachmentError) as exc:
                    st.error(str(exc))
                except OperationCancelledError:
                    logger.info("Document removal discarded after the draft was closed")
                else:
                    st.session_state[StateKeys.API_COOKIES] = cookies
                    session.existing_documents.pop(slot, None)
                    st.rerun()


async def _request_code(email: str, cookies: Mapping[str, str], *, resend: bool) -> tuple[int | None, dict[str, str]]:
    async with build_client(cookies=cookies) as client:
        verifier = EmailVerifier(client)
        expires_in = await (verifier.resend_code(email) if resend else verifier.send_code(email))
        return expires_in, cookie_snapshot(client)


async def _verify_code(email: str, code: str, cookies: Mapping[str, str]) -> dict[str, str]:
    async with build_client(cookies=cookies) as client:
        await EmailVerifier(client).verify(email, code)
        return cookie_snapshot(client)


def _needs_email_panel(session: DraftSession) -> bool:
    name = session.schema.verified_email_field
    return (
        config.EMAIL_VERIFICATION_ENABLED
        and name is not None
        and session.schema.step_for_field(name) == session.step_index
    )


def _render_email_verification(session: DraftSession) -> None:
    email = str(session.fields.get(session.schema.verified_email_field) or "").strip()
    if session.email_verified:
        st.success(f"Email verified: {email}")
        return
    if not email:
        st.caption("Enter your email and press Next to receive a verification code.")
        return
    sent_to: dict[str, str] = st.session_state[StateKeys.OTP_SENT_TO]
    already_sent = sent_to.get(session.session_id) == email
    with st.container(border=True):
        st.write(f"Verify **{email}** before continuing.")
        send_col, code_col, verify_col = st.columns([1, 2, 1])
        send_label = "Resend code" if already_sent else "Send code"
        if send_col.button(send_label, key=f"{UIKeys.OTP_SEND_PREFIX}{session.session_id}"):
            try:
                expires_in, cookies = asyncio.run(
                    _request_code(email, st.session_state[StateKeys.API_COOKIES], resend=already_sent)
                )
            except SubmissionError as exc:
                st.error(str(exc))
            else:
                st.session_state[StateKeys.API_COOKIES] = cookies
                sent_to[session.session_id] = email
                already_sent = True
                minutes = f" It expires in {expires_in // 60} minutes." if expires_in else ""
                st.info(f"Code sent to {email}.{minutes}")
        code = code_col.text_input(
            "Verification code",
            max_chars=6,
            key=f"{UIKeys.OTP_CODE_PREFIX}{session.session_id}",
            disabled=not already_sent,
        )
        verify_key = f"{UIKeys.OTP_VERIFY_PREFIX}{session.session_id}"
        if verify_col.button("Verify", key=verify_key, disabled=not already_sent):
            try:
                cookies = asyncio.run(_verify_code(email, code or "", st.session_state[StateKeys.API_COOKIES]))
            except (SubmissionError, VerificationCodeError) as exc:
                st.error(str(exc))
            else:
                st.session_state[StateKeys.API_COOKIES] = cookies
                sent_to.pop(session.session_id, None)
                session.mark_email_verified(email)
                st.rerun()


def render_wizard(session: DraftSession) -> SubmissionOutcome | None:
    """Render the current step of ``session`` and handle its form actions."""

    engine = WizardEngine(session)
    inject_stepper_css()
    render_stepper(engine.progress())
    step = session.current_step
    is_agent_flow = session.schema.flow in _AGENT_FLOWS

    with draft_context(session):
        st.subheader(step.title)
        if step.description:
            st.caption(step.description)
        if session.submission_state is SubmissionState.FAILED and session.submission_message:
            st.error(session.submission_message)
        if is_agent_flow and session.is_terminal_step:
            _render_existing_documents(session)
        if _needs_email_panel(session):
            _render_email_verification(session)

        with st.form(key=f"{UIKeys.STEP_FORM}.{session.session_id}.{step.key}"):
            values: dict[str, Any] = {}
            for spec in step.fields:
                if spec.kind is FieldKind.HIDDEN:
                    continue
                values[spec.name] = _render_field(session, spec)
                message = session.visible_errors.get(spec.name)
                if message:
                    st.caption(f":red[{message}]")
            uploads = _render_documents(session) if is_agent_flow and session.is_terminal_step else {}

            back_col, next_col = st.columns(2)
            back = back_col.form_submit_button("Back", disabled=session.step_index == 1)
            if session.is_terminal_step:
                forward = next_col.form_submit_button(
                    "Submit", type="primary", disabled=session.submission_state is SubmissionState.SUBMITTING
                )
            else:
                forward = next_col.form_submit_button("Next", type="primary")

        if not (back or forward):
            return None

        for name, value in values.items():
            spec = session.schema.field(name)
            if _field_changed(spec, session.fields.get(name), value):
                session.set_field(name, value)
                session.set_touched(name)

        if back:
            engine.back()
            st.rerun()
        if not session.is_terminal_step:
            if engine.next():
                st.rerun()
            return None

        if not _apply_uploads(session, uploads):
            return None
        try:
            with st.spinner("Submitting..."):
                outcome, cookies = asyncio.run(_submit(engine, st.session_state[StateKeys.API_COOKIES]))
        except SubmissionInProgressError:
            st.info("Your submission is already being processed.")
            return None
        except OperationCancelledError:
            logger.info("Submission discarded after the draft was closed")
            return None
        st.session_state[StateKeys.API_COOKIES] = cookies
        st.session_state[StateKeys.LAST_OUTCOME] = outcome
        if outcome.succeeded:
            discard_draft(session, reason="submitted")
        elif outcome.first_invalid_step is not None and outcome.first_invalid_step < session.step_index:
            st.warning(f"Please review step {outcome.first_invalid_step} before submitting.")
        return outcome


__all__ = ["inject_stepper_css", "render_stepper", "render_wizard"]
