"""Tests for the shared wizard draft session."""

from __future__ import annotations

from datetime import date

import pytest

from core.errors import SubmissionInProgressError, UnknownFieldError, WizardNavigationError
from wizard.documents import DocumentSlot, build_attachment
from wizard.session import DraftSession, SubmissionState
from wizard.step_registry import AGENT_CREATE_SCHEMA, AGENT_EDIT_SCHEMA


def test_new_session_starts_on_step_one_with_defaults(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    assert session.step_index == 1
    assert session.submission_state is SubmissionState.IDLE
    assert session.fields["country"] == "India"
    assert session.fields["terms_accepted"] is True
    assert session.fields["specialization"] == frozenset()
    assert session.touched == frozenset()
    assert "first_name" in session.errors
    assert "company_name" not in session.errors


def test_errors_are_hidden_until_touched(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    assert session.visible_errors == {}

    session.set_touched("email")

    assert session.visible_errors == {"email": "Email is required"}


def test_set_field_revalidates(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    session.set_field("email", "not-an-email")
    assert session.errors["email"] == "Invalid email format"

    session.set_field("email", "asha@example.com")
    assert "email" not in session.errors


def test_unknown_field_raises(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    with pytest.raises(UnknownFieldError):
        session.set_field("companyName", "camelCase is a wire name")
    with pytest.raises(UnknownFieldError):
        session.set_touched("nope")


def test_toggle_option_updates_multi_select(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    session.toggle_option("specialization", "Visa Assistance", True)
    session.toggle_option("specialization", "MBBS Admissions", True)
    session.toggle_option("specialization", "Visa Assistance", False)

    assert session.fields["specialization"] == frozenset({"MBBS Admissions"})
    with pytest.raises(TypeError):
        session.toggle_option("first_name", "x", True)


def test_go_to_step_rejects_out_of_range(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    with pytest.raises(WizardNavigationError):
        session.go_to_step(0)
    with pytest.raises(WizardNavigationError):
        session.go_to_step(5)


def test_step_change_widens_error_scope(today: date, agent_values: dict[str, object]) -> None:
    step_one = {name: agent_values[name] for name in AGENT_CREATE_SCHEMA.step(1).field_names if name in agent_values}
    session = DraftSession(AGENT_CREATE_SCHEMA, values=step_one, today=today)
    assert session.errors == {}

    session.go_to_step(2)

    assert session.errors["company_name"] == "Company name is required"


def test_snapshot_is_detached_from_later_edits(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    snapshot = session.snapshot()

    session.set_field("first_name", "Asha")

    assert snapshot.fields["first_name"] == ""
    assert session.fields["first_name"] == "Asha"
    with pytest.raises(TypeError):
        snapshot.fields["first_name"] = "x"  # type: ignore[index]


def test_payload_uses_wire_names(today: date, agent_values: dict[str, object]) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, values={**agent_values, "company_name": "  Verma Overseas "}, today=today)

    payload = session.payload()

    assert payload["companyName"] == "Verma Overseas"
    assert payload["establishedYear"] == 2010
    assert payload["specialization"] == ["MBBS Admissions", "Visa Assistance"]
    assert payload["termsAccepted"] is True
    assert "company_name" not in payload


def test_blank_password_is_left_out_of_payload(today: date) -> None:
    session = DraftSession(AGENT_EDIT_SCHEMA, today=today)
    assert "newPassword" not in session.payload()

    session.set_field("new_password", "s3cret-pass")
    assert session.payload()["newPassword"] == "s3cret-pass"


def test_from_record_maps_aliases_and_normalizes_arrays(today: date) -> None:
    record = {
        "_id": "665f1c2ab7e4a90012345678",
        "firstName": "Asha",
        "companyName": "Verma Overseas",
        "establishedYear": 2010,
        "specialization": '["Visa Assistance", "MBBS Admissions"]',
        "servicesOffered": "Visa Processing, Career Counseling",
        "newPassword": "never-prefilled",
        "unknownKey": "ignored",
        "documents": {"idProof": "/uploads/agents/id.pdf", "agentPhoto": None},
    }

    session = DraftSession.from_record(AGENT_EDIT_SCHEMA, record, today=today)

    assert session.record_id == "665f1c2ab7e4a90012345678"
    assert session.fields["first_name"] == "Asha"
    assert session.fields["established_year"] == "2010"
    assert session.fields["specialization"] == frozenset({"Visa Assistance", "MBBS Admissions"})
    assert session.fields["services_offered"] == frozenset({"Visa Processing", "Career Counseling"})
    assert session.fields["new_password"] == ""
    assert session.existing_documents == {"idProof": "/uploads/agents/id.pdf"}


def test_attachments_are_kept_per_slot(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    attachment = build_attachment("idProof", "id.pdf", "application/pdf", b"%PDF-1.4")

    session.attach(attachment)
    assert session.attachments[DocumentSlot.ID_PROOF] is attachment

    assert session.detach("idProof") is attachment
    assert session.detach(DocumentSlot.ID_PROOF) is None


def test_submission_lifecycle(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    session.begin_submission()
    assert session.submission_state is SubmissionState.SUBMITTING
    with pytest.raises(SubmissionInProgressError):
        session.begin_submission()

    session.fail_submission("Email already exists")
    assert session.submission_state is SubmissionState.FAILED
    assert session.submission_message == "Email already exists"

    session.begin_submission()
    session.complete_submission(record_id="a1", message="Agent created")
    assert session.submission_state is SubmissionState.SUCCEEDED
    assert session.record_id == "a1"


def test_dispose_cancels_token(today: date) -> None:
    session = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    session.dispose("navigated away")
    session.dispose("second call is a no-op")

    assert session.disposed
    assert session.cancel_token.cancelled
    assert session.cancel_token.reason == "navigated away"


def test_request_id_is_stable_per_session(today: date) -> None:
    first = DraftSession(AGENT_CREATE_SCHEMA, today=today)
    second = DraftSession(AGENT_CREATE_SCHEMA, today=today)

    request_id = first.request_id
    first.begin_submission()
    first.fail_submission("Could not reach the server.")

    assert first.request_id == request_id
    assert first.request_id != second.request_id
    assert first.session_id != second.session_id
