"""Draft state shared by every wizard flow.

A :class:`DraftSession` is the only place wizard values live. Values change
through :meth:`DraftSession.set_field` (always allowed, always re-validated)
and visibility through :meth:`DraftSession.set_touched`; step changes go
through :meth:`DraftSession.go_to_step`, which the wizard engine drives. The
error map therefore always matches the values and step that produced it.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from types import MappingProxyType
from typing import Any

import config
from core.errors import EMAIL_UNVERIFIED_MESSAGE, SubmissionInProgressError, WizardNavigationError
from core.schema import FieldKind, FieldSpec, WizardSchema, WizardStep
from core.validation import validate
from utils.cancellation import CancellationToken
from wizard.documents import Attachment, DocumentSlot, resolve_slot

logger = logging.getLogger(__name__)


class SubmissionState(StrEnum):
    """Lifecycle of the terminal submission."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable copy of the observable session state."""

    step_index: int
    fields: Mapping[str, Any]
    touched: frozenset[str]
    errors: Mapping[str, str]
    submission_state: SubmissionState


def _coerce_collection(value: object) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return frozenset()
        if candidate.startswith("["):
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return frozenset(str(item).strip() for item in parsed if str(item).strip())
        return frozenset(part.strip() for part in candidate.split(",") if part.strip())
    if isinstance(value, Iterable):
        return frozenset(str(item).strip() for item in value if str(item).strip())
    return frozenset({str(value)})


def _coerce_value(spec: FieldSpec, value: object) -> Any:
    if spec.is_collection:
        return _coerce_collection(value)
    if value is None:
        return spec.initial_value()
    return value


def _normalize_email(value: object) -> str:
    return str(value or "").strip().lower()


def _wire_value(spec: FieldSpec, value: Any) -> Any:
    if spec.is_collection:
        return sorted(value)
    if isinstance(value, str):
        cleaned = value.strip()
        if spec.kind in {FieldKind.YEAR, FieldKind.NUMBER} and cleaned.isdigit():
            return int(cleaned)
        return cleaned
    return value


class DraftSession:
    """Mutable wizard draft: values, touched set, error map and step cursor."""

    def __init__(
        self,
        schema: WizardSchema,
        *,
        values: Mapping[str, object] | None = None,
        record_id: str | None = None,
        session_id: str | None = None,
        today: date | None = None,
    ) -> None:
        self.schema = schema
        self.session_id = session_id or uuid.uuid4().hex
        # Stable for the whole draft so a resubmission reuses it.
        self.request_id = uuid.uuid4().hex
        self.record_id = record_id
        self.cancel_token = CancellationToken()
        self.submission_message: str | None = None
        self.existing_documents: dict[str, str] = {}
        self.verified_email: str | None = None
        self._today = today
        self._fields: dict[str, Any] = schema.defaults()
        self._touched: set[str] = set()
        self._errors: dict[str, str] = {}
        self._step_index = 1
        self._submission_state = SubmissionState.IDLE
        self._attachments: dict[DocumentSlot, Attachment] = {}
        self._disposed = False
        for name, value in (values or {}).items():
            spec = schema.field(name)
            self._fields[name] = _coerce_value(spec, value)
        self._revalidate()

    def __repr__(self) -> str:
        return (
            f"DraftSession(flow={self.schema.flow!r}, step={self._step_index}/{self.total_steps}, "
            f"state={self._submission_state.value!r})"
        )

    @classmethod
    def from_record(
        cls,
        schema: WizardSchema,
        record: Mapping[str, object],
        *,
        record_id: str | None = None,
        today: date | None = None,
    ) -> DraftSession:
        """Build a draft pre-filled from an API record keyed by wire names.

        Unknown keys are ignored; multi-select values that arrive as JSON
        strings or comma separated text are normalised to sets.
        """

        values: dict[str, object] = {}
        for key, value in record.items():
            spec = schema.field_for_alias(key)
            if spec is None or value is None:
                continue
            if spec.kind is FieldKind.PASSWORD:
                continue
            if spec.kind in {FieldKind.YEAR, FieldKind.NUMBER} and isinstance(value, int):
                value = str(value)
            values[spec.name] = value
        resolved_id = record_id or record.get("_id") or record.get("id")
        session = cls(
            schema,
            values=values,
            record_id=str(resolved_id) if resolved_id else None,
            today=today,
        )
        documents = record.get("documents")
        if isinstance(documents, Mapping):
            session.existing_documents = {
                str(slot): str(path) for slot, path in documents.items() if isinstance(path, str) and path
            }
        return session

    # -- read access -------------------------------------------------------

    @property
    def step_index(self) -> int:
        return self._step_index

    @property
    def total_steps(self) -> int:
        return self.schema.total_steps

    @property
    def current_step(self) -> WizardStep:
        return self.schema.step(self._step_index)

    @property
    def is_terminal_step(self) -> bool:
        return self._step_index == self.total_steps

    @property
    def fields(self) -> Mapping[str, Any]:
        return MappingProxyType(self._fields)

    @property
    def touched(self) -> frozenset[str]:
        return frozenset(self._touched)

    @property
    def errors(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self._errors))

    @property
    def visible_errors(self) -> dict[str, str]:
        return {name: message for name, message in self._errors.items() if name in self._touched}

    @property
    def submission_state(self) -> SubmissionState:
        return self._submission_state

    @property
    def attachments(self) -> Mapping[DocumentSlot, Attachment]:
        return MappingProxyType(self._attachments)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def email_verified(self) -> bool:
        """Whether the current email matches the last one confirmed by code."""

        name = self.schema.verified_email_field
        if name is None:
            return True
        current = _normalize_email(self._fields.get(name))
        return bool(current) and current == self.verified_email

    def value(self, name: str) -> Any:
        self.schema.field(name)
        return self._fields.get(name)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            step_index=self._step_index,
            fields=MappingProxyType(dict(self._fields)),
            touched=frozenset(self._touched),
            errors=MappingProxyType(dict(self._errors)),
            submission_state=self._submission_state,
        )

    def payload(self) -> dict[str, Any]:
        """Flatten the draft to the REST field names for submission."""

        body: dict[str, Any] = {}
        for name, spec in self.schema.specs().items():
            value = self._fields.get(name)
            if spec.kind is FieldKind.PASSWORD and not (isinstance(value, str) and value.strip()):
                continue
            body[spec.wire_name] = _wire_value(spec, value)
        return body

    # -- mutations ---------------------------------------------------------

    def set_field(self, name: str, value: object) -> None:
        """Store ``value`` for ``name`` and re-validate the draft."""

        spec = self.schema.field(name)
        self._fields[name] = _coerce_value(spec, value)
        self._revalidate()

    def mark_email_verified(self, email: str) -> None:
        """Record ``email`` as confirmed; editing the field afterwards revokes it."""

        self.verified_email = _normalize_email(email) or None
        self._revalidate()

    def toggle_option(self, name: str, option: str, selected: bool) -> None:
        """Add or remove ``option`` from a multi-select field."""

        spec = self.schema.field(name)
        if not spec.is_collection:
            raise TypeError(f"Field '{name}' is not a multi-select field")
        current = set(self._fields.get(name) or ())
        if selected:
            current.add(option)
        else:
            current.discard(option)
        self.set_field(name, current)

    def set_touched(self, name: str) -> None:
        """Mark ``name`` as interacted with so its error becomes visible."""

        self.schema.field(name)
        self._touched.add(name)

    def touch_fields(self, names: Iterable[str]) -> None:
        for name in names:
            self.set_touched(name)

    def go_to_step(self, step_index: int) -> None:
        """Move the step cursor; callers decide whether the move is allowed."""

        if not 1 <= step_index <= self.total_steps:
            raise WizardNavigationError(f"Step {step_index} is outside 1..{self.total_steps}")
        if step_index == self._step_index:
            return
        logger.debug("Draft %s moves from step %s to %s", self.session_id, self._step_index, step_index)
        self._step_index = step_index
        self._revalidate()

    def attach(self, attachment: Attachment) -> None:
        self._attachments[attachment.slot] = attachment

    def detach(self, slot: DocumentSlot | str) -> Attachment | None:
        return self._attachments.pop(resolve_slot(slot), None)

    # -- submission lifecycle ---------------------------------------------

    def ensure_not_submitting(self) -> None:
        if self._submission_state is SubmissionState.SUBMITTING:
            raise SubmissionInProgressError(f"Draft {self.session_id} is already submitting")

    def raise_if_disposed(self) -> None:
        self.cancel_token.raise_if_cancelled()

    def begin_submission(self) -> None:
        self.ensure_not_submitting()
        self._submission_state = SubmissionState.SUBMITTING
        self.submission_message = None

    def complete_submission(self, *, record_id: str | None = None, message: str | None = None) -> None:
        self._submission_state = SubmissionState.SUCCEEDED
        self.submission_message = message
        if record_id:
            self.record_id = record_id

    def fail_submission(self, message: str | None) -> None:
        self._submission_state = SubmissionState.FAILED
        self.submission_message = message

    def abandon_submission(self) -> None:
        """Return to ``IDLE`` after a cancelled request."""

        if self._submission_state is SubmissionState.SUBMITTING:
            self._submission_state = SubmissionState.IDLE

    def dispose(self, reason: str = "draft disposed") -> None:
        """Cancel in-flight requests; late responses are then discarded."""

        if self._disposed:
            return
        self._disposed = True
        self.cancel_token.cancel(reason)
        logger.debug("Draft %s disposed (%s)", self.session_id, reason)

    def _revalidate(self) -> None:
        self._errors = validate(self._fields, self.schema, self._step_index, today=self._today)
        name = self.schema.verified_email_field
        if (
            name is not None
            and config.EMAIL_VERIFICATION_ENABLED
            and name not in self._errors
            and self.schema.step_for_field(name) <= self._step_index
            and not self.email_verified
        ):
            self._errors[name] = EMAIL_UNVERIFIED_MESSAGE


__all__ = ["DraftSession", "SessionSnapshot", "SubmissionState"]
