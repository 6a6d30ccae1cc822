"""Step navigation and terminal submission over a :class:`DraftSession`.

Forward moves and the final submit are gated by cumulative validation;
moving backwards never is. The engine holds no state of its own beyond the
session it drives, so a Streamlit rerun can rebuild it at any time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from opentelemetry import trace

import config
from core.errors import (
    OperationCancelledError,
    SubmissionError,
    SubmissionInProgressError,
    WizardNavigationError,
)
from core.schema import FieldKind
from core.validation import first_invalid_step, is_blank
from integrations.submission import Confirmation, SubmissionClient
from utils.logging_context import draft_context
from utils.telemetry import mark_span_failed
from wizard.session import DraftSession
from wizard.step_registry import WizardFlow

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SubmissionStatus(StrEnum):
    SUCCEEDED = "succeeded"
    VALIDATION_FAILED = "validation_failed"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of :meth:`WizardEngine.submit`."""

    status: SubmissionStatus
    confirmation: Confirmation | None = None
    error: SubmissionError | None = None
    field_errors: Mapping[str, str] = field(default_factory=dict)
    first_invalid_step: int | None = None
    redirect_to: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is SubmissionStatus.SUCCEEDED

    @property
    def message(self) -> str | None:
        if self.error is not None:
            return self.error.message
        if self.confirmation is not None:
            return self.confirmation.message
        return None


@dataclass(frozen=True)
class StepProgress:
    index: int
    key: str
    title: str
    total_fields: int
    filled_fields: int
    error_fields: tuple[str, ...]
    is_current: bool

    @property
    def ratio(self) -> float:
        if not self.total_fields:
            return 1.0
        return self.filled_fields / self.total_fields


def success_redirect(flow: str) -> str:
    """Destination after a successful submission of ``flow``."""

    if flow == WizardFlow.STUDENT_REGISTER:
        return config.CONFIRMATION_PATH
    return config.AGENTS_PATH


class WizardEngine:
    """Drive a draft through its steps and submit it once."""

    def __init__(self, session: DraftSession, submission_client: SubmissionClient | None = None) -> None:
        self.session = session
        self._client = submission_client

    @property
    def flow(self) -> str:
        return str(self.session.schema.flow)

    def can_advance(self) -> bool:
        """Return whether every step up to the current one is valid.

        On failure the current step's fields and every field with an error
        are marked touched so their messages show up.
        """

        errors = self.session.errors
        if not errors:
            return True
        self.session.touch_fields(self.session.current_step.field_names)
        self.session.touch_fields(errors)
        logger.debug("Step %s blocked by %d error(s)", self.session.step_index, len(errors))
        return False

    def next(self) -> bool:
        """Advance one step when allowed; returns whether the cursor moved."""

        session = self.session
        if session.is_terminal_step or not self.can_advance():
            return False
        with draft_context(session, step=session.step_index + 1):
            session.go_to_step(session.step_index + 1)
            logger.info("Advanced to step %s", session.step_index)
        return True

    def back(self) -> bool:
        session = self.session
        if session.step_index == 1:
            return False
        session.go_to_step(session.step_index - 1)
        return True

    def jump_back(self, step_index: int) -> None:
        """Move to an earlier (or the current) step without validation."""

        if step_index > self.session.step_index:
            raise WizardNavigationError(
                f"Cannot jump forward from step {self.session.step_index} to {step_index}"
            )
        self.session.go_to_step(step_index)

    def progress(self) -> list[StepProgress]:
        session = self.session
        errors = session.errors
        steps: list[StepProgress] = []
        for index, step in enumerate(session.schema.steps, start=1):
            visible = [spec for spec in step.fields if spec.kind is not FieldKind.HIDDEN]
            filled = sum(1 for spec in visible if not is_blank(session.fields.get(spec.name)))
            steps.append(
                StepProgress(
                    index=index,
                    key=step.key,
                    title=step.title,
                    total_fields=len(visible),
                    filled_fields=filled,
                    error_fields=tuple(name for name in step.field_names if name in errors),
                    is_current=index == session.step_index,
                )
            )
        return steps

    async def submit(self) -> SubmissionOutcome:
        """Validate the whole draft and send it.

        Raises:
            WizardNavigationError: The cursor is not on the terminal step or
                no submission client is configured.
            SubmissionInProgressError: A submission is already running.
            OperationCancelledError: The session was disposed while the
                request was in flight; the response is discarded.
        """

        session = self.session
        if not session.is_terminal_step:
            raise WizardNavigationError(
                f"Submit is only available on step {session.total_steps}, not {session.step_index}"
            )
        if self._client is None:
            raise WizardNavigationError(f"No submission client configured for {self.flow}")
        session.raise_if_disposed()
        session.ensure_not_submitting()

        with draft_context(session):
            with tracer.start_as_current_span("onboarding.submit") as span:
                span.set_attribute("flow", self.flow)
                if not self.can_advance():
                    errors = dict(session.errors)
                    span.set_attribute("submission.status", SubmissionStatus.VALIDATION_FAILED.value)
                    logger.info("Submission blocked by %d validation error(s)", len(errors))
                    return SubmissionOutcome(
                        status=SubmissionStatus.VALIDATION_FAILED,
                        field_errors=errors,
                        first_invalid_step=first_invalid_step(errors, session.schema),
                    )

                session.begin_submission()
                try:
                    confirmation = await self._client.submit(
                        session.payload(),
                        session_id=session.session_id,
                        record_id=session.record_id,
                        request_id=session.request_id,
                        cancel_token=session.cancel_token,
                        attachments=list(session.attachments.values()),
                    )
                except (OperationCancelledError, SubmissionInProgressError):
                    session.abandon_submission()
                    span.set_attribute("submission.cancelled", True)
                    raise
                except SubmissionError as exc:
                    if session.disposed:
                        session.abandon_submission()
                        raise OperationCancelledError("Draft disposed before the response arrived") from exc
                    session.fail_submission(exc.message)
                    span.set_attribute("submission.status", SubmissionStatus.FAILED.value)
                    if exc.status_code is not None:
                        span.set_attribute("http.status_code", exc.status_code)
                    mark_span_failed(span, exc)
                    logger.warning("Submission failed: %s", exc.message)
                    return SubmissionOutcome(status=SubmissionStatus.FAILED, error=exc)

                session.complete_submission(record_id=confirmation.record_id, message=confirmation.message)
                span.set_attribute("submission.status", SubmissionStatus.SUCCEEDED.value)
                logger.info("Submission succeeded (record %s)", confirmation.record_id or "-")
                session.dispose("submission succeeded")
                return SubmissionOutcome(
                    status=SubmissionStatus.SUCCEEDED,
                    confirmation=confirmation,
                    redirect_to=success_redirect(self.flow),
                )


__all__ = [
    "StepProgress",
    "SubmissionOutcome",
    "SubmissionStatus",
    "WizardEngine",
    "success_redirect",
]
