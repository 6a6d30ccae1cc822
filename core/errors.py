"""Exception types for the onboarding gate, wizard and submission layers."""

from __future__ import annotations

from enum import StrEnum


class OnboardingError(Exception):
    """Base exception for onboarding related issues."""


class UnknownFieldError(OnboardingError, KeyError):
    """Raised when a field name is not part of the active wizard schema."""

    def __init__(self, name: str, flow: str | None = None) -> None:
        self.name = name
        self.flow = flow
        where = f" in flow '{flow}'" if flow else ""
        super().__init__(f"Unknown field '{name}'{where}")

    def __str__(self) -> str:
        return self.args[0]


class SchemaError(OnboardingError, ValueError):
    """Raised when a wizard schema violates its structural invariants."""


class WizardNavigationError(OnboardingError):
    """Raised for navigation requests the wizard cannot honour."""


class OperationCancelledError(OnboardingError):
    """Raised when an in-flight request was cancelled through its token."""


class GateErrorKind(StrEnum):
    """Failure categories of the referral gate."""

    MALFORMED_TOKEN = "malformed_token"
    REJECTED = "rejected"
    NETWORK_ERROR = "network_error"


INVALID_REFERRAL_MESSAGE = "Invalid referral link"
REFERRAL_UNREACHABLE_MESSAGE = "Unable to validate referral. Please try again."


class GateError(OnboardingError):
    """A referral check that ended in the ``INVALID`` state."""

    def __init__(self, kind: GateErrorKind, message: str | None = None, *, status_code: int | None = None) -> None:
        self.kind = kind
        self.status_code = status_code
        if message is None:
            message = REFERRAL_UNREACHABLE_MESSAGE if kind is GateErrorKind.NETWORK_ERROR else INVALID_REFERRAL_MESSAGE
        self.message = message
        super().__init__(message)


class GateBusyError(OnboardingError, RuntimeError):
    """Raised when a referral check is started while another one is running."""


SUBMISSION_REJECTED_MESSAGE = "Submission was rejected"
SUBMISSION_TRANSPORT_MESSAGE = "Could not reach the server. Please check your connection and try again."


class SubmissionError(OnboardingError):
    """Base class for failed terminal submissions."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServerRejectedError(SubmissionError):
    """The backend answered and refused the record (4xx or ``success: false``)."""

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.code = code
        super().__init__(message or SUBMISSION_REJECTED_MESSAGE, status_code=status_code)


class TransportError(SubmissionError):
    """No usable response: connection failure, timeout or a 5xx answer."""

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        super().__init__(message or SUBMISSION_TRANSPORT_MESSAGE, status_code=status_code)


class SubmissionInProgressError(OnboardingError, RuntimeError):
    """Raised when a second submission starts while one is still in flight."""


class AttachmentError(OnboardingError, ValueError):
    """Raised when a document attachment violates the slot's constraints."""


EMAIL_UNVERIFIED_MESSAGE = "Please verify your email address before proceeding"


class VerificationCodeError(OnboardingError, ValueError):
    """Raised when a one-time code is not six digits and is never sent."""


__all__ = [
    "AttachmentError",
    "EMAIL_UNVERIFIED_MESSAGE",
    "GateBusyError",
    "GateError",
    "GateErrorKind",
    "INVALID_REFERRAL_MESSAGE",
    "OnboardingError",
    "OperationCancelledError",
    "REFERRAL_UNREACHABLE_MESSAGE",
    "SUBMISSION_REJECTED_MESSAGE",
    "SUBMISSION_TRANSPORT_MESSAGE",
    "SchemaError",
    "ServerRejectedError",
    "SubmissionError",
    "SubmissionInProgressError",
    "TransportError",
    "UnknownFieldError",
    "VerificationCodeError",
    "WizardNavigationError",
]
