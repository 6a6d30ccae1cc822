"""Central configuration for the placement onboarding client.

Values are read from the environment once at import time (after loading an
optional ``.env`` file). Tests patch the module attributes directly, so the
rest of the code base always reads them through ``config.<NAME>`` instead of
copying them at import time.

``SUBMISSION_REQUEST_ID_ENABLED`` controls whether terminal submissions carry
a client-generated request id. The backend does not deduplicate on it today,
so the flag stays off unless a deployment opts in.
"""

import logging
import os
import warnings

from dotenv import load_dotenv

load_dotenv()


logger = logging.getLogger(__name__)


_TRUTHY_ENV_VALUES: tuple[str, ...] = ("1", "true", "yes", "on")
_FALSY_ENV_VALUES: tuple[str, ...] = ("0", "false", "no", "off")


def _is_truthy_flag(value: str | None) -> bool:
    """Return ``True`` when ``value`` matches a truthy environment token."""

    if value is None:
        return False
    return value.strip().lower() in _TRUTHY_ENV_VALUES


def _is_falsy_flag(value: str | None) -> bool:
    """Return ``True`` when ``value`` explicitly switches a default-on flag off."""

    if value is None:
        return False
    return value.strip().lower() in _FALSY_ENV_VALUES


def _parse_positive_float_env(value: str | None, *, env_var: str, default: float) -> float:
    """Return a positive float parsed from ``value`` or ``default``."""

    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        warnings.warn(
            "%s is not a number; ignoring %s" % (candidate, env_var),
            RuntimeWarning,
        )
        return default
    if parsed <= 0:
        warnings.warn(
            "%s must be positive; falling back to %s" % (env_var, default),
            RuntimeWarning,
        )
        return default
    return parsed


def _normalise_base_url(value: str | None, *, default: str) -> str:
    """Strip whitespace and trailing slashes from an API base URL."""

    candidate = (value or "").strip()
    if not candidate:
        return default
    if not candidate.startswith(("http://", "https://")):
        logger.warning("Ignoring ONBOARDING_API_URL '%s'; expected an http(s) URL.", candidate)
        return default
    return candidate.rstrip("/")


def _normalise_path(value: str | None, *, default: str) -> str:
    candidate = (value or "").strip()
    if not candidate:
        return default
    return candidate if candidate.startswith("/") else f"/{candidate}"


APP_ENV = os.getenv("ONBOARDING_ENV", "development")

API_BASE_URL = _normalise_base_url(os.getenv("ONBOARDING_API_URL"), default="http://localhost:5000/api")
API_TOKEN = os.getenv("ONBOARDING_API_TOKEN", "").strip()
REQUEST_TIMEOUT_SECONDS = _parse_positive_float_env(
    os.getenv("ONBOARDING_REQUEST_TIMEOUT"),
    env_var="ONBOARDING_REQUEST_TIMEOUT",
    default=15.0,
)

# Referral identifiers are identity-store object ids.
REFERRAL_TOKEN_LENGTH = 24
REFERRAL_QUERY_PARAM = "ref"
REFERRAL_VALIDATE_PATH = "/validate-referral"
REFERRAL_COOKIE_NAME = os.getenv("REFERRAL_COOKIE_NAME", "student_referral").strip() or "student_referral"
GATE_REDIRECT_DELAY_SECONDS = _parse_positive_float_env(
    os.getenv("GATE_REDIRECT_DELAY_SECONDS"),
    env_var="GATE_REDIRECT_DELAY_SECONDS",
    default=2.0,
)

NOT_FOUND_PATH = _normalise_path(os.getenv("NOT_FOUND_PATH"), default="/404")
CONFIRMATION_PATH = _normalise_path(os.getenv("CONFIRMATION_PATH"), default="/registration-success")
AGENTS_PATH = _normalise_path(os.getenv("AGENTS_PATH"), default="/agents")

AGENTS_ENDPOINT = "/agents"
STUDENTS_ENDPOINT = "/students"

SUBMISSION_REQUEST_ID_ENABLED = _is_truthy_flag(os.getenv("SUBMISSION_REQUEST_ID_ENABLED"))
SUBMISSION_REQUEST_ID_HEADER = (
    os.getenv("SUBMISSION_REQUEST_ID_HEADER", "Idempotency-Key").strip() or "Idempotency-Key"
)

# Public registration requires a verified email before step 1 can be left.
EMAIL_VERIFICATION_ENABLED = not _is_falsy_flag(os.getenv("EMAIL_VERIFICATION_ENABLED"))
OTP_SEND_PATH = "/otp/send"
OTP_RESEND_PATH = "/otp/resend"
OTP_VERIFY_PATH = "/otp/verify"

MIN_ESTABLISHED_YEAR = 1900
PHONE_MIN_DIGITS = 10
PASSWORD_MIN_LENGTH = 8
DEFAULT_COUNTRY = os.getenv("DEFAULT_COUNTRY", "India")

# Attachment limits mirror the upload middleware on the backend.
PHOTO_MAX_BYTES = 2 * 1024 * 1024
DOCUMENT_MAX_BYTES = 5 * 1024 * 1024


__all__ = [
    "AGENTS_ENDPOINT",
    "AGENTS_PATH",
    "API_BASE_URL",
    "API_TOKEN",
    "APP_ENV",
    "CONFIRMATION_PATH",
    "DEFAULT_COUNTRY",
    "DOCUMENT_MAX_BYTES",
    "EMAIL_VERIFICATION_ENABLED",
    "GATE_REDIRECT_DELAY_SECONDS",
    "MIN_ESTABLISHED_YEAR",
    "NOT_FOUND_PATH",
    "OTP_RESEND_PATH",
    "OTP_SEND_PATH",
    "OTP_VERIFY_PATH",
    "PASSWORD_MIN_LENGTH",
    "PHONE_MIN_DIGITS",
    "PHOTO_MAX_BYTES",
    "REFERRAL_COOKIE_NAME",
    "REFERRAL_QUERY_PARAM",
    "REFERRAL_TOKEN_LENGTH",
    "REFERRAL_VALIDATE_PATH",
    "REQUEST_TIMEOUT_SECONDS",
    "STUDENTS_ENDPOINT",
    "SUBMISSION_REQUEST_ID_ENABLED",
    "SUBMISSION_REQUEST_ID_HEADER",
]
