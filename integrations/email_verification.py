"""One-time code verification of the registering student's email address.

Codes are requested for an address, then confirmed with the six digit value
the student received. All three calls ride on the referral session cookie.
"""

from __future__ import annotations

import logging

import httpx

import config
from core.errors import VerificationCodeError
from core.regexes import OTP_RE
from integrations.api_client import ApiEnvelope, ensure_success, send
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def _expires_in(envelope: ApiEnvelope) -> int | None:
    value = (envelope.model_extra or {}).get("expiresIn")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


class EmailVerifier:
    """Send, resend and confirm email one-time codes."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send_code(self, email: str, *, cancel_token: CancellationToken | None = None) -> int | None:
        """Ask the backend to mail a fresh code to ``email``.

        Returns:
            Seconds until the code expires, when the backend says so.

        Raises:
            ServerRejectedError: Invalid address or too many requests.
            TransportError: The backend could not be reached.
        """

        return await self._request_code(config.OTP_SEND_PATH, email, cancel_token)

    async def resend_code(self, email: str, *, cancel_token: CancellationToken | None = None) -> int | None:
        return await self._request_code(config.OTP_RESEND_PATH, email, cancel_token)

    async def verify(self, email: str, code: str, *, cancel_token: CancellationToken | None = None) -> None:
        """Confirm ``code`` for ``email``.

        Raises:
            VerificationCodeError: ``code`` is not six digits; nothing is sent.
            ServerRejectedError: Wrong, expired or exhausted code. ``code``
                on the error carries the backend reason (``INVALID_OTP`` ...).
        """

        cleaned = code.strip()
        if not OTP_RE.match(cleaned):
            raise VerificationCodeError("Enter the 6-digit code from your email")
        response = await send(
            self._client,
            "POST",
            config.OTP_VERIFY_PATH,
            cancel_token=cancel_token,
            json={"email": email.strip(), "otp": cleaned},
        )
        ensure_success(response)
        logger.info("Email address verified")

    async def _request_code(self, path: str, email: str, cancel_token: CancellationToken | None) -> int | None:
        response = await send(
            self._client,
            "POST",
            path,
            cancel_token=cancel_token,
            json={"email": email.strip()},
        )
        envelope = ensure_success(response)
        expires_in = _expires_in(envelope)
        logger.info("Verification code requested via %s (expires in %s s)", path, expires_in)
        return expires_in


__all__ = ["EmailVerifier"]
