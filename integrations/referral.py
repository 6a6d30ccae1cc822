"""Referral gate guarding the public student registration flow.

The gate runs ``IDLE -> VALIDATING -> VALID | INVALID`` exactly once per
entry. Malformed tokens never reach the network; remote rejections and
network failures both end in the same not-found redirect, but the result keeps
the :class:`~core.errors.GateErrorKind` so logs and traces can tell them apart.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

import httpx
from opentelemetry import trace

import config
from core.errors import (
    INVALID_REFERRAL_MESSAGE,
    GateBusyError,
    GateError,
    GateErrorKind,
    OperationCancelledError,
)
from integrations.api_client import parse_envelope
from utils.cancellation import CancellationToken
from utils.telemetry import mark_span_failed

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class GateState(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class GateResult:
    """Terminal outcome of a referral check."""

    state: GateState
    token: str | None
    error: GateError | None = None
    session_established: bool = False
    redirect_to: str | None = None
    redirect_delay: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self.state is GateState.VALID

    @property
    def error_kind(self) -> GateErrorKind | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None

    def as_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "valid": self.is_valid,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "message": self.message,
            "status_code": self.error.status_code if self.error else None,
            "session_established": self.session_established,
            "redirect_to": self.redirect_to,
            "redirect_delay": self.redirect_delay,
        }


def extract_token(query_params: Mapping[str, object], param: str | None = None) -> str | None:
    """Return the referral token from ``query_params`` or ``None``.

    Streamlit's query param proxy and ``parse_qs`` style dictionaries may hold
    lists; the first entry wins.
    """

    raw = query_params.get(param or config.REFERRAL_QUERY_PARAM)
    if isinstance(raw, Sequence) and not isinstance(raw, str):
        raw = raw[0] if raw else None
    if not isinstance(raw, str) or not raw:
        return None
    return raw


def mask_token(token: str | None) -> str:
    if not token:
        return "<none>"
    return f"{token[:4]}...({len(token)} chars)"


class ReferralGate:
    """Validate a referral token before protected content may render."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        validate_path: str | None = None,
        token_length: int | None = None,
        cookie_name: str | None = None,
        not_found_path: str | None = None,
        redirect_delay: float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._client = client
        self._validate_path = validate_path or config.REFERRAL_VALIDATE_PATH
        self._token_length = token_length or config.REFERRAL_TOKEN_LENGTH
        self._cookie_name = cookie_name or config.REFERRAL_COOKIE_NAME
        self._not_found_path = not_found_path or config.NOT_FOUND_PATH
        self._redirect_delay = config.GATE_REDIRECT_DELAY_SECONDS if redirect_delay is None else redirect_delay
        self.cancel_token = cancel_token or CancellationToken()
        self._state = GateState.IDLE
        self._result: GateResult | None = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def result(self) -> GateResult | None:
        return self._result

    @property
    def has_session_cookie(self) -> bool:
        return self._cookie_name in self._client.cookies

    def teardown(self, reason: str = "gate torn down") -> None:
        """Cancel a running check; its late response will be discarded."""

        self.cancel_token.cancel(reason)

    async def check(self, query_params: Mapping[str, object]) -> GateResult:
        """Run the gate for the entry URL's ``query_params``.

        Returns:
            The cached result when the gate already resolved.

        Raises:
            GateBusyError: A check is already running.
            OperationCancelledError: The gate was torn down mid-request; the
                gate returns to ``IDLE`` without recording a result.
        """

        if self._result is not None:
            return self._result
        if self._state is GateState.VALIDATING:
            raise GateBusyError("Referral check already in progress")

        token = extract_token(query_params)
        with tracer.start_as_current_span("referral.validate") as span:
            span.set_attribute("referral.token_length", len(token) if token else 0)
            if token is None or len(token) != self._token_length:
                logger.warning("Rejecting malformed referral token %s", mask_token(token))
                return self._finish_invalid(token, GateError(GateErrorKind.MALFORMED_TOKEN), span)

            self._state = GateState.VALIDATING
            logger.info("Validating referral token %s", mask_token(token))
            try:
                response = await self.cancel_token.run(
                    self._client.get(self._validate_path, params={config.REFERRAL_QUERY_PARAM: token})
                )
            except OperationCancelledError:
                self._state = GateState.IDLE
                span.set_attribute("referral.cancelled", True)
                logger.info("Referral check for %s cancelled", mask_token(token))
                raise
            except httpx.TransportError as exc:
                logger.warning("Referral check for %s failed without response: %s", mask_token(token), exc)
                mark_span_failed(span, exc)
                return self._finish_invalid(token, GateError(GateErrorKind.NETWORK_ERROR), span)

            span.set_attribute("http.status_code", response.status_code)
            return self._interpret(token, response, span)

    def _interpret(self, token: str, response: httpx.Response, span: trace.Span) -> GateResult:
        envelope = parse_envelope(response)
        status = response.status_code
        if response.is_success:
            if envelope.success is True:
                return self._finish_valid(token, span)
            logger.warning("Referral endpoint answered %s without a success flag", status)
            error = GateError(GateErrorKind.REJECTED, envelope.message or INVALID_REFERRAL_MESSAGE, status_code=status)
        elif response.is_client_error:
            logger.warning("Referral token %s rejected (%s): %s", mask_token(token), status, envelope.message)
            error = GateError(GateErrorKind.REJECTED, envelope.message or INVALID_REFERRAL_MESSAGE, status_code=status)
        else:
            # A 5xx says nothing about the token itself.
            logger.error("Referral endpoint unavailable (%s)", status)
            error = GateError(GateErrorKind.NETWORK_ERROR, status_code=status)
        return self._finish_invalid(token, error, span)

    def _finish_valid(self, token: str, span: trace.Span) -> GateResult:
        established = self.has_session_cookie
        if not established:
            logger.warning("Referral accepted but no '%s' cookie was set", self._cookie_name)
        span.set_attribute("referral.session_established", established)
        self._state = GateState.VALID
        self._result = GateResult(state=GateState.VALID, token=token, session_established=established)
        logger.info("Referral token %s accepted", mask_token(token))
        return self._result

    def _finish_invalid(self, token: str | None, error: GateError, span: trace.Span) -> GateResult:
        span.set_attribute("referral.error_kind", error.kind.value)
        self._state = GateState.INVALID
        self._result = GateResult(
            state=GateState.INVALID,
            token=token,
            error=error,
            redirect_to=self._not_found_path,
            redirect_delay=self._redirect_delay,
        )
        return self._result


__all__ = ["GateResult", "GateState", "ReferralGate", "extract_token", "mask_token"]
