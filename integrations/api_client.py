"""Shared ``httpx`` client factory and response envelope parsing."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

import config
from core.errors import ServerRejectedError, TransportError
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class ApiEnvelope(BaseModel):
    """``{"success": ..., "message": ..., "data": ...}`` wrapper used by the backend."""

    model_config = ConfigDict(extra="allow")

    success: bool | None = None
    message: str | None = None
    code: str | None = None
    data: Any = None


def build_client(
    *,
    base_url: str | None = None,
    cookies: Mapping[str, str] | httpx.Cookies | None = None,
    auth_token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """Return a credentialed async client for the onboarding API.

    The client keeps its own cookie jar, so the referral continuity cookie set
    by the gate check is sent with every later request made through it.
    """

    headers = {"Accept": "application/json"}
    token = auth_token if auth_token is not None else config.API_TOKEN
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(
        base_url=base_url or config.API_BASE_URL,
        cookies=dict(cookies) if isinstance(cookies, Mapping) else cookies,
        headers=headers,
        timeout=timeout or config.REQUEST_TIMEOUT_SECONDS,
        transport=transport,
    )


def parse_envelope(response: httpx.Response) -> ApiEnvelope:
    """Parse the JSON envelope of ``response``; unusable bodies yield an empty envelope."""

    try:
        payload = response.json()
    except ValueError:
        logger.debug("Non-JSON response body (status %s)", response.status_code)
        return ApiEnvelope()
    if not isinstance(payload, Mapping):
        return ApiEnvelope(data=payload)
    try:
        return ApiEnvelope.model_validate(dict(payload))
    except ValidationError as exc:
        logger.debug("Unexpected envelope shape (status %s): %s", response.status_code, exc)
        message = payload.get("message")
        return ApiEnvelope(message=message if isinstance(message, str) else None)


def cookie_snapshot(client: httpx.AsyncClient) -> dict[str, str]:
    """Return the client's cookies as a plain mapping for session storage."""

    return {cookie.name: cookie.value or "" for cookie in client.cookies.jar}


async def send(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    *,
    cancel_token: CancellationToken | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Issue one request under ``cancel_token``; never retried.

    Raises:
        TransportError: No response arrived (connection failure, timeout).
        OperationCancelledError: ``cancel_token`` fired before the response.
    """

    token = cancel_token or CancellationToken()
    try:
        return await token.run(client.request(method, path, **kwargs))
    except httpx.TransportError as exc:
        logger.warning("%s %s failed without response: %s", method, path, exc.__class__.__name__)
        raise TransportError() from exc


def ensure_success(response: httpx.Response) -> ApiEnvelope:
    """Return the envelope of a successful response or raise.

    A 2xx answer counts as success unless it carries ``success: false``.

    Raises:
        ServerRejectedError: 4xx, or 2xx with ``success: false``.
        TransportError: Any other status (5xx, unexpected redirects).
    """

    envelope = parse_envelope(response)
    if response.is_success and envelope.success is not False:
        return envelope
    if response.is_success or response.is_client_error:
        raise ServerRejectedError(envelope.message, status_code=response.status_code, code=envelope.code)
    raise TransportError(status_code=response.status_code)


__all__ = ["ApiEnvelope", "build_client", "cookie_snapshot", "ensure_success", "parse_envelope", "send"]
