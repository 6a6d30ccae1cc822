"""Terminal submission of a wizard draft.

One :class:`SubmissionClient` exists per resource. It sends the flattened
draft exactly once per call, never retries and keeps at most one request in
flight per draft session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

import config
from core.errors import SubmissionError, SubmissionInProgressError
from integrations.agents import AgentsApi
from integrations.api_client import ensure_success, send
from utils.cancellation import CancellationToken
from wizard.documents import Attachment, DocumentSlot
from wizard.step_registry import WizardFlow, resolve_flow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Confirmation:
    """Successful submission: the record now exists on the server."""

    record_id: str | None
    message: str | None = None
    data: Any = None
    request_id: str | None = None
    document_paths: Mapping[str, str] = field(default_factory=dict)
    document_errors: Mapping[str, str] = field(default_factory=dict)


def _record_id_from(data: Any, record_key: str | None) -> str | None:
    if not isinstance(data, Mapping):
        return None
    candidates: list[Mapping[str, Any]] = []
    if record_key and isinstance(data.get(record_key), Mapping):
        candidates.append(data[record_key])
    candidates.append(data)
    for candidate in candidates:
        for key in ("_id", "id"):
            value = candidate.get(key)
            if value:
                return str(value)
    return None


class SubmissionClient:
    """Create or update one record type from a wizard payload."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        endpoint: str,
        record_key: str | None = None,
        allow_update: bool = False,
        agents: AgentsApi | None = None,
    ) -> None:
        self._client = client
        self._endpoint = endpoint.rstrip("/")
        self._record_key = record_key
        self._allow_update = allow_update
        self._agents = agents
        self._in_flight: set[str] = set()

    def is_in_flight(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def submit(
        self,
        payload: Mapping[str, Any],
        *,
        session_id: str,
        record_id: str | None = None,
        request_id: str | None = None,
        cancel_token: CancellationToken | None = None,
        attachments: Iterable[Attachment] = (),
    ) -> Confirmation:
        """Send ``payload`` once and return the server's confirmation.

        ``record_id`` switches to an update (``PUT``) for resources that
        allow it. Attachments are uploaded after the record exists; their
        failures end up in :attr:`Confirmation.document_errors`.

        Raises:
            SubmissionInProgressError: ``session_id`` already has a request in flight.
            ServerRejectedError: The backend refused the record.
            TransportError: No usable response.
            OperationCancelledError: ``cancel_token`` fired first.
        """

        if session_id in self._in_flight:
            raise SubmissionInProgressError(f"Session {session_id} already has a submission in flight")
        if record_id and not self._allow_update:
            raise ValueError(f"{self._endpoint} does not accept updates")

        self._in_flight.add(session_id)
        try:
            headers: dict[str, str] = {}
            sent_request_id = None
            if config.SUBMISSION_REQUEST_ID_ENABLED and request_id:
                headers[config.SUBMISSION_REQUEST_ID_HEADER] = request_id
                sent_request_id = request_id

            method, path = ("PUT", f"{self._endpoint}/{record_id}") if record_id else ("POST", self._endpoint)
            logger.info("Submitting %s %s (%d fields)", method, path, len(payload))
            response = await send(
                self._client,
                method,
                path,
                json=dict(payload),
                headers=headers,
                cancel_token=cancel_token,
            )
            envelope = ensure_success(response)
            confirmation = Confirmation(
                record_id=_record_id_from(envelope.data, self._record_key) or record_id,
                message=envelope.message,
                data=envelope.data,
                request_id=sent_request_id,
            )
            pending = list(attachments)
            if pending and self._agents is not None and confirmation.record_id:
                confirmation = await self._upload(self._agents, confirmation, pending, cancel_token)
            return confirmation
        finally:
            self._in_flight.discard(session_id)

    async def remove_document(
        self,
        agent_id: str,
        name: DocumentSlot | str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        if self._agents is None:
            raise TypeError(f"{self._endpoint} records have no documents")
        await self._agents.delete_document(agent_id, name, cancel_token=cancel_token)

    async def _upload(
        self,
        agents: AgentsApi,
        confirmation: Confirmation,
        attachments: list[Attachment],
        cancel_token: CancellationToken | None,
    ) -> Confirmation:
        record_id = confirmation.record_id or ""
        try:
            paths = await agents.upload_documents(record_id, attachments, cancel_token=cancel_token)
        except SubmissionError as exc:
            logger.warning("Document upload for %s failed: %s", confirmation.record_id, exc.message)
            return replace(
                confirmation,
                document_errors={attachment.slot.value: exc.message for attachment in attachments},
            )
        return replace(confirmation, document_paths=paths)


def agent_submission_client(client: httpx.AsyncClient) -> SubmissionClient:
    """``POST /agents`` or ``PUT /agents/{id}``, then documents."""

    return SubmissionClient(
        client,
        endpoint=config.AGENTS_ENDPOINT,
        record_key="agent",
        allow_update=True,
        agents=AgentsApi(client),
    )


def student_submission_client(client: httpx.AsyncClient) -> SubmissionClient:
    """``POST /students`` for the referral-gated public registration."""

    return SubmissionClient(client, endpoint=config.STUDENTS_ENDPOINT, record_key="student")


def client_for_flow(flow: WizardFlow | str, client: httpx.AsyncClient) -> SubmissionClient:
    if resolve_flow(flow) is WizardFlow.STUDENT_REGISTER:
        return student_submission_client(client)
    return agent_submission_client(client)


__all__ = [
    "Confirmation",
    "SubmissionClient",
    "agent_submission_client",
    "client_for_flow",
    "student_submission_client",
]
