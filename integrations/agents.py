"""Agent record access used by the admin wizards: edit prefill and documents."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

import config
from integrations.api_client import ensure_success, send
from utils.cancellation import CancellationToken
from wizard.documents import Attachment, DocumentSlot, resolve_slot

logger = logging.getLogger(__name__)


def extract_agent_record(payload: Any) -> dict[str, Any]:
    """Unwrap ``{"data": {"agent": ...}}``, ``{"agent": ...}`` or a bare record."""

    if not isinstance(payload, Mapping):
        return {}
    data = payload.get("data")
    if isinstance(data, Mapping):
        agent = data.get("agent")
        if isinstance(agent, Mapping):
            return dict(agent)
        return dict(data)
    agent = payload.get("agent")
    if isinstance(agent, Mapping):
        return dict(agent)
    return {key: value for key, value in payload.items() if key not in {"success", "message"}}


class AgentsApi:
    """Thin wrapper over the ``/agents`` resource."""

    def __init__(self, client: httpx.AsyncClient, *, endpoint: str | None = None) -> None:
        self._client = client
        self._endpoint = (endpoint or config.AGENTS_ENDPOINT).rstrip("/")

    def record_path(self, agent_id: str) -> str:
        return f"{self._endpoint}/{agent_id}"

    async def fetch(self, agent_id: str, *, cancel_token: CancellationToken | None = None) -> dict[str, Any]:
        """Load one agent record for the edit wizard.

        Raises:
            ServerRejectedError: Unknown id or access denied.
            TransportError: The backend could not be reached.
        """

        response = await send(self._client, "GET", self.record_path(agent_id), cancel_token=cancel_token)
        ensure_success(response)
        record = extract_agent_record(response.json())
        logger.info("Loaded agent %s with %d fields", agent_id, len(record))
        return record

    async def upload_documents(
        self,
        agent_id: str,
        attachments: Iterable[Attachment],
        *,
        cancel_token: CancellationToken | None = None,
    ) -> dict[str, str]:
        """Upload ``attachments`` in one multipart request.

        Returns:
            Stored paths keyed by slot, as far as the backend reports them.
        """

        files = [
            (attachment.slot.value, (attachment.filename, attachment.data, attachment.content_type))
            for attachment in attachments
        ]
        if not files:
            return {}
        response = await send(
            self._client,
            "POST",
            f"{self.record_path(agent_id)}/documents",
            files=files,
            cancel_token=cancel_token,
        )
        envelope = ensure_success(response)
        data = envelope.data if isinstance(envelope.data, Mapping) else {}
        paths = data.get("documentPaths") or getattr(envelope, "documentPaths", None) or {}
        logger.info("Uploaded %d document(s) for agent %s", len(files), agent_id)
        return {str(key): str(value) for key, value in paths.items()} if isinstance(paths, Mapping) else {}

    async def delete_document(
        self,
        agent_id: str,
        slot: DocumentSlot | str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        resolved = resolve_slot(slot)
        response = await send(
            self._client,
            "DELETE",
            f"{self.record_path(agent_id)}/documents/{resolved.value}",
            cancel_token=cancel_token,
        )
        ensure_success(response)
        logger.info("Removed document %s from agent %s", resolved.value, agent_id)


__all__ = ["AgentsApi", "extract_agent_record"]
