"""Document slots and attachment checks for the agent wizards."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

import config
from core.errors import AttachmentError


class DocumentSlot(StrEnum):
    """Upload slots accepted by ``POST /agents/{id}/documents``."""

    ID_PROOF = "idProof"
    COMPANY_LICENCE = "companyLicence"
    AGENT_PHOTO = "agentPhoto"
    IDENTITY_DOCUMENT = "identityDocument"
    COMPANY_REGISTRATION = "companyRegistration"
    RESUME = "resume"
    COMPANY_PHOTO = "companyPhoto"


PHOTO_SLOTS: Final[frozenset[DocumentSlot]] = frozenset({DocumentSlot.AGENT_PHOTO, DocumentSlot.COMPANY_PHOTO})
PHOTO_CONTENT_TYPES: Final[frozenset[str]] = frozenset({"image/jpeg", "image/jpg", "image/png"})
DOCUMENT_CONTENT_TYPES: Final[frozenset[str]] = frozenset({"application/pdf"})

SLOT_LABELS: Final[dict[DocumentSlot, str]] = {
    DocumentSlot.ID_PROOF: "ID proof",
    DocumentSlot.COMPANY_LICENCE: "Company licence",
    DocumentSlot.AGENT_PHOTO: "Agent photo",
    DocumentSlot.IDENTITY_DOCUMENT: "Identity document",
    DocumentSlot.COMPANY_REGISTRATION: "Company registration",
    DocumentSlot.RESUME: "Resume",
    DocumentSlot.COMPANY_PHOTO: "Company photo",
}


@dataclass(frozen=True)
class Attachment:
    """A file chosen for upload, held in memory until submission."""

    slot: DocumentSlot
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def resolve_slot(value: DocumentSlot | str) -> DocumentSlot:
    if isinstance(value, DocumentSlot):
        return value
    try:
        return DocumentSlot(value)
    except ValueError:
        raise AttachmentError(f"Unknown document slot '{value}'") from None


def build_attachment(slot: DocumentSlot | str, filename: str, content_type: str | None, data: bytes) -> Attachment:
    """Validate and wrap an uploaded file.

    Photos must be JPEG/PNG up to ``config.PHOTO_MAX_BYTES``; every other
    slot takes a PDF up to ``config.DOCUMENT_MAX_BYTES``.

    Raises:
        AttachmentError: The slot is unknown or the file violates its limits.
    """

    resolved = resolve_slot(slot)
    is_photo = resolved in PHOTO_SLOTS
    allowed = PHOTO_CONTENT_TYPES if is_photo else DOCUMENT_CONTENT_TYPES
    normalized_type = (content_type or "").strip().lower()
    if normalized_type not in allowed:
        allowed_label = "JPG, JPEG, PNG" if is_photo else "PDF"
        raise AttachmentError(f"Invalid file type. Only {allowed_label} files allowed.")
    limit = config.PHOTO_MAX_BYTES if is_photo else config.DOCUMENT_MAX_BYTES
    if len(data) > limit:
        raise AttachmentError(f"File size exceeds {limit // (1024 * 1024)}MB limit")
    if not data:
        raise AttachmentError(f"{SLOT_LABELS[resolved]} is empty")
    return Attachment(slot=resolved, filename=filename or resolved.value, content_type=normalized_type, data=data)


__all__ = [
    "Attachment",
    "DocumentSlot",
    "PHOTO_SLOTS",
    "SLOT_LABELS",
    "build_attachment",
    "resolve_slot",
]
