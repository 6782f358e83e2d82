"""Attachment models: user-supplied files that accompany a prompt.

An :class:`Attachment` is created once by the upload ingestion service and
then only read.  Images always carry ``inline_base64`` as a full data URL
(``data:image/png;base64,...``); documents carry ``extracted_text`` and,
optionally, a small preview in ``inline_base64``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class AttachmentKind(str, Enum):  # noqa: UP042
    """Broad attachment category.  The value is the wire ``type`` string."""

    IMAGE = "image"
    DOCUMENT = "pdf"


class AttachmentSummary(BaseModel):
    """Name and kind of an attachment, echoed back to the client."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    kind: AttachmentKind

    def to_wire(self) -> dict[str, str]:
        return {"name": self.display_name, "type": self.kind.value}


class Attachment(BaseModel):
    """An ingested file held in the attachment store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    # Original filename as uploaded, shown in the UI and in PDF text parts.
    display_name: str
    kind: AttachmentKind
    # Specific format ("jpeg", "png", "gif", "webp", "pdf") or the generic
    # "image" when the exact format is unknown.
    format: str
    size_bytes: int = Field(ge=0)
    media_type: str = "application/octet-stream"
    # data:<media>;base64,<payload>
    inline_base64: str | None = None
    extracted_text: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @property
    def is_image(self) -> bool:
        return self.kind is AttachmentKind.IMAGE

    @property
    def is_document(self) -> bool:
        return self.kind is AttachmentKind.DOCUMENT

    @property
    def is_complete(self) -> bool:
        """True when the record carries the payload its kind requires."""
        if self.is_image:
            return bool(self.inline_base64)
        return bool(self.extracted_text or self.inline_base64)

    @property
    def gate_kind(self) -> str:
        """The attachment-kind string understood by the capability gate."""
        if self.is_document:
            return "pdf"
        return self.format or "image"

    def summary(self) -> AttachmentSummary:
        return AttachmentSummary(display_name=self.display_name, kind=self.kind)

    def to_public_dict(self) -> dict:
        """Metadata returned by the upload endpoints (camelCase wire keys)."""
        return {
            "id": self.id,
            "originalName": self.display_name,
            "type": self.kind.value,
            "format": self.format,
            "mimeType": self.media_type,
            "size": self.size_bytes,
            "base64": self.inline_base64,
            "text": self.extracted_text,
        }
