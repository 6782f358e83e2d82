"""Abstract base class for the temporary attachment store.

Uploaded files are ingested once and then referenced by id from later
generate/stream requests.  The store keeps them for a bounded time only;
an id that has expired simply resolves to ``None``.  The adapter pattern
lets the in-memory store be replaced by a shared backend without touching
the routes or the ingestion service.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.attachment import Attachment


# Concrete implementation: MemoryAttachmentStore
# Located in: src/providers/attachments/
class IAttachmentStore(ABC):
    """Contract for id-addressed, time-bounded attachment storage."""

    @abstractmethod
    async def put(self, attachment: Attachment) -> str:
        """Store *attachment* under its own ``id`` and return that id."""

    @abstractmethod
    async def get(self, attachment_id: str) -> Attachment | None:
        """Return the attachment, or ``None`` if unknown or expired."""

    @abstractmethod
    async def delete(self, attachment_id: str) -> bool:
        """Remove an attachment.  Returns ``True`` if it was present."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every stored attachment."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of live (non-expired) entries."""
