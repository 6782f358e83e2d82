"""Attachment store implementations."""

from src.providers.attachments.memory_attachment_store import MemoryAttachmentStore

__all__ = ["MemoryAttachmentStore"]
