"""Unit tests for the in-memory attachment store."""

from __future__ import annotations

import pytest

from src.models.attachment import Attachment
from src.providers.attachments.memory_attachment_store import MemoryAttachmentStore


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestMemoryAttachmentStore:
    @pytest.mark.asyncio
    async def test_put_and_get(self, image_attachment: Attachment) -> None:
        store = MemoryAttachmentStore()
        key = await store.put(image_attachment)
        assert key == image_attachment.id
        assert await store.get(key) == image_attachment
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_get_unknown_returns_none(self) -> None:
        assert await MemoryAttachmentStore().get("missing") is None

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self, image_attachment: Attachment) -> None:
        clock = _FakeClock()
        store = MemoryAttachmentStore(ttl=600, timer=clock)
        await store.put(image_attachment)

        clock.now = 599
        assert await store.get(image_attachment.id) is not None

        clock.now = 601
        assert await store.get(image_attachment.id) is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_delete(self, pdf_attachment: Attachment) -> None:
        store = MemoryAttachmentStore()
        await store.put(pdf_attachment)
        assert await store.delete(pdf_attachment.id) is True
        assert await store.delete(pdf_attachment.id) is False
        assert await store.get(pdf_attachment.id) is None

    @pytest.mark.asyncio
    async def test_max_entries_evicts(
        self, image_attachment: Attachment, pdf_attachment: Attachment
    ) -> None:
        store = MemoryAttachmentStore(max_entries=1)
        await store.put(image_attachment)
        await store.put(pdf_attachment)
        assert len(store) == 1
        assert await store.get(pdf_attachment.id) is not None

    @pytest.mark.asyncio
    async def test_clear(self, image_attachment: Attachment) -> None:
        store = MemoryAttachmentStore()
        await store.put(image_attachment)
        await store.clear()
        assert len(store) == 0
