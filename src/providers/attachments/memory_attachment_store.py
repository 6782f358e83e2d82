"""In-memory attachment store using cachetools.TTLCache.

Entries expire ``ttl`` seconds after they are stored, matching the
ten-minute retention of uploaded files.  Suitable for a single-process
deployment; a multi-worker setup needs a shared store behind the same
:class:`IAttachmentStore` interface.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from src.interfaces.attachment_store import IAttachmentStore
from src.models.attachment import Attachment

logger = structlog.get_logger(logger_name=__name__)


class MemoryAttachmentStore(IAttachmentStore):
    """Attachment store backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_entries:
        Maximum number of attachments held at once; the least recently
        used entry is evicted first when full.
    ttl:
        Seconds an attachment stays retrievable after upload.
    timer:
        Clock used for expiry.  Tests inject a controllable clock.
    """

    def __init__(
        self,
        max_entries: int = 500,
        ttl: int = 600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._cache: TTLCache[str, Attachment] = TTLCache(
            maxsize=max_entries, ttl=ttl, timer=timer
        )

    # ------------------------------------------------------------------
    # IAttachmentStore implementation
    # ------------------------------------------------------------------

    async def put(self, attachment: Attachment) -> str:
        self._cache[attachment.id] = attachment
        logger.debug(
            "attachment_stored",
            attachment_id=attachment.id,
            kind=attachment.kind.value,
            size_bytes=attachment.size_bytes,
            ttl=self._ttl,
        )
        return attachment.id

    async def get(self, attachment_id: str) -> Attachment | None:
        attachment = self._cache.get(attachment_id)
        if attachment is None:
            logger.debug("attachment_miss", attachment_id=attachment_id)
        return attachment

    async def delete(self, attachment_id: str) -> bool:
        removed = self._cache.pop(attachment_id, None) is not None
        logger.debug("attachment_deleted", attachment_id=attachment_id, removed=removed)
        return removed

    async def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)
