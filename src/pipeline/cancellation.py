"""Cancellation token shared by every branch of one streaming request.

One token is created per request.  It is signalled either by an explicit
cancel call (``POST /api/llm/stream/{id}/cancel``) or when the HTTP client
disconnects.  Adapters poll :attr:`CancellationToken.cancelled` at every
chunk boundary; the orchestrator awaits :meth:`wait` to stop forwarding.
"""

from __future__ import annotations

import asyncio

import structlog

from src.utils.errors import StreamCancelledError

logger = structlog.get_logger(logger_name=__name__)


class CancellationToken:
    """A one-shot, idempotent cancellation flag built on :class:`asyncio.Event`."""

    def __init__(self, stream_id: str | None = None) -> None:
        self._event = asyncio.Event()
        self._stream_id = stream_id
        self._reason: str | None = None

    @property
    def stream_id(self) -> str | None:
        return self._stream_id

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation.  Calling it again has no effect."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info("stream_cancel_requested", stream_id=self._stream_id, reason=reason)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelledError(f"Stream cancelled: {self._reason}")
