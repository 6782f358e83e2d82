"""Registry of in-flight streaming requests, keyed by stream id.

The stream endpoint registers a :class:`CancellationToken` before the
first byte is sent and unregisters it when the response ends.  The cancel
endpoint looks the token up here.
"""

from __future__ import annotations

from uuid import uuid4

import structlog

from src.pipeline.cancellation import CancellationToken

logger = structlog.get_logger(logger_name=__name__)


class StreamRegistry:
    """In-process map of stream id to cancellation token."""

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}

    def open(self) -> CancellationToken:
        """Create and register a token under a fresh stream id."""
        stream_id = str(uuid4())
        token = CancellationToken(stream_id=stream_id)
        self._tokens[stream_id] = token
        logger.debug("stream_registered", stream_id=stream_id, active=len(self._tokens))
        return token

    def get(self, stream_id: str) -> CancellationToken | None:
        return self._tokens.get(stream_id)

    def cancel(self, stream_id: str, reason: str = "client_request") -> bool:
        """Cancel a registered stream.  Returns ``False`` if the id is unknown."""
        token = self._tokens.get(stream_id)
        if token is None:
            return False
        token.cancel(reason)
        return True

    def close(self, stream_id: str | None) -> None:
        if stream_id is not None and self._tokens.pop(stream_id, None) is not None:
            logger.debug("stream_unregistered", stream_id=stream_id, active=len(self._tokens))

    def cancel_all(self, reason: str = "shutdown") -> None:
        for token in list(self._tokens.values()):
            token.cancel(reason)

    def __len__(self) -> int:
        return len(self._tokens)
