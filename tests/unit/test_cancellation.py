"""Unit tests for the cancellation token and the stream registry."""

from __future__ import annotations

import asyncio

import pytest

from src.pipeline.cancellation import CancellationToken
from src.pipeline.stream_registry import StreamRegistry
from src.utils.errors import StreamCancelledError


class TestCancellationToken:
    def test_starts_uncancelled(self) -> None:
        token = CancellationToken("abc")
        assert token.cancelled is False
        assert token.reason is None
        assert token.stream_id == "abc"
        token.raise_if_cancelled()

    def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.cancelled is True
        assert token.reason == "first"

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("client_request")
        with pytest.raises(StreamCancelledError, match="client_request"):
            token.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self) -> None:
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)


class TestStreamRegistry:
    def test_open_registers_unique_ids(self) -> None:
        registry = StreamRegistry()
        a, b = registry.open(), registry.open()
        assert a.stream_id != b.stream_id
        assert registry.get(a.stream_id) is a
        assert len(registry) == 2

    def test_cancel_known_and_unknown(self) -> None:
        registry = StreamRegistry()
        token = registry.open()
        assert registry.cancel(token.stream_id) is True
        assert token.cancelled is True
        assert token.reason == "client_request"
        assert registry.cancel("nope") is False

    def test_close_unregisters(self) -> None:
        registry = StreamRegistry()
        token = registry.open()
        registry.close(token.stream_id)
        registry.close(token.stream_id)
        registry.close(None)
        assert registry.get(token.stream_id) is None
        assert len(registry) == 0

    def test_cancel_all(self) -> None:
        registry = StreamRegistry()
        tokens = [registry.open() for _ in range(3)]
        registry.cancel_all()
        assert all(t.cancelled and t.reason == "shutdown" for t in tokens)
