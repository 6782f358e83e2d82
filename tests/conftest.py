"""Shared pytest fixtures for the dual-LLM test suite."""

from __future__ import annotations

import asyncio
import base64
import io
from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import fitz
import pytest
from PIL import Image

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.models.attachment import Attachment, AttachmentKind
from src.models.generation import (
    BranchDoneEvent,
    BranchErrorEvent,
    ContentEvent,
    FilesInfoEvent,
    ProviderResult,
    TokenEvent,
)
from src.pipeline.cancellation import CancellationToken
from src.services.provider_registry import ProviderRegistry

# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


class FakeLLMProvider(ILLMProvider):
    """Scripted in-memory provider.

    ``chunks`` are streamed in order.  ``error`` ends the stream with a
    ``BranchErrorEvent`` (or fails ``generate``); ``crash`` raises it
    instead; ``hang`` blocks forever after the chunks.
    """

    def __init__(
        self,
        provider_id: str = "fake",
        models: Sequence[str] = ("fake-model",),
        chunks: Sequence[str] = ("Hola", " mundo"),
        error: str | None = None,
        crash: Exception | None = None,
        hang: bool = False,
        delay: float = 0.0,
        configured: bool = True,
        display_name: str | None = None,
    ) -> None:
        self._provider_id = provider_id
        self._models = list(models)
        self.chunks = list(chunks)
        self.error = error
        self.crash = crash
        self.hang = hang
        self.delay = delay
        self.configured = configured
        self._display_name = display_name or provider_id.capitalize()
        self.calls: list[dict] = []
        self.stream_closed = False

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def display_name(self) -> str:
        return self._display_name

    def list_models(self) -> list[str]:
        return list(self._models)

    def is_configured(self) -> bool:
        return self.configured

    async def generate(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
    ) -> ProviderResult:
        self.calls.append(
            {"prompt": prompt, "model": model_id, "temperature": temperature,
             "attachments": list(attachments)}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.crash is not None:
            raise self.crash
        if self.error is not None:
            return ProviderResult(
                success=False,
                model_id_used=model_id,
                temperature_used=temperature,
                error_message=self.error,
            )
        return ProviderResult(
            success=True,
            response_text="".join(self.chunks),
            model_id_used=model_id,
            temperature_used=temperature,
            attached_files=[a.summary() for a in attachments] or None,
        )

    async def generate_stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[TokenEvent]:
        self.calls.append(
            {"prompt": prompt, "model": model_id, "temperature": temperature,
             "attachments": list(attachments)}
        )
        try:
            if attachments:
                yield FilesInfoEvent(files=[a.summary() for a in attachments])
            for chunk in self.chunks:
                if self.delay:
                    await asyncio.sleep(self.delay)
                if cancel_token is not None and cancel_token.cancelled:
                    return
                yield ContentEvent(text=chunk)
            if self.hang:
                await asyncio.Event().wait()
            if self.crash is not None:
                raise self.crash
            if self.error is not None:
                yield BranchErrorEvent(message=self.error)
                return
            yield BranchDoneEvent()
        finally:
            self.stream_closed = True


# ---------------------------------------------------------------------------
# Settings & registry
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's .env and real keys."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        anthropic_api_key="sk-ant-test",
        gemini_api_key="gm-test",
        grok_api_key="xai-test",
        statistics_db_path=str(tmp_path / "statistics.db"),
        branch_idle_timeout_seconds=0,
    )


@pytest.fixture
def openai_fake() -> FakeLLMProvider:
    return FakeLLMProvider(
        "openai",
        models=("gpt-4o-mini-2024-07-18", "gpt-3.5-turbo-0125"),
        chunks=("Hola", " desde", " OpenAI"),
        display_name="OpenAI",
    )


@pytest.fixture
def anthropic_fake() -> FakeLLMProvider:
    return FakeLLMProvider(
        "anthropic",
        models=("claude-3-5-haiku-latest", "claude-3-5-sonnet-20240620"),
        chunks=("Hola", " desde", " Claude"),
        display_name="Anthropic",
    )


@pytest.fixture
def grok_fake() -> FakeLLMProvider:
    return FakeLLMProvider(
        "grok",
        models=("grok-3-mini-fast", "grok-2-vision-1212"),
        chunks=("Hola", " desde", " Grok"),
        display_name="xAI",
    )


@pytest.fixture
def registry(
    openai_fake: FakeLLMProvider,
    anthropic_fake: FakeLLMProvider,
    grok_fake: FakeLLMProvider,
) -> ProviderRegistry:
    return ProviderRegistry([openai_fake, anthropic_fake, grok_fake])


# ---------------------------------------------------------------------------
# File fixtures
# ---------------------------------------------------------------------------


def make_png_bytes(width: int = 8, height: int = 8) -> bytes:
    img = Image.new("RGB", (width, height), color=(200, 30, 30))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_pdf_bytes(text: str = "Hola PDF") -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf_bytes()


@pytest.fixture
def image_attachment(png_bytes: bytes) -> Attachment:
    payload = base64.b64encode(png_bytes).decode("ascii")
    return Attachment(
        display_name="foto.png",
        kind=AttachmentKind.IMAGE,
        format="png",
        size_bytes=len(png_bytes),
        media_type="image/png",
        inline_base64=f"data:image/png;base64,{payload}",
    )


@pytest.fixture
def pdf_attachment() -> Attachment:
    return Attachment(
        display_name="informe.pdf",
        kind=AttachmentKind.DOCUMENT,
        format="pdf",
        size_bytes=2048,
        media_type="application/pdf",
        extracted_text="Texto del informe",
    )
