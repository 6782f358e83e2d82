"""Google Gemini LLM provider adapter.

Wraps the ``google-genai`` SDK's async surface (``client.aio.models``) to
implement :class:`ILLMProvider`.  Images become inline-data parts built
from the decoded data URL; streaming uses ``generate_content_stream``.

Gemini reports credential and quota problems inside the error text
(``API_KEY_INVALID``, ``QUOTA_EXCEEDED``) as well as in the status code,
so both are handed to the shared error mapper.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import AsyncIterator, Sequence

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.config.settings import Settings
from src.models.attachment import Attachment
from src.providers.llm.base import BaseLLMProvider

logger = structlog.get_logger(logger_name=__name__)


class GeminiLLMProvider(BaseLLMProvider):
    """LLM provider backed by the Google Gemini API."""

    PROVIDER_ID = "gemini"
    DISPLAY_NAME = "Gemini"
    ENV_VAR = "GEMINI_API_KEY"
    MODELS = ("gemini-2.0-flash-lite", "gemini-2.0-flash")

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        # genai.Client refuses an empty key, so it is built on first use,
        # after is_configured() has passed.
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _text_part(self, text: str) -> types.Part:
        return types.Part.from_text(text=text)

    def _image_part(self, media_type: str, payload: str, data_url: str) -> types.Part | None:
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            logger.error("gemini_image_payload_invalid", media_type=media_type)
            return None
        return types.Part.from_bytes(data=data, mime_type=media_type)

    def _contents(
        self,
        prompt: str,
        model_id: str,
        attachments: Sequence[Attachment],
    ) -> list[types.Part]:
        parts = self.build_content(prompt, model_id, attachments)
        return [part for part in parts if part is not None]

    def _config(self, temperature: float) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=self._max_tokens,
        )

    async def _complete(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=model_id,
                contents=self._contents(prompt, model_id, attachments),
                config=self._config(temperature),
            )
        except genai_errors.APIError as exc:
            raise self._map_error(exc.code, f"{exc.status or ''} {exc.message or ''}".strip()) from exc

        return response.text or ""

    async def _stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> AsyncIterator[str]:
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=model_id,
                contents=self._contents(prompt, model_id, attachments),
                config=self._config(temperature),
            )
            try:
                async for chunk in stream:
                    if chunk.text:
                        yield chunk.text
            finally:
                await stream.aclose()
        except genai_errors.APIError as exc:
            raise self._map_error(exc.code, f"{exc.status or ''} {exc.message or ''}".strip()) from exc
