"""OpenAI LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider` via
the chat completions API.  Images are sent as ``image_url`` parts carrying
the full data URL with ``detail="high"``; PDF attachments arrive as text
parts built by :class:`BaseLLMProvider`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

# The official OpenAI Python SDK (async version).
import openai
import structlog

from src.config.settings import Settings
from src.models.attachment import Attachment
from src.providers.llm.base import BaseLLMProvider

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(BaseLLMProvider):
    """LLM provider backed by the OpenAI chat completions API."""

    PROVIDER_ID = "openai"
    DISPLAY_NAME = "OpenAI"
    ENV_VAR = "OPENAI_API_KEY"
    MODELS = ("gpt-4o-mini-2024-07-18", "gpt-3.5-turbo-0125")

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        # AsyncOpenAI is the async version of the OpenAI client.  A dummy key
        # keeps construction from failing; is_configured() gates every call.
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key or "not-configured",
            timeout=openai.Timeout(self._timeout, connect=10.0),
        )

    def _text_part(self, text: str) -> dict[str, Any]:
        return {"type": "text", "text": text}

    def _image_part(self, media_type: str, payload: str, data_url: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": data_url, "detail": "high"}}

    def _messages(
        self,
        prompt: str,
        model_id: str,
        attachments: Sequence[Attachment],
    ) -> list[dict[str, Any]]:
        content: str | list[Any] = (
            self.build_content(prompt, model_id, attachments) if attachments else prompt
        )
        return [{"role": "user", "content": content}]

    async def _complete(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model_id,
                messages=self._messages(prompt, model_id, attachments),
                temperature=temperature,
                max_tokens=self._max_tokens,
            )
        except openai.APIStatusError as exc:
            raise self._map_error(exc.status_code, exc.message) from exc
        except openai.APIError as exc:
            raise self._map_error(None, str(exc)) from exc

        logger.debug(
            "openai_completion",
            model=model_id,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return response.choices[0].message.content or ""

    async def _stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> AsyncIterator[str]:
        try:
            stream = await self._client.chat.completions.create(
                model=model_id,
                messages=self._messages(prompt, model_id, attachments),
                temperature=temperature,
                max_tokens=self._max_tokens,
                stream=True,
            )
            # Leaving the async-with block closes the HTTP response.
            async with stream:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
        except openai.APIStatusError as exc:
            raise self._map_error(exc.status_code, exc.message) from exc
        except openai.APIError as exc:
            raise self._map_error(None, str(exc)) from exc
