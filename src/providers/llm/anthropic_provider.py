"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI adapter:
    - Uses Anthropic's Messages API (not chat.completions)
    - Images are ``image`` blocks with a base64 ``source`` (not image_url),
      so the data URL is split into media type and payload
    - Only jpeg/png/gif/webp are accepted; anything else is dropped
    - Response content is a list of blocks, so text blocks are joined
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Any

# The official Anthropic Python SDK (async version).
import anthropic
import structlog

from src.config.settings import Settings
from src.models.attachment import Attachment
from src.providers.llm.base import BaseLLMProvider

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(BaseLLMProvider):
    """LLM provider backed by the Anthropic Claude Messages API."""

    PROVIDER_ID = "anthropic"
    DISPLAY_NAME = "Anthropic"
    ENV_VAR = "ANTHROPIC_API_KEY"
    MODELS = ("claude-3-5-haiku-latest", "claude-3-5-sonnet-20240620")
    ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key or "not-configured",
            timeout=self._timeout,
        )

    def _text_part(self, text: str) -> dict[str, Any]:
        return {"type": "text", "text": text}

    def _image_part(self, media_type: str, payload: str, data_url: str) -> dict[str, Any]:
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": payload},
        }

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
            response = await self._client.messages.create(
                model=model_id,
                max_tokens=self._max_tokens,
                temperature=temperature,
                messages=self._messages(prompt, model_id, attachments),
            )
        except anthropic.APIStatusError as exc:
            raise self._map_error(exc.status_code, exc.message) from exc
        except anthropic.APIError as exc:
            raise self._map_error(None, str(exc)) from exc

        # Filter for text blocks only; the response may also hold tool_use blocks.
        text_parts = [block.text for block in response.content if block.type == "text"]
        logger.debug(
            "anthropic_completion",
            model=model_id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "".join(text_parts)

    async def _stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                model=model_id,
                max_tokens=self._max_tokens,
                temperature=temperature,
                messages=self._messages(prompt, model_id, attachments),
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.APIStatusError as exc:
            raise self._map_error(exc.status_code, exc.message) from exc
        except anthropic.APIError as exc:
            raise self._map_error(None, str(exc)) from exc
