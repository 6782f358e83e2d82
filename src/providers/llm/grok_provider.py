"""xAI Grok LLM provider adapter.

Talks to xAI's OpenAI-compatible REST API directly over ``httpx``.
Streaming responses are server-sent events: each ``data:`` line holds one
JSON chunk and the literal ``[DONE]`` ends the stream.

Only models whose id contains ``vision`` receive image parts; other Grok
models get the prompt plus any PDF text.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.models.attachment import Attachment
from src.providers.llm.base import BaseLLMProvider

logger = structlog.get_logger(logger_name=__name__)

_DONE_SENTINEL = "[DONE]"


def _error_text(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an error body, falling back to the status."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return f"HTTP error! status: {response.status_code}"


class GrokLLMProvider(BaseLLMProvider):
    """LLM provider backed by the xAI chat completions endpoint."""

    PROVIDER_ID = "grok"
    DISPLAY_NAME = "xAI"
    ENV_VAR = "GROK_API_KEY"
    MODELS = ("grok-3-mini-fast", "grok-2-vision-1212")

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings)
        self._base_url = settings.grok_base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=self._timeout)

    def accepts_images(self, model_id: str) -> bool:
        return "vision" in model_id

    def _text_part(self, text: str) -> dict[str, Any]:
        return {"type": "text", "text": text}

    def _image_part(self, media_type: str, payload: str, data_url: str) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": data_url}}

    def _payload(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
        stream: bool,
    ) -> dict[str, Any]:
        content: str | list[Any] = (
            self.build_content(prompt, model_id, attachments) if attachments else prompt
        )
        return {
            "model": model_id,
            "messages": [{"role": "user", "content": content}],
            "temperature": temperature,
            "max_tokens": self._max_tokens,
            "stream": stream,
        }

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _complete(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> str:
        try:
            response = await self._http.post(
                f"{self._base_url}/chat/completions",
                headers=self._headers,
                json=self._payload(prompt, model_id, temperature, attachments, stream=False),
            )
        except httpx.HTTPError as exc:
            raise self._map_error(None, str(exc) or type(exc).__name__) from exc

        if response.is_error:
            raise self._map_error(response.status_code, _error_text(response))

        data = response.json()
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""

    async def _stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> AsyncIterator[str]:
        try:
            async with self._http.stream(
                "POST",
                f"{self._base_url}/chat/completions",
                headers=self._headers,
                json=self._payload(prompt, model_id, temperature, attachments, stream=True),
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._map_error(response.status_code, _error_text(response))

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if not data:
                        continue
                    if data == _DONE_SENTINEL:
                        return
                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        logger.debug("grok_stream_skipped_invalid_json", line=data[:200])
                        continue
                    choices = chunk.get("choices") or [{}]
                    delta = (choices[0].get("delta") or {}).get("content")
                    if delta:
                        yield delta
        except httpx.HTTPError as exc:
            raise self._map_error(None, str(exc) or type(exc).__name__) from exc

    async def aclose(self) -> None:
        await self._http.aclose()
