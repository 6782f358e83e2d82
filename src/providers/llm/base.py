"""Shared behaviour for every LLM provider adapter.

Each vendor adapter only has to say how to *talk* to its API: how a text
part and an image part look, how to run one completion, and how to iterate
a streaming response.  Everything the four adapters have in common lives
here:

    - credential check (missing key or the shipped placeholder)
    - message building from prompt + attachments
    - mapping of upstream failures onto user-facing Spanish messages
    - the stream lifecycle: files_info, content chunks, one terminal event,
      with a cancellation check at every chunk boundary

Adapters raise :class:`ProviderError` subclasses (built with
:meth:`BaseLLMProvider._map_error`) from ``_complete`` / ``_stream``; this
class turns them into failed results and error events.
"""

from __future__ import annotations

import re
from abc import abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any, ClassVar

import structlog

from src.config.settings import Settings, is_real_key
from src.interfaces.llm_provider import ILLMProvider
from src.models.attachment import Attachment
from src.models.generation import (
    BranchDoneEvent,
    BranchErrorEvent,
    ContentEvent,
    FilesInfoEvent,
    ProviderResult,
    TokenEvent,
)
from src.pipeline.cancellation import CancellationToken
from src.utils.errors import (
    CredentialMissingError,
    ProviderError,
    StreamCancelledError,
    UpstreamError,
    UpstreamRateLimitedError,
    UpstreamUnauthorizedError,
)

logger = structlog.get_logger(logger_name=__name__)

_DATA_URL_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

DEFAULT_IMAGE_TYPES: tuple[str, ...] = ("image/jpeg", "image/png", "image/gif", "image/webp")


def parse_data_url(data_url: str | None) -> tuple[str, str] | None:
    """Split ``data:<media>;base64,<payload>`` into ``(media, payload)``."""
    if not data_url:
        return None
    match = _DATA_URL_RE.match(data_url)
    if match is None:
        return None
    return match.group(1).lower(), match.group(2)


def document_text_part(attachment: Attachment) -> str:
    return f'Contenido del PDF "{attachment.display_name}":\n\n{attachment.extracted_text}'


class BaseLLMProvider(ILLMProvider):
    """Template for the vendor adapters.

    Subclasses set the class attributes and implement the four hooks
    ``_text_part``, ``_image_part``, ``_complete`` and ``_stream``.
    """

    PROVIDER_ID: ClassVar[str]
    DISPLAY_NAME: ClassVar[str]
    ENV_VAR: ClassVar[str]
    MODELS: ClassVar[tuple[str, ...]]
    ACCEPTED_IMAGE_TYPES: ClassVar[tuple[str, ...]] = DEFAULT_IMAGE_TYPES

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.api_key_for(self.PROVIDER_ID)
        self._max_tokens = settings.max_output_tokens
        self._timeout = settings.request_timeout_seconds

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    @property
    def provider_id(self) -> str:
        return self.PROVIDER_ID

    @property
    def display_name(self) -> str:
        return self.DISPLAY_NAME

    def list_models(self) -> list[str]:
        return list(self.MODELS)

    def is_configured(self) -> bool:
        return is_real_key(self.PROVIDER_ID, self._api_key)

    async def generate(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
    ) -> ProviderResult:
        echo = [a.summary() for a in attachments] or None
        if not self.is_configured():
            return self._failed(model_id, temperature, self.missing_credential_message())

        try:
            text = await self._complete(prompt, model_id, temperature, attachments)
        except ProviderError as exc:
            logger.warning(
                "provider_generate_failed",
                provider=self.PROVIDER_ID,
                model=model_id,
                error=exc.message,
            )
            return self._failed(model_id, temperature, exc.user_message)

        logger.info(
            "provider_generate_completed",
            provider=self.PROVIDER_ID,
            model=model_id,
            chars=len(text),
            attachments=len(attachments),
        )
        return ProviderResult(
            success=True,
            response_text=text,
            model_id_used=model_id,
            temperature_used=temperature,
            attached_files=echo,
        )

    async def generate_stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[TokenEvent]:
        if attachments:
            yield FilesInfoEvent(files=[a.summary() for a in attachments])

        if not self.is_configured():
            yield BranchErrorEvent(message=self.missing_credential_message())
            return

        chunks = 0
        try:
            # aclosing() guarantees the vendor stream is closed when we stop
            # early, whether on cancellation or task cancellation.
            async with aclosing(
                self._stream(prompt, model_id, temperature, attachments)
            ) as stream:
                async for text in stream:
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    if text:
                        chunks += 1
                        yield ContentEvent(text=text)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
        except StreamCancelledError:
            logger.info(
                "provider_stream_cancelled",
                provider=self.PROVIDER_ID,
                model=model_id,
                chunks=chunks,
            )
            return
        except ProviderError as exc:
            logger.warning(
                "provider_stream_failed",
                provider=self.PROVIDER_ID,
                model=model_id,
                error=exc.message,
            )
            yield BranchErrorEvent(message=exc.user_message)
            return

        logger.info(
            "provider_stream_completed",
            provider=self.PROVIDER_ID,
            model=model_id,
            chunks=chunks,
        )
        yield BranchDoneEvent()

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def missing_credential_message(self) -> str:
        return CredentialMissingError(
            f"API Key de {self.DISPLAY_NAME} no configurada. "
            f"Por favor, configure {self.ENV_VAR} en el archivo .env",
            provider_name=self.PROVIDER_ID,
        ).user_message

    def accepts_images(self, model_id: str) -> bool:
        """Whether *model_id* may be sent image parts by this adapter."""
        return True

    def build_content(
        self,
        prompt: str,
        model_id: str,
        attachments: Sequence[Attachment],
    ) -> list[Any]:
        """Build the vendor's user-message parts: prompt first, then attachments.

        Images whose media type is outside :attr:`ACCEPTED_IMAGE_TYPES` are
        dropped with a log line; documents contribute their extracted text.
        """
        parts: list[Any] = [self._text_part(prompt)]
        for attachment in attachments:
            if attachment.is_image:
                if not self.accepts_images(model_id):
                    logger.warning(
                        "image_dropped_model_without_vision",
                        provider=self.PROVIDER_ID,
                        model=model_id,
                        attachment=attachment.display_name,
                    )
                    continue
                parsed = parse_data_url(attachment.inline_base64)
                if parsed is None:
                    logger.error(
                        "image_dropped_malformed_data_url",
                        provider=self.PROVIDER_ID,
                        attachment=attachment.display_name,
                    )
                    continue
                media_type, payload = parsed
                if media_type not in self.ACCEPTED_IMAGE_TYPES:
                    logger.warning(
                        "image_dropped_unsupported_media_type",
                        provider=self.PROVIDER_ID,
                        attachment=attachment.display_name,
                        media_type=media_type,
                    )
                    continue
                parts.append(self._image_part(media_type, payload, attachment.inline_base64))
            elif attachment.extracted_text:
                parts.append(self._text_part(document_text_part(attachment)))
            else:
                logger.error(
                    "document_dropped_missing_text",
                    provider=self.PROVIDER_ID,
                    attachment=attachment.display_name,
                )
        return parts

    def _map_error(self, status_code: int | None, text: str) -> ProviderError:
        """Translate an upstream failure into a user-facing provider error."""
        text = text or ""
        if status_code == 401 or "API_KEY_INVALID" in text or "401" in text:
            return UpstreamUnauthorizedError(
                f"API Key de {self.DISPLAY_NAME} inválida", provider_name=self.PROVIDER_ID
            )
        if status_code == 429 or "QUOTA_EXCEEDED" in text or "429" in text:
            return UpstreamRateLimitedError(provider_name=self.PROVIDER_ID)
        return UpstreamError(
            text or f"Error al generar respuesta con {self.DISPLAY_NAME}",
            provider_name=self.PROVIDER_ID,
        )

    def _failed(self, model_id: str, temperature: float, message: str) -> ProviderResult:
        return ProviderResult(
            success=False,
            model_id_used=model_id,
            temperature_used=temperature,
            error_message=message,
        )

    # ------------------------------------------------------------------
    # Vendor hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _text_part(self, text: str) -> Any:
        """Return one text part in the vendor's message format."""

    @abstractmethod
    def _image_part(self, media_type: str, payload: str, data_url: str) -> Any:
        """Return one image part in the vendor's message format."""

    @abstractmethod
    async def _complete(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> str:
        """Run one completion and return its text, raising ``ProviderError``."""

    @abstractmethod
    def _stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment],
    ) -> AsyncIterator[str]:
        """Async generator of text deltas, raising ``ProviderError``."""
