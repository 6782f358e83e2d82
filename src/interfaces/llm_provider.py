"""Abstract base class for LLM service providers.

Defines the contract every backend (OpenAI, Anthropic, Gemini, Grok)
implements so that the fan-out orchestrator and the synchronous aggregator
never touch a vendor SDK directly.  Each adapter normalises its vendor's
request format and streaming protocol into :class:`ProviderResult` values
and :data:`TokenEvent` sequences.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from src.models.attachment import Attachment
from src.models.generation import ProviderResult, TokenEvent
from src.pipeline.cancellation import CancellationToken


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider,
# GeminiLLMProvider, GrokLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for one LLM backend.

    Neither method raises for upstream failures: ``generate`` folds them
    into ``ProviderResult(success=False)`` and ``generate_stream`` ends with
    a single ``BranchErrorEvent``.
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Stable lower-case identifier, e.g. ``"openai"``."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable vendor name used in user-facing messages."""

    @abstractmethod
    def list_models(self) -> list[str]:
        """Return the model ids this provider offers, in priority order.

        The first entry is the fallback default model, and model
        auto-substitution walks the list in this order.
        """

    @abstractmethod
    def is_configured(self) -> bool:
        """Return ``True`` if a real (non-placeholder) credential is present."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
    ) -> ProviderResult:
        """Run one non-streaming completion.

        Parameters
        ----------
        prompt:
            The user's prompt text.
        model_id:
            Model to call; must be one of :meth:`list_models`.
        temperature:
            Sampling temperature in ``[0, 1]``.
        attachments:
            Files already approved by the capability gate for this model.

        Returns
        -------
        ProviderResult
            ``success=False`` with a user-facing ``error_message`` on failure.
        """

    @abstractmethod
    def generate_stream(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        attachments: Sequence[Attachment] = (),
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[TokenEvent]:
        """Stream a completion as token events.

        Yields a ``FilesInfoEvent`` first when attachments are present, then
        ``ContentEvent`` chunks in arrival order, then exactly one terminal
        event (``BranchDoneEvent`` or ``BranchErrorEvent``).  When
        *cancel_token* fires, the iterator stops without a terminal event
        and closes the underlying network stream.
        """
