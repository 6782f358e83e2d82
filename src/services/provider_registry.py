"""Lookup table of LLM provider adapters keyed by provider id."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import RequestValidationError

logger = structlog.get_logger(logger_name=__name__)


class ProviderRegistry:
    """Holds one adapter per provider id, in registration order."""

    def __init__(self, providers: Iterable[ILLMProvider] = ()) -> None:
        self._providers: dict[str, ILLMProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ILLMProvider) -> None:
        self._providers[provider.provider_id] = provider
        logger.debug(
            "provider_registered",
            provider=provider.provider_id,
            configured=provider.is_configured(),
        )

    def get(self, provider_id: str) -> ILLMProvider | None:
        return self._providers.get(provider_id)

    def require(self, provider_id: str) -> ILLMProvider:
        """Return the adapter or raise :class:`RequestValidationError`."""
        provider = self._providers.get(provider_id)
        if provider is None:
            raise RequestValidationError(
                f"Proveedor desconocido: {provider_id}. "
                f"Proveedores disponibles: {', '.join(self._providers)}"
            )
        return provider

    def ids(self) -> list[str]:
        return list(self._providers)

    def configured_ids(self) -> list[str]:
        return [pid for pid, provider in self._providers.items() if provider.is_configured()]

    def models_by_provider(self) -> dict[str, list[str]]:
        return {pid: provider.list_models() for pid, provider in self._providers.items()}

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self):
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
