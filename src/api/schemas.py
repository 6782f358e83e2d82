"""Pydantic request/response schemas for the comparison API.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# These Pydantic models define the *shape* of every HTTP request body
# and response body in the API.  The wire format is camelCase
# (``fileIds``, ``autoSelectModel``), so every request model uses
# ``alias_generator=to_camel``; Python code still reads snake_case.
#
# ``prompt`` is deliberately optional here: a missing prompt must be a
# 400 with the service's own message, not FastAPI's generic 422.
#
# Convention: Request schemas end with "Request", response schemas
# end with "Response".
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.generation import BranchSelection
from src.utils.errors import RequestValidationError

SINGLE_PROVIDERS: tuple[str, ...] = ("openai", "anthropic", "gemini", "grok")
DUAL_MODE = "dual"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SelectionInput(_CamelModel):
    """One branch in the ``selections`` list."""

    provider: str
    model: str | None = None
    temperature: float | None = None


class GenerateRequest(_CamelModel):
    """Body of ``POST /api/llm/generate``.

    Either ``selections`` (any number of branches) or the legacy two-box
    fields (``firstProvider``/``secondProvider`` plus per-provider model
    and temperature) describe the branches.
    """

    prompt: str | None = None
    file_ids: list[str] = Field(default_factory=list)
    selections: list[SelectionInput] | None = None
    auto_select_model: bool | None = None

    # Legacy two-box fields.
    first_provider: str | None = None
    second_provider: str | None = None
    openai_model: str | None = None
    gemini_model: str | None = None
    anthropic_model: str | None = None
    grok_model: str | None = None
    openai_temperature: float | None = None
    gemini_temperature: float | None = None
    anthropic_temperature: float | None = None
    grok_temperature: float | None = None

    def legacy_model(self, provider_id: str) -> str | None:
        return getattr(self, f"{provider_id}_model", None)

    def legacy_temperature(self, provider_id: str) -> float | None:
        return getattr(self, f"{provider_id}_temperature", None)

    def to_selections(
        self,
        default_temperature: float,
        first_default: str = "openai",
        second_default: str = "anthropic",
        fallback_temperature: float | None = None,
    ) -> list[BranchSelection]:
        """Resolve the request into branch selections (not yet validated)."""
        if self.selections is not None:
            return [
                BranchSelection(
                    provider_id=s.provider,
                    model_id=s.model or None,
                    temperature=_first_set(s.temperature, fallback_temperature, default_temperature),
                )
                for s in self.selections
            ]

        providers = [
            self.first_provider or first_default,
            self.second_provider or second_default,
        ]
        return [
            BranchSelection(
                provider_id=provider_id,
                model_id=self.legacy_model(provider_id),
                temperature=_first_set(
                    self.legacy_temperature(provider_id),
                    fallback_temperature,
                    default_temperature,
                ),
            )
            for provider_id in providers
        ]


class StreamRequest(GenerateRequest):
    """Body of ``POST /api/llm/stream``.

    ``provider`` picks single-provider mode (``openai``, ``anthropic``,
    ``gemini``, ``grok``) or multi-branch mode (``dual``).
    """

    provider: str | None = None
    model: str | None = None
    temperature: float | None = None

    @property
    def is_single(self) -> bool:
        return self.provider in SINGLE_PROVIDERS

    def to_stream_selections(
        self,
        default_temperature: float,
        first_default: str = "openai",
        second_default: str = "anthropic",
    ) -> list[BranchSelection]:
        if self.provider not in (*SINGLE_PROVIDERS, DUAL_MODE):
            raise RequestValidationError(
                "Provider debe ser: openai, anthropic, gemini, grok o dual"
            )
        if self.is_single:
            return [
                BranchSelection(
                    provider_id=self.provider,
                    model_id=self.model or self.legacy_model(self.provider),
                    temperature=_first_set(
                        self.temperature,
                        self.legacy_temperature(self.provider),
                        default_temperature,
                    ),
                )
            ]
        return self.to_selections(
            default_temperature,
            first_default=first_default,
            second_default=second_default,
            fallback_temperature=self.temperature,
        )


class CheckCapabilitiesRequest(_CamelModel):
    models: list[str] | None = None
    file_types: list[str] | None = None


class ApiResponse(BaseModel):
    """Standard ``{success, data?, error?, message?}`` envelope."""

    success: bool = True
    data: Any = None
    error: str | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    timestamp: str
    environment: str
    message: str
    providers: dict[str, bool]


def _first_set(*values: float | None) -> float:
    for value in values:
        if value is not None:
            return value
    return 0.7
