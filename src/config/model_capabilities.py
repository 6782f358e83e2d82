"""Static per-model file capability table.

Pure data plus a default-deny lookup.  Sizes are in megabytes.  Any model
id missing from :data:`MODEL_CAPABILITIES` is treated as text-only, so a
newly added model never receives attachments until it is listed here.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

IMAGE_FORMATS: tuple[str, ...] = ("jpeg", "jpg", "png", "gif", "webp")


class ModelCapabilities(BaseModel):
    """What one model accepts in addition to plain text."""

    model_config = ConfigDict(frozen=True)

    supports_vision: bool = False
    supports_pdf: bool = False
    max_image_mb: int | None = None
    max_pdf_mb: int | None = None
    image_formats: tuple[str, ...] = ()


_TEXT_ONLY = ModelCapabilities()


MODEL_CAPABILITIES: dict[str, ModelCapabilities] = {
    # OpenAI
    "gpt-4o-mini-2024-07-18": ModelCapabilities(
        supports_vision=True,
        max_image_mb=20,
        image_formats=IMAGE_FORMATS,
    ),
    "gpt-3.5-turbo-0125": _TEXT_ONLY,
    # Google
    "gemini-2.0-flash-lite": ModelCapabilities(
        supports_vision=True,
        supports_pdf=True,
        max_image_mb=10,
        max_pdf_mb=20,
        image_formats=IMAGE_FORMATS,
    ),
    "gemini-2.0-flash": ModelCapabilities(
        supports_vision=True,
        supports_pdf=True,
        max_image_mb=15,
        max_pdf_mb=30,
        image_formats=IMAGE_FORMATS,
    ),
    # Anthropic
    "claude-3-5-haiku-latest": ModelCapabilities(
        supports_vision=True,
        supports_pdf=True,
        max_image_mb=5,
        max_pdf_mb=10,
        image_formats=IMAGE_FORMATS,
    ),
    "claude-3-5-sonnet-20240620": ModelCapabilities(
        supports_vision=True,
        supports_pdf=True,
        max_image_mb=5,
        max_pdf_mb=10,
        image_formats=IMAGE_FORMATS,
    ),
    # xAI
    "grok-3-mini-fast": ModelCapabilities(
        supports_pdf=True,
        max_pdf_mb=25,
    ),
    "grok-2-vision-1212": ModelCapabilities(
        supports_vision=True,
        supports_pdf=True,
        max_image_mb=20,
        max_pdf_mb=25,
        image_formats=IMAGE_FORMATS,
    ),
}


def get_model_capabilities(model_id: str) -> ModelCapabilities:
    """Return the capabilities for *model_id*, or a text-only record if unknown."""
    return MODEL_CAPABILITIES.get(model_id, _TEXT_ONLY)
