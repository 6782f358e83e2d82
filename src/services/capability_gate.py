"""Capability gate: decides whether a model may receive a given attachment.

Every function here is pure.  The decision is made against the static
table in :mod:`src.config.model_capabilities`; reasons are the Spanish
user-facing strings shown in the response box when a branch is degraded
to text-only.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from src.config.model_capabilities import IMAGE_FORMATS, get_model_capabilities
from src.models.attachment import Attachment

_MB = 1024 * 1024

# Representative sizes used when probing capabilities without a real file.
_PROBE_PDF_BYTES = 5 * _MB
_PROBE_OTHER_BYTES = 2 * _MB

GENERIC_IMAGE_KIND = "image"


class CapabilityDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str | None = None

    def to_wire(self) -> dict:
        body: dict = {"canProcess": self.allowed}
        if self.reason:
            body["reason"] = self.reason
        return body


_ALLOWED = CapabilityDecision(allowed=True)


def can_process(model_id: str, attachment_kind: str, size_bytes: int) -> CapabilityDecision:
    """Decide whether *model_id* may receive an attachment of this kind and size.

    ``attachment_kind`` is a specific image format (``jpeg``, ``png``, ...),
    the generic ``image`` (format already validated at upload, so the
    format check is skipped), or ``pdf``.  A size of 0 skips the size check.
    """
    caps = get_model_capabilities(model_id)
    kind = attachment_kind.lower()

    if kind == GENERIC_IMAGE_KIND or kind in IMAGE_FORMATS:
        if not caps.supports_vision:
            return CapabilityDecision(
                allowed=False,
                reason=f"El modelo {model_id} no soporta análisis de imágenes",
            )
        if caps.max_image_mb and size_bytes > caps.max_image_mb * _MB:
            return CapabilityDecision(
                allowed=False,
                reason=(
                    f"La imagen excede el tamaño máximo de {caps.max_image_mb}MB "
                    f"para {model_id}"
                ),
            )
        if kind != GENERIC_IMAGE_KIND and caps.image_formats and kind not in caps.image_formats:
            return CapabilityDecision(
                allowed=False,
                reason=f"El modelo {model_id} no soporta el formato {attachment_kind}",
            )
        return _ALLOWED

    if kind == "pdf":
        if not caps.supports_pdf:
            return CapabilityDecision(
                allowed=False,
                reason=f"El modelo {model_id} no soporta análisis de PDFs",
            )
        if caps.max_pdf_mb and size_bytes > caps.max_pdf_mb * _MB:
            return CapabilityDecision(
                allowed=False,
                reason=(
                    f"El PDF excede el tamaño máximo de {caps.max_pdf_mb}MB "
                    f"para {model_id}"
                ),
            )
        return _ALLOWED

    return CapabilityDecision(
        allowed=False,
        reason=f"Tipo de archivo {attachment_kind} no soportado",
    )


def check_attachments(model_id: str, attachments: Iterable[Attachment]) -> list[str]:
    """Return one ``"<model>: <reason>"`` warning per attachment the model rejects."""
    warnings: list[str] = []
    for attachment in attachments:
        decision = can_process(model_id, attachment.gate_kind, attachment.size_bytes)
        if not decision.allowed:
            warnings.append(f"{model_id}: {decision.reason}")
    return warnings


def best_model_for_attachments(
    models: Sequence[str],
    attachments: Sequence[Attachment],
    requested: str | None = None,
) -> str:
    """Pick the model that can take every attachment.

    Keeps *requested* when it already qualifies, otherwise returns the first
    qualifying model in *models* (the provider's priority order).  When none
    qualifies the request is left as it was: *requested*, or ``models[0]``.
    """
    fallback = requested or (models[0] if models else "")
    if not attachments:
        return fallback
    if requested and not check_attachments(requested, attachments):
        return requested
    for model_id in models:
        if not check_attachments(model_id, attachments):
            return model_id
    return fallback


def capability_matrix(
    models: Iterable[str],
    file_types: Iterable[str],
) -> dict[str, dict[str, CapabilityDecision]]:
    """Probe every (model, file type) pair at a representative size."""
    file_types = list(file_types)
    return {
        model_id: {
            file_type: can_process(
                model_id,
                file_type,
                _PROBE_PDF_BYTES if file_type.lower() == "pdf" else _PROBE_OTHER_BYTES,
            )
            for file_type in file_types
        }
        for model_id in models
    }
