"""Branch planning shared by the streaming and synchronous paths.

Planning happens before anything touches the network:

1. Validate the request (prompt present, at least one selection, known
   providers, temperatures within ``[0, 1]``).  Any failure raises
   :class:`RequestValidationError` and no branch is launched.
2. Resolve each branch's model.  With auto-substitution on, a model that
   cannot take the attachments is replaced by the first model of the same
   provider that can.
3. Gate the attachments, all or nothing: if the chosen model rejects any
   attachment, the branch gets none of them and one warning per rejected
   attachment.  The branch still runs, text-only.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.models.attachment import Attachment
from src.models.generation import BranchSelection
from src.services.capability_gate import best_model_for_attachments, check_attachments
from src.services.provider_registry import ProviderRegistry
from src.utils.errors import RequestValidationError

logger = structlog.get_logger(logger_name=__name__)


class BranchPlan(BaseModel):
    """Everything one branch needs to run, decided up front."""

    model_config = ConfigDict(frozen=True)

    branch_index: int
    provider_id: str
    requested_model: str
    model_id: str
    temperature: float
    # Attachments this branch will actually send (empty when gated out).
    attachments: list[Attachment] = Field(default_factory=list)
    # Attachments the caller supplied, echoed on failure.
    offered: list[Attachment] = Field(default_factory=list)
    file_warnings: list[str] = Field(default_factory=list)

    @property
    def model_changed(self) -> bool:
        return self.model_id != self.requested_model

    @property
    def files_processed(self) -> bool:
        return bool(self.attachments)


class BranchPlanner:
    """Validates selections and turns them into :class:`BranchPlan` values."""

    def __init__(
        self,
        registry: ProviderRegistry,
        auto_substitute: bool = True,
        default_models: Mapping[str, str] | None = None,
    ) -> None:
        self._registry = registry
        self._auto_substitute = auto_substitute
        self._default_models = dict(default_models or {})

    def default_model(self, provider_id: str, models: Sequence[str]) -> str:
        """Configured default when the provider offers it, else its first model."""
        configured = self._default_models.get(provider_id)
        if configured and configured in models:
            return configured
        return models[0] if models else ""

    def validate(self, prompt: str | None, selections: Sequence[BranchSelection]) -> None:
        if not prompt or not prompt.strip():
            raise RequestValidationError("El prompt es requerido")
        if not selections:
            raise RequestValidationError("Se requiere al menos un proveedor")
        for selection in selections:
            self._registry.require(selection.provider_id)
            if not 0.0 <= selection.temperature <= 1.0:
                raise RequestValidationError(
                    f"La temperatura debe estar entre 0 y 1 (recibido {selection.temperature})",
                    provider_name=selection.provider_id,
                )

    def plan(
        self,
        selections: Sequence[BranchSelection],
        attachments: Sequence[Attachment] = (),
        auto_substitute: bool | None = None,
    ) -> list[BranchPlan]:
        substitute = self._auto_substitute if auto_substitute is None else auto_substitute
        attachments = list(attachments)
        plans: list[BranchPlan] = []

        for index, selection in enumerate(selections):
            provider = self._registry.require(selection.provider_id)
            models = provider.list_models()
            requested = selection.model_id or self.default_model(selection.provider_id, models)

            model_id = requested
            if substitute and attachments:
                model_id = best_model_for_attachments(models, attachments, requested)
                if model_id != requested:
                    logger.info(
                        "model_substituted",
                        branch=index,
                        provider=selection.provider_id,
                        requested_model=requested,
                        model=model_id,
                    )

            warnings = check_attachments(model_id, attachments)
            if warnings:
                logger.info(
                    "attachments_gated",
                    branch=index,
                    provider=selection.provider_id,
                    model=model_id,
                    rejected=len(warnings),
                )

            plans.append(
                BranchPlan(
                    branch_index=index,
                    provider_id=selection.provider_id,
                    requested_model=requested,
                    model_id=model_id,
                    temperature=selection.temperature,
                    attachments=[] if warnings else attachments,
                    offered=attachments,
                    file_warnings=warnings,
                )
            )
        return plans
