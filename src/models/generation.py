"""Request, result and streaming-event models for prompt generation.

A request fans one prompt out to N *branches*; each branch is described by
a :class:`BranchSelection` and produces either one :class:`BranchResult`
(synchronous path) or a sequence of :data:`TokenEvent` values (streaming
path).

Token events form a tagged union discriminated on ``kind``.  Provider
adapters emit them with ``branch_index=None``; the fan-out orchestrator
stamps the index with ``model_copy(update=...)`` before forwarding.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.models.attachment import AttachmentSummary


class BranchState(str, Enum):  # noqa: UP042
    """Lifecycle of one branch inside a streaming request.

    PENDING → STREAMING → one of COMPLETED / FAILED / CANCELLED.
    The last three are terminal.
    """

    PENDING = "PENDING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (BranchState.COMPLETED, BranchState.FAILED, BranchState.CANCELLED)


class BranchSelection(BaseModel):
    """One provider/model/temperature triple chosen by the caller.

    ``model_id=None`` means the provider's default model (configured in
    ``config.yaml``, else its first listed model).  The
    temperature range is checked by the orchestrator, not here, so that an
    out-of-range value surfaces as a request validation error.
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str
    model_id: str | None = None
    temperature: float = 0.7


class ProviderResult(BaseModel):
    """Outcome of a single non-streaming call to one provider."""

    model_config = ConfigDict(frozen=True)

    success: bool
    response_text: str | None = None
    model_id_used: str
    temperature_used: float
    attached_files: list[AttachmentSummary] | None = None
    error_message: str | None = None


class BranchResult(BaseModel):
    """A :class:`ProviderResult` placed in its branch slot with planning metadata."""

    model_config = ConfigDict(frozen=True)

    branch_index: int
    provider_id: str
    requested_model: str
    model_id_used: str
    temperature_used: float
    success: bool
    response_text: str | None = None
    error_message: str | None = None
    model_changed: bool = False
    files_processed: bool = False
    file_warnings: list[str] = Field(default_factory=list)
    attached_files: list[AttachmentSummary] | None = None

    def to_wire(self) -> dict:
        body: dict = {
            "branch": self.branch_index,
            "provider": self.provider_id,
            "success": self.success,
            # The response box shows the error text when the call failed.
            "response": self.response_text if self.success else (
                self.error_message or "Error desconocido"
            ),
            "model": self.model_id_used,
            "temperature": self.temperature_used,
            "filesProcessed": self.files_processed,
        }
        if self.model_changed:
            body["requestedModel"] = self.requested_model
        if self.file_warnings:
            body["fileWarnings"] = list(self.file_warnings)
        if self.attached_files:
            body["attachedFiles"] = [f.to_wire() for f in self.attached_files]
        return body


class AggregateResult(BaseModel):
    """All branch results of a synchronous request, in selection order."""

    model_config = ConfigDict(frozen=True)

    branch_results: list[BranchResult]


# ---------------------------------------------------------------------------
# Token events
# ---------------------------------------------------------------------------


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    branch_index: int | None = None

    @property
    def is_terminal(self) -> bool:
        return False


class ContentEvent(_EventBase):
    kind: Literal["content"] = "content"
    text: str


class FilesInfoEvent(_EventBase):
    kind: Literal["files_info"] = "files_info"
    files: list[AttachmentSummary]


class ModelChangedEvent(_EventBase):
    kind: Literal["model_changed"] = "model_changed"
    requested_model: str
    model: str


class FileWarningsEvent(_EventBase):
    kind: Literal["file_warnings"] = "file_warnings"
    warnings: list[str]


class BranchDoneEvent(_EventBase):
    kind: Literal["branch_done"] = "branch_done"

    @property
    def is_terminal(self) -> bool:
        return True


class BranchErrorEvent(_EventBase):
    kind: Literal["branch_error"] = "branch_error"
    message: str

    @property
    def is_terminal(self) -> bool:
        return True


class AllDoneEvent(_EventBase):
    kind: Literal["all_done"] = "all_done"


TokenEvent = Annotated[
    Union[  # noqa: UP007
        ContentEvent,
        FilesInfoEvent,
        ModelChangedEvent,
        FileWarningsEvent,
        BranchDoneEvent,
        BranchErrorEvent,
        AllDoneEvent,
    ],
    Field(discriminator="kind"),
]
