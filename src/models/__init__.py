"""Domain models — re-exports all public model classes.

Models are split by concern:
    - attachment.py — uploaded files (images, PDFs) and their summaries
    - generation.py — branch selections, results, and streaming token events

Import from ``src.models`` rather than the submodules where convenient.
"""

from __future__ import annotations

from src.models.attachment import Attachment, AttachmentKind, AttachmentSummary
from src.models.generation import (
    AggregateResult,
    AllDoneEvent,
    BranchDoneEvent,
    BranchErrorEvent,
    BranchResult,
    BranchSelection,
    BranchState,
    ContentEvent,
    FilesInfoEvent,
    FileWarningsEvent,
    ModelChangedEvent,
    ProviderResult,
    TokenEvent,
)

__all__ = [
    "AggregateResult",
    "AllDoneEvent",
    "Attachment",
    "AttachmentKind",
    "AttachmentSummary",
    "BranchDoneEvent",
    "BranchErrorEvent",
    "BranchResult",
    "BranchSelection",
    "BranchState",
    "ContentEvent",
    "FileWarningsEvent",
    "FilesInfoEvent",
    "ModelChangedEvent",
    "ProviderResult",
    "TokenEvent",
]
