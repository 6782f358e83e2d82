"""Server-sent-event framing for the streaming endpoint.

Turns :data:`TokenEvent` values into ``data: <json>\\n\\n`` frames in the
wire shapes the two-box UI understands.  Two modes exist:

    - single mode (one provider): ``{"content": ..., "provider": ...}``
      chunks and a final ``{"done": true, "provider", "model", "temperature"}``
    - multi mode (``provider="dual"``): chunks keyed by the branch tag,
      ``{"<tag>": ..., "branch": i}``, a ``branchDone`` frame per branch
      and a final ``{"done": true}``

The branch tag is the provider id, suffixed with ``_<index>`` when two
branches share a provider.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Sequence
from typing import Any

from src.models.generation import (
    AllDoneEvent,
    BranchDoneEvent,
    BranchErrorEvent,
    ContentEvent,
    FilesInfoEvent,
    FileWarningsEvent,
    ModelChangedEvent,
    TokenEvent,
)
from src.services.branch_planner import BranchPlan


def format_sse(body: dict[str, Any]) -> str:
    return f"data: {json.dumps(body, ensure_ascii=False)}\n\n"


class SseEncoder:
    """Stateless per-request mapper from token events to SSE frames."""

    def __init__(self, plans: Sequence[BranchPlan], single: bool = False) -> None:
        self._plans = {plan.branch_index: plan for plan in plans}
        self._single = single
        counts = Counter(plan.provider_id for plan in plans)
        self._tags = {
            plan.branch_index: (
                f"{plan.provider_id}_{plan.branch_index}"
                if counts[plan.provider_id] > 1
                else plan.provider_id
            )
            for plan in plans
        }

    def tag(self, branch_index: int) -> str:
        return self._tags[branch_index]

    def encode(self, event: TokenEvent) -> str | None:
        """Return the frame for *event*, or ``None`` when nothing is sent."""
        body = self.to_body(event)
        return format_sse(body) if body is not None else None

    def to_body(self, event: TokenEvent) -> dict[str, Any] | None:
        if isinstance(event, AllDoneEvent):
            if self._single and self._plans:
                plan = next(iter(self._plans.values()))
                return {
                    "done": True,
                    "provider": plan.provider_id,
                    "model": plan.model_id,
                    "temperature": plan.temperature,
                }
            return {"done": True}

        index = event.branch_index if event.branch_index is not None else 0
        plan = self._plans.get(index)
        provider = plan.provider_id if plan else None

        if isinstance(event, ContentEvent):
            if self._single:
                return {"content": event.text, "provider": provider}
            return {self._tags.get(index, provider or "unknown"): event.text, "branch": index}

        if isinstance(event, FilesInfoEvent):
            return {
                "type": "files_info",
                "files": [f.to_wire() for f in event.files],
                "provider": provider,
                "branch": index,
            }

        if isinstance(event, ModelChangedEvent):
            return {
                "type": "model_changed",
                "provider": provider,
                "branch": index,
                "requestedModel": event.requested_model,
                "model": event.model,
            }

        if isinstance(event, FileWarningsEvent):
            return {
                "type": "file_warnings",
                "provider": provider,
                "branch": index,
                "warnings": list(event.warnings),
            }

        if isinstance(event, BranchErrorEvent):
            body: dict[str, Any] = {"error": event.message, "provider": provider}
            if not self._single:
                body["branch"] = index
            return body

        if isinstance(event, BranchDoneEvent):
            # Single mode reports completion only through the final frame.
            if self._single:
                return None
            return {"branchDone": True, "provider": provider, "branch": index}

        return None
