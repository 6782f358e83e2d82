"""Unit tests for the synchronous aggregator."""

from __future__ import annotations

import pytest

from src.models.attachment import Attachment
from src.models.generation import BranchSelection
from src.pipeline.aggregator import SyncAggregator
from src.services.branch_planner import BranchPlanner
from src.services.provider_registry import ProviderRegistry
from src.utils.errors import RequestValidationError
from tests.conftest import FakeLLMProvider


@pytest.fixture
def aggregator(registry: ProviderRegistry) -> SyncAggregator:
    return SyncAggregator(registry, BranchPlanner(registry))


class TestSyncAggregator:
    @pytest.mark.asyncio
    async def test_results_in_selection_order(self, aggregator: SyncAggregator) -> None:
        result = await aggregator.generate_all(
            "hola",
            [],
            [
                BranchSelection(provider_id="anthropic", temperature=0.2),
                BranchSelection(provider_id="openai", temperature=0.8),
            ],
        )
        branches = result.branch_results
        assert [b.provider_id for b in branches] == ["anthropic", "openai"]
        assert [b.branch_index for b in branches] == [0, 1]
        assert branches[0].response_text == "Hola desde Claude"
        assert branches[1].temperature_used == 0.8
        assert all(b.success for b in branches)

    @pytest.mark.asyncio
    async def test_failed_branch_keeps_its_slot(
        self, aggregator: SyncAggregator, openai_fake: FakeLLMProvider
    ) -> None:
        openai_fake.error = "API Key de OpenAI inválida"
        result = await aggregator.generate_all(
            "hola",
            [],
            [BranchSelection(provider_id="openai"), BranchSelection(provider_id="grok")],
        )
        failed, ok = result.branch_results
        assert failed.success is False
        assert failed.to_wire()["response"] == "API Key de OpenAI inválida"
        assert ok.success is True

    @pytest.mark.asyncio
    async def test_crash_is_folded_into_result(
        self,
        aggregator: SyncAggregator,
        grok_fake: FakeLLMProvider,
        pdf_attachment: Attachment,
    ) -> None:
        grok_fake.crash = RuntimeError("connection reset")
        result = await aggregator.generate_all(
            "hola",
            [pdf_attachment],
            [BranchSelection(provider_id="grok"), BranchSelection(provider_id="anthropic")],
        )
        crashed, ok = result.branch_results
        assert crashed.success is False
        assert crashed.error_message == "connection reset"
        assert [f.display_name for f in crashed.attached_files] == ["informe.pdf"]
        assert ok.success is True
        assert ok.files_processed is True

    @pytest.mark.asyncio
    async def test_model_substitution_reported(
        self, aggregator: SyncAggregator, image_attachment: Attachment
    ) -> None:
        result = await aggregator.generate_all(
            "describe",
            [image_attachment],
            [BranchSelection(provider_id="grok", model_id="grok-3-mini-fast")],
        )
        wire = result.branch_results[0].to_wire()
        assert wire["model"] == "grok-2-vision-1212"
        assert wire["requestedModel"] == "grok-3-mini-fast"
        assert wire["filesProcessed"] is True
        assert wire["attachedFiles"] == [{"name": "foto.png", "type": "image"}]

    @pytest.mark.asyncio
    async def test_gated_branch_reports_warnings(
        self, aggregator: SyncAggregator, openai_fake: FakeLLMProvider, pdf_attachment: Attachment
    ) -> None:
        result = await aggregator.generate_all(
            "resume", [pdf_attachment], [BranchSelection(provider_id="openai")]
        )
        wire = result.branch_results[0].to_wire()
        assert wire["success"] is True
        assert wire["filesProcessed"] is False
        assert len(wire["fileWarnings"]) == 1
        assert openai_fake.calls[0]["attachments"] == []

    @pytest.mark.asyncio
    async def test_validation_happens_before_any_call(
        self, aggregator: SyncAggregator, openai_fake: FakeLLMProvider
    ) -> None:
        with pytest.raises(RequestValidationError):
            await aggregator.generate_all("", [], [BranchSelection(provider_id="openai")])
        assert openai_fake.calls == []
