"""Unit tests for the compare CLI — src.cli.compare."""

from __future__ import annotations

import argparse
import io
import json
from argparse import Namespace
from pathlib import Path

import pytest

from src.cli.compare import _build_parser, parse_branch, run_compare
from src.config.settings import Settings
from src.services.provider_registry import ProviderRegistry
from tests.conftest import FakeLLMProvider


def _args(**overrides) -> Namespace:
    defaults = {
        "prompt": "hola",
        "branches": None,
        "files": [],
        "sync": False,
        "json_output": False,
        "no_substitute": False,
    }
    defaults.update(overrides)
    return Namespace(**defaults)


class TestParseBranch:
    def test_provider_only(self) -> None:
        selection = parse_branch("gemini")
        assert selection.provider_id == "gemini"
        assert selection.model_id is None
        assert selection.temperature == 0.7

    def test_provider_model_temperature(self) -> None:
        selection = parse_branch("grok:grok-3-mini-fast:0.2")
        assert (selection.provider_id, selection.model_id, selection.temperature) == (
            "grok",
            "grok-3-mini-fast",
            0.2,
        )

    def test_empty_model_keeps_default(self) -> None:
        selection = parse_branch("openai::0.1", default_temperature=0.5)
        assert selection.model_id is None
        assert selection.temperature == 0.1

    @pytest.mark.parametrize("value", ["", ":model", "a:b:c:d", "openai:m:hot"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            parse_branch(value)

    def test_parser_collects_repeated_branches(self) -> None:
        args = _build_parser().parse_args(["hola", "-b", "openai", "-b", "grok:grok-3-mini-fast"])
        assert [b.provider_id for b in args.branches] == ["openai", "grok"]
        assert args.sync is False


class TestRunCompare:
    @pytest.mark.asyncio
    async def test_default_pair_streams_blocks(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        out, err = io.StringIO(), io.StringIO()
        code = await run_compare(_args(), settings, registry, out=out, err=err)

        text = out.getvalue()
        assert code == 0
        assert "=== [0] openai · gpt-4o-mini-2024-07-18 ===" in text
        assert "Hola desde OpenAI" in text
        assert "Hola desde Claude" in text

    @pytest.mark.asyncio
    async def test_single_branch_streams_live(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        out = io.StringIO()
        code = await run_compare(
            _args(branches=[parse_branch("grok")]), settings, registry, out=out
        )
        assert code == 0
        assert out.getvalue().startswith("Hola desde Grok")

    @pytest.mark.asyncio
    async def test_json_stream_emits_one_object_per_line(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        out = io.StringIO()
        await run_compare(
            _args(branches=[parse_branch("openai"), parse_branch("grok")], json_output=True),
            settings,
            registry,
            out=out,
        )
        lines = [json.loads(line) for line in out.getvalue().splitlines()]
        assert lines[-1] == {"done": True}
        assert sum(1 for line in lines if line.get("branchDone")) == 2

    @pytest.mark.asyncio
    async def test_sync_json(self, settings: Settings, registry: ProviderRegistry) -> None:
        out = io.StringIO()
        code = await run_compare(
            _args(sync=True, json_output=True, branches=[parse_branch("anthropic")]),
            settings,
            registry,
            out=out,
        )
        payload = json.loads(out.getvalue())
        assert code == 0
        assert payload["branchResults"][0]["response"] == "Hola desde Claude"

    @pytest.mark.asyncio
    async def test_all_branches_failing_exits_1(
        self, settings: Settings, registry: ProviderRegistry, openai_fake: FakeLLMProvider
    ) -> None:
        openai_fake.error = "boom"
        code = await run_compare(
            _args(sync=True, branches=[parse_branch("openai")]),
            settings,
            registry,
            out=io.StringIO(),
        )
        assert code == 1

    @pytest.mark.asyncio
    async def test_validation_error_exits_2(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        err = io.StringIO()
        code = await run_compare(
            _args(branches=[parse_branch("openai::5")]), settings, registry, out=io.StringIO(), err=err
        )
        assert code == 2
        assert "La temperatura debe estar entre 0 y 1" in err.getvalue()

    @pytest.mark.asyncio
    async def test_attached_file(
        self,
        settings: Settings,
        registry: ProviderRegistry,
        anthropic_fake: FakeLLMProvider,
        tmp_path: Path,
        pdf_bytes: bytes,
    ) -> None:
        pdf = tmp_path / "doc.pdf"
        pdf.write_bytes(pdf_bytes)
        await run_compare(
            _args(sync=True, files=[str(pdf)], branches=[parse_branch("anthropic")]),
            settings,
            registry,
            out=io.StringIO(),
        )
        sent = anthropic_fake.calls[0]["attachments"]
        assert [a.display_name for a in sent] == ["doc.pdf"]

    @pytest.mark.asyncio
    async def test_missing_file_exits_2(
        self, settings: Settings, registry: ProviderRegistry, tmp_path: Path
    ) -> None:
        err = io.StringIO()
        code = await run_compare(
            _args(files=[str(tmp_path / "nope.png")]), settings, registry, out=io.StringIO(), err=err
        )
        assert code == 2
        assert "archivo no encontrado" in err.getvalue()
