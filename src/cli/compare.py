# =============================================================================
# src/cli/compare.py — CLI Compare Command (one prompt, many models)
# =============================================================================
#
# Standalone CLI tool that sends one prompt to several providers and prints
# their answers, without going through the HTTP server.  It drives the same
# planner, fan-out orchestrator and synchronous aggregator the API uses.
#
# Typical usage:
#   python -m src.cli.compare "Explain RAID 5"                      # openai vs anthropic
#   python -m src.cli.compare "Hi" -b gemini -b grok:grok-3-mini-fast:0.2
#   python -m src.cli.compare "Describe it" -f photo.png --sync --json
#
# Branch syntax:  provider[:model[:temperature]]
#
# Output modes:
#   - Text (default): a single branch streams straight to stdout; with more
#     branches each answer is printed as a block once that branch finishes.
#   - JSON (--json): one JSON object per event (streaming) or the whole
#     branchResults list (--sync), on stdout.
#
# Logs always go to stderr.  Ctrl-C cancels every in-flight branch.
# =============================================================================

"""Compare several LLM providers on one prompt from the command line.

Usage::

    python -m src.cli.compare "prompt" [-b provider[:model[:temp]] ...]
                                        [-f file ...] [--sync] [--json]
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path
from typing import TextIO

from src.api.sse import SseEncoder
from src.config.loader import default_models, load_config
from src.config.settings import Settings
from src.models.attachment import Attachment
from src.models.generation import (
    AllDoneEvent,
    BranchDoneEvent,
    BranchErrorEvent,
    BranchSelection,
    ContentEvent,
    FileWarningsEvent,
    ModelChangedEvent,
)
from src.pipeline.aggregator import SyncAggregator
from src.pipeline.cancellation import CancellationToken
from src.pipeline.fan_out import FanOutOrchestrator
from src.providers.attachments.memory_attachment_store import MemoryAttachmentStore
from src.services.attachment_ingestion import AttachmentIngestionService
from src.services.branch_planner import BranchPlanner
from src.services.provider_registry import ProviderRegistry
from src.utils.errors import RequestValidationError, UnsupportedFileError
from src.utils.logging import configure_logging

_CONTENT_TYPE_MAP = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def parse_branch(value: str, default_temperature: float = 0.7) -> BranchSelection:
    """Parse ``provider[:model[:temperature]]`` into a selection."""
    parts = value.split(":")
    if not parts[0] or len(parts) > 3:
        raise argparse.ArgumentTypeError(f"Rama inválida: {value!r}")

    model = parts[1] if len(parts) > 1 and parts[1] else None
    temperature = default_temperature
    if len(parts) == 3:
        try:
            temperature = float(parts[2])
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"Temperatura inválida: {parts[2]!r}") from exc

    return BranchSelection(provider_id=parts[0], model_id=model, temperature=temperature)


def build_registry(settings: Settings) -> ProviderRegistry:
    # Deferred so --help stays fast; the SDK imports are heavy.
    from src.providers.llm import (
        AnthropicLLMProvider,
        GeminiLLMProvider,
        GrokLLMProvider,
        OpenAILLMProvider,
    )

    return ProviderRegistry(
        [
            OpenAILLMProvider(settings=settings),
            AnthropicLLMProvider(settings=settings),
            GeminiLLMProvider(settings=settings),
            GrokLLMProvider(settings=settings),
        ]
    )


async def _load_files(
    ingestion: AttachmentIngestionService, paths: list[str], err: TextIO
) -> list[Attachment] | None:
    attachments: list[Attachment] = []
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            print(f"Error: archivo no encontrado: {path}", file=err)
            return None
        content_type = _CONTENT_TYPE_MAP.get(path.suffix.lower())
        try:
            attachments.append(
                await ingestion.ingest(path.name, content_type, path.read_bytes())
            )
        except UnsupportedFileError as exc:
            print(f"Error: {path.name}: {exc.message}", file=err)
            return None
    return attachments


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------


async def _run_sync(
    aggregator: SyncAggregator,
    prompt: str,
    attachments: list[Attachment],
    selections: list[BranchSelection],
    json_output: bool,
    out: TextIO,
) -> int:
    result = await aggregator.generate_all(prompt, attachments, selections)
    wire = [r.to_wire() for r in result.branch_results]

    if json_output:
        print(json.dumps({"branchResults": wire}, ensure_ascii=False, indent=2), file=out)
    else:
        for r in result.branch_results:
            print(f"=== [{r.branch_index}] {r.provider_id} · {r.model_id_used} ===", file=out)
            if r.model_changed:
                print(f"(modelo cambiado desde {r.requested_model})", file=out)
            for warning in r.file_warnings:
                print(f"(aviso: {warning})", file=out)
            print(r.response_text if r.success else f"Error: {r.error_message}", file=out)
            print(file=out)

    return 0 if any(r.success for r in result.branch_results) else 1


async def _run_stream(
    orchestrator: FanOutOrchestrator,
    prompt: str,
    attachments: list[Attachment],
    selections: list[BranchSelection],
    json_output: bool,
    out: TextIO,
    token: CancellationToken,
) -> int:
    run = orchestrator.prepare(prompt, selections, attachments, cancel_token=token)
    encoder = SseEncoder(run.plans, single=len(run.plans) == 1)
    live = len(run.plans) == 1 and not json_output
    buffers: dict[int, list[str]] = {plan.branch_index: [] for plan in run.plans}
    failures = 0

    async for event in run.events():
        if json_output:
            body = encoder.to_body(event)
            if body is not None:
                print(json.dumps(body, ensure_ascii=False), file=out, flush=True)
            if isinstance(event, BranchErrorEvent):
                failures += 1
            continue

        index = event.branch_index if event.branch_index is not None else 0
        if isinstance(event, ContentEvent):
            if live:
                out.write(event.text)
                out.flush()
            else:
                buffers[index].append(event.text)
        elif isinstance(event, (ModelChangedEvent, FileWarningsEvent)):
            if isinstance(event, ModelChangedEvent):
                notes = [f"(modelo cambiado: {event.requested_model} → {event.model})\n"]
            else:
                notes = [f"(aviso: {w})\n" for w in event.warnings]
            if live:
                out.write("".join(notes))
            else:
                buffers[index].extend(notes)
        elif isinstance(event, BranchErrorEvent):
            failures += 1
            if live:
                print(f"\nError: {event.message}", file=out)
            else:
                buffers[index].append(f"Error: {event.message}")
        if isinstance(event, (BranchDoneEvent, BranchErrorEvent)) and not live:
            plan = run.plans[index]
            print(f"=== [{index}] {encoder.tag(index)} · {plan.model_id} ===", file=out)
            print("".join(buffers[index]), file=out)
            print(file=out, flush=True)
        elif isinstance(event, AllDoneEvent) and live:
            print(file=out)

    if token.cancelled:
        return 130
    return 0 if failures < len(run.plans) else 1


async def run_compare(
    args: argparse.Namespace,
    settings: Settings,
    registry: ProviderRegistry | None = None,
    out: TextIO = sys.stdout,
    err: TextIO = sys.stderr,
) -> int:
    """Execute one comparison; returns the process exit code."""
    registry = registry or build_registry(settings)
    config = load_config(settings=settings)
    planner = BranchPlanner(
        registry,
        auto_substitute=not args.no_substitute and settings.auto_substitute_models,
        default_models=default_models(config),
    )
    ingestion = AttachmentIngestionService(
        MemoryAttachmentStore(), max_file_bytes=settings.upload_max_file_bytes
    )

    attachments = await _load_files(ingestion, args.files, err)
    if attachments is None:
        return 2

    selections = args.branches or [
        BranchSelection(provider_id=p, temperature=settings.default_temperature)
        for p in (
            (config.get("dual") or {}).get("first_provider", "openai"),
            (config.get("dual") or {}).get("second_provider", "anthropic"),
        )
    ]

    try:
        if args.sync:
            planner.validate(args.prompt, selections)
            return await _run_sync(
                SyncAggregator(registry, planner),
                args.prompt,
                attachments,
                selections,
                args.json_output,
                out,
            )

        orchestrator = FanOutOrchestrator(
            registry, planner, idle_timeout_seconds=settings.branch_idle_timeout_seconds
        )
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        # add_signal_handler is unavailable on some platforms (Windows).
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, token.cancel, "keyboard_interrupt")
        try:
            return await _run_stream(
                orchestrator,
                args.prompt,
                attachments,
                selections,
                args.json_output,
                out,
                token,
            )
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)
    except RequestValidationError as exc:
        print(f"Error: {exc.message}", file=err)
        return 2


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _build_parser(default_temperature: float = 0.7) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.compare",
        description="Send one prompt to several LLM providers and compare the answers.",
    )
    parser.add_argument("prompt", type=str, help="Prompt sent to every branch.")
    parser.add_argument(
        "--branch", "-b",
        dest="branches",
        action="append",
        type=lambda s: parse_branch(s, default_temperature),
        default=None,
        help="provider[:model[:temperature]]; repeat for more branches.",
    )
    parser.add_argument(
        "--file", "-f",
        dest="files",
        action="append",
        default=[],
        help="Image or PDF attached to the prompt; may be repeated.",
    )
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Wait for every branch and print all answers together.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print JSON instead of text.",
    )
    parser.add_argument(
        "--no-substitute",
        action="store_true",
        help="Never swap a model that cannot read the attached files.",
    )
    return parser


async def _main(args: argparse.Namespace, settings: Settings) -> int:
    registry = build_registry(settings)
    try:
        return await run_compare(args, settings, registry)
    finally:
        for provider in registry:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()


def main(argv: list[str] | None = None) -> None:
    settings = Settings()
    configure_logging(log_level=settings.log_level, stream=sys.stderr)

    args = _build_parser(settings.default_temperature).parse_args(argv)
    sys.exit(asyncio.run(_main(args, settings)))


if __name__ == "__main__":
    main()
