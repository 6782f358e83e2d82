"""FastAPI API routes for the comparison service.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/llm/generate                     POST    All branches, one JSON answer
# /api/llm/stream                       POST    All branches, live SSE stream
# /api/llm/stream/{stream_id}/cancel    POST    Abort an in-flight stream
# /api/llm/models                       GET     Models per provider
# /api/upload/upload                    POST    Upload images / PDFs
# /api/upload/check-capabilities        POST    Model × file-type matrix
# /api/upload/file/{file_id}            GET     Fetch an uploaded file
# /api/upload/file/{file_id}            DELETE  Drop an uploaded file
# /api/statistics                       GET     Prompt counter
# /api/statistics/reset                 POST    Reset counter (not in prod)
# /api/health                           GET     Liveness + provider status
#
# DEPENDENCY INJECTION PATTERN:
# Each route function declares its dependencies as type-annotated params.
# FastAPI resolves these via Depends() which calls helper functions that
# read from app.state (populated at startup in main.py's _build_all).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from src.api.schemas import (
    ApiResponse,
    CheckCapabilitiesRequest,
    GenerateRequest,
    HealthResponse,
    StreamRequest,
)
from src.api.sse import SseEncoder
from src.config.settings import Settings
from src.interfaces.statistics_provider import IStatisticsProvider
from src.pipeline.aggregator import SyncAggregator
from src.pipeline.cancellation import CancellationToken
from src.pipeline.fan_out import FanOutOrchestrator, FanOutRun
from src.pipeline.stream_registry import StreamRegistry
from src.services.attachment_ingestion import AttachmentIngestionService
from src.services.capability_gate import capability_matrix
from src.services.provider_registry import ProviderRegistry
from src.utils.errors import (
    AttachmentMissingError,
    RequestValidationError,
    UnsupportedFileError,
)
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve services from app.state
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_config(request: Request) -> dict:
    return request.app.state.config


def _get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.provider_registry


def _get_orchestrator(request: Request) -> FanOutOrchestrator:
    return request.app.state.orchestrator


def _get_aggregator(request: Request) -> SyncAggregator:
    return request.app.state.aggregator


def _get_ingestion(request: Request) -> AttachmentIngestionService:
    return request.app.state.ingestion


def _get_statistics(request: Request) -> IStatisticsProvider:
    return request.app.state.statistics


def _get_streams(request: Request) -> StreamRegistry:
    return request.app.state.stream_registry


SettingsDep = Annotated[Settings, Depends(_get_settings)]
ConfigDep = Annotated[dict, Depends(_get_config)]
RegistryDep = Annotated[ProviderRegistry, Depends(_get_registry)]
OrchestratorDep = Annotated[FanOutOrchestrator, Depends(_get_orchestrator)]
AggregatorDep = Annotated[SyncAggregator, Depends(_get_aggregator)]
IngestionDep = Annotated[AttachmentIngestionService, Depends(_get_ingestion)]
StatisticsDep = Annotated[IStatisticsProvider, Depends(_get_statistics)]
StreamsDep = Annotated[StreamRegistry, Depends(_get_streams)]


def _dual_defaults(config: dict) -> tuple[str, str]:
    dual = config.get("dual") or {}
    return dual.get("first_provider", "openai"), dual.get("second_provider", "anthropic")


# ---------------------------------------------------------------------------
# Generation endpoints
# ---------------------------------------------------------------------------


@router.post("/llm/generate", response_model=ApiResponse, response_model_exclude_none=True)
async def generate(
    body: GenerateRequest,
    settings: SettingsDep,
    config: ConfigDep,
    aggregator: AggregatorDep,
    ingestion: IngestionDep,
    statistics: StatisticsDep,
) -> ApiResponse:
    """Run every branch once and return all answers together."""
    first, second = _dual_defaults(config)
    selections = body.to_selections(
        settings.default_temperature, first_default=first, second_default=second
    )
    attachments = await ingestion.resolve(body.file_ids)

    result = await aggregator.generate_all(
        body.prompt or "",
        attachments,
        selections,
        auto_substitute=body.auto_select_model,
    )
    await statistics.increment_prompt_count()

    return ApiResponse(
        data={"branchResults": [r.to_wire() for r in result.branch_results]},
    )


async def _watch_disconnect(request: Request, token: CancellationToken, poll: float) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            token.cancel("client_disconnected")
            return
        await asyncio.sleep(poll)


async def _event_stream(
    run: FanOutRun,
    encoder: SseEncoder,
    request: Request,
    streams: StreamRegistry,
    poll_seconds: float,
) -> AsyncIterator[str]:
    token = run.cancel_token
    watcher = asyncio.create_task(_watch_disconnect(request, token, poll_seconds))
    try:
        async for event in run.events():
            frame = encoder.encode(event)
            if frame is not None:
                yield frame
    finally:
        watcher.cancel()
        streams.close(token.stream_id)


@router.post("/llm/stream")
async def stream(
    body: StreamRequest,
    request: Request,
    settings: SettingsDep,
    config: ConfigDep,
    orchestrator: OrchestratorDep,
    ingestion: IngestionDep,
    statistics: StatisticsDep,
    streams: StreamsDep,
) -> StreamingResponse:
    """Stream every branch's tokens as server-sent events."""
    if not body.prompt or not body.prompt.strip():
        raise RequestValidationError("El prompt es requerido")

    first, second = _dual_defaults(config)
    selections = body.to_stream_selections(
        settings.default_temperature, first_default=first, second_default=second
    )
    attachments = await ingestion.resolve(body.file_ids)

    token = streams.open()
    try:
        run = orchestrator.prepare(
            body.prompt,
            selections,
            attachments,
            cancel_token=token,
            auto_substitute=body.auto_select_model,
        )
        await statistics.increment_prompt_count()
    except BaseException:
        streams.close(token.stream_id)
        raise

    encoder = SseEncoder(run.plans, single=body.is_single)

    return StreamingResponse(
        _event_stream(run, encoder, request, streams, settings.stream_disconnect_poll_seconds),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Stream-Id": token.stream_id or "",
        },
        # Also unregisters the token when the client leaves before the first frame.
        background=BackgroundTask(streams.close, token.stream_id),
    )


@router.post("/llm/stream/{stream_id}/cancel", response_model=ApiResponse, response_model_exclude_none=True)
async def cancel_stream(stream_id: str, streams: StreamsDep) -> ApiResponse:
    if not streams.cancel(stream_id):
        raise HTTPException(status_code=404, detail="Stream no encontrado")
    return ApiResponse(message="Stream cancelado")


@router.get("/llm/models", response_model=ApiResponse, response_model_exclude_none=True)
async def list_models(registry: RegistryDep) -> ApiResponse:
    return ApiResponse(data=registry.models_by_provider())


# ---------------------------------------------------------------------------
# Upload endpoints
# ---------------------------------------------------------------------------


@router.post("/upload/upload", response_model=ApiResponse, response_model_exclude_none=True)
async def upload_files(
    settings: SettingsDep,
    ingestion: IngestionDep,
    files: Annotated[list[UploadFile] | None, File()] = None,
) -> ApiResponse:
    """Ingest up to ``upload_max_files`` images or PDFs."""
    if not files:
        raise HTTPException(status_code=400, detail="No se recibieron archivos")
    if len(files) > settings.upload_max_files:
        raise HTTPException(
            status_code=400,
            detail=f"Máximo {settings.upload_max_files} archivos permitidos",
        )

    processed: list[dict] = []
    errors: list[dict] = []
    for upload in files:
        data = await upload.read()
        filename = upload.filename or "archivo"
        try:
            attachment = await ingestion.ingest(filename, upload.content_type, data)
        except UnsupportedFileError as exc:
            errors.append({"file": filename, "error": exc.message})
            continue
        preview = None
        if attachment.is_image and attachment.inline_base64:
            preview = attachment.inline_base64[:100] + "..."
        processed.append(
            {
                "id": attachment.id,
                "name": attachment.display_name,
                "type": attachment.kind.value,
                "format": attachment.format,
                "size": attachment.size_bytes,
                "mimeType": attachment.media_type,
                "preview": preview,
            }
        )

    data: dict = {"files": processed}
    if errors:
        data["errors"] = errors
    return ApiResponse(data=data)


@router.post("/upload/check-capabilities", response_model=ApiResponse, response_model_exclude_none=True)
async def check_capabilities(body: CheckCapabilitiesRequest) -> ApiResponse:
    if not body.models or not body.file_types:
        raise HTTPException(status_code=400, detail="Faltan parámetros requeridos")
    matrix = capability_matrix(body.models, body.file_types)
    return ApiResponse(
        data={
            model_id: {file_type: decision.to_wire() for file_type, decision in row.items()}
            for model_id, row in matrix.items()
        }
    )


@router.get("/upload/file/{file_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def get_file(file_id: str, ingestion: IngestionDep) -> ApiResponse:
    attachment = await ingestion.get(file_id)
    if attachment is None:
        raise AttachmentMissingError()
    return ApiResponse(data=attachment.to_public_dict())


@router.delete("/upload/file/{file_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def delete_file(file_id: str, ingestion: IngestionDep) -> ApiResponse:
    await ingestion.delete(file_id)
    return ApiResponse(message="Archivo eliminado correctamente")


# ---------------------------------------------------------------------------
# Statistics & health
# ---------------------------------------------------------------------------


@router.get("/statistics", response_model=ApiResponse, response_model_exclude_none=True)
async def get_statistics(statistics: StatisticsDep) -> ApiResponse:
    return ApiResponse(data=await statistics.get_statistics())


@router.post("/statistics/reset", response_model=ApiResponse, response_model_exclude_none=True)
async def reset_statistics(settings: SettingsDep, statistics: StatisticsDep) -> ApiResponse:
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Operación no permitida en producción")
    await statistics.reset()
    return ApiResponse(message="Estadísticas reiniciadas")


@router.get("/health", response_model=HealthResponse)
async def health(settings: SettingsDep, registry: RegistryDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(tz=timezone.utc).isoformat(),  # noqa: UP017
        environment=settings.app_env,
        message="Dual LLM Server running correctly",
        providers={pid: pid in registry.configured_ids() for pid in registry.ids()},
    )
