"""Dual LLM FastAPI application entry point.

Wires together the provider adapters, planning and fan-out services,
attachment storage and the statistics counter via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and
configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from src.api.routes import router as api_router
from src.config.loader import default_models, load_config
from src.config.settings import Settings
from src.pipeline.aggregator import SyncAggregator
from src.pipeline.fan_out import FanOutOrchestrator
from src.pipeline.stream_registry import StreamRegistry
from src.providers.attachments.memory_attachment_store import MemoryAttachmentStore
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.gemini_provider import GeminiLLMProvider
from src.providers.llm.grok_provider import GrokLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.statistics.sqlite_statistics_provider import SQLiteStatisticsProvider
from src.services.attachment_ingestion import AttachmentIngestionService
from src.services.branch_planner import BranchPlanner
from src.services.provider_registry import ProviderRegistry
from src.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    config = load_config(settings=app_settings)

    # -- LLM providers (one adapter per provider id) --
    grok = GrokLLMProvider(settings=app_settings)
    registry = ProviderRegistry(
        [
            OpenAILLMProvider(settings=app_settings),
            AnthropicLLMProvider(settings=app_settings),
            GeminiLLMProvider(settings=app_settings),
            grok,
        ]
    )

    # -- Planning, fan-out and aggregation --
    planner = BranchPlanner(
        registry,
        auto_substitute=app_settings.auto_substitute_models,
        default_models=default_models(config),
    )
    orchestrator = FanOutOrchestrator(
        registry,
        planner,
        idle_timeout_seconds=app_settings.branch_idle_timeout_seconds,
    )
    aggregator = SyncAggregator(registry, planner)

    # -- Attachments --
    store = MemoryAttachmentStore(
        max_entries=app_settings.attachment_max_entries,
        ttl=app_settings.attachment_ttl_seconds,
    )
    ingestion = AttachmentIngestionService(
        store, max_file_bytes=app_settings.upload_max_file_bytes
    )

    return {
        "settings": app_settings,
        "config": config,
        "provider_registry": registry,
        "grok_provider": grok,
        "planner": planner,
        "orchestrator": orchestrator,
        "aggregator": aggregator,
        "attachment_store": store,
        "ingestion": ingestion,
        "statistics": SQLiteStatisticsProvider(app_settings.statistics_db_path),
        "stream_registry": StreamRegistry(),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Initialise all providers and services on startup, clean up on shutdown."""
        components = _build_all(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        await components["statistics"].initialize()

        _logger.info(
            "app_startup",
            version="1.0.0",
            environment=app_settings.app_env,
            providers=components["provider_registry"].ids(),
            configured=components["provider_registry"].configured_ids(),
        )

        yield

        components["stream_registry"].cancel_all("shutdown")
        await components["grok_provider"].aclose()
        _logger.info("app_shutdown")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=app_settings.is_production,
    )

    application = FastAPI(
        title="Dual LLM API",
        version="1.0.0",
        description=(
            "Send one prompt to several LLM providers at once and compare "
            "their answers side by side, streamed or all at once."
        ),
        lifespan=_make_lifespan(app_settings),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)
    register_exception_handlers(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()


if __name__ == "__main__":
    _settings = Settings()
    uvicorn.run(
        "src.main:app",
        host=_settings.app_host,
        port=_settings.app_port,
        reload=not _settings.is_production,
    )
