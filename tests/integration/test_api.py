"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import register_exception_handlers
from src.api.routes import router as api_router
from src.config.loader import default_models, load_config
from src.config.settings import Settings
from src.main import create_app
from src.pipeline.aggregator import SyncAggregator
from src.pipeline.fan_out import FanOutOrchestrator
from src.pipeline.stream_registry import StreamRegistry
from src.providers.attachments.memory_attachment_store import MemoryAttachmentStore
from src.providers.statistics.sqlite_statistics_provider import SQLiteStatisticsProvider
from src.services.attachment_ingestion import AttachmentIngestionService
from src.services.branch_planner import BranchPlanner
from src.services.provider_registry import ProviderRegistry
from tests.conftest import FakeLLMProvider, make_png_bytes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(settings: Settings, registry: ProviderRegistry) -> FastAPI:
    """Create a FastAPI app wired to fake providers."""
    config = load_config(settings=settings)
    planner = BranchPlanner(registry, default_models=default_models(config))
    statistics = SQLiteStatisticsProvider(settings.statistics_db_path)

    @asynccontextmanager
    async def lifespan(application: FastAPI):  # noqa: ANN202
        await statistics.initialize()
        yield

    app = FastAPI(lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(api_router)

    app.state.settings = settings
    app.state.config = config
    app.state.provider_registry = registry
    app.state.orchestrator = FanOutOrchestrator(registry, planner)
    app.state.aggregator = SyncAggregator(registry, planner)
    app.state.ingestion = AttachmentIngestionService(MemoryAttachmentStore())
    app.state.statistics = statistics
    app.state.stream_registry = StreamRegistry()
    return app


def _frames(body: str) -> list[dict]:
    frames = []
    for chunk in body.split("\n\n"):
        if chunk.startswith("data: "):
            frames.append(json.loads(chunk[len("data: "):]))
    return frames


@pytest.fixture
def app(settings: Settings, registry: ProviderRegistry) -> FastAPI:
    return _create_test_app(settings, registry)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Health & models
# ---------------------------------------------------------------------------


class TestHealthAndModels:
    def test_health(self, client: TestClient, grok_fake: FakeLLMProvider) -> None:
        grok_fake.configured = False
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["message"] == "Dual LLM Server running correctly"
        assert data["providers"] == {"openai": True, "anthropic": True, "grok": False}

    def test_models(self, client: TestClient) -> None:
        data = client.get("/api/llm/models").json()["data"]
        assert data["grok"] == ["grok-3-mini-fast", "grok-2-vision-1212"]


# ---------------------------------------------------------------------------
# Synchronous generation
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_default_pair(self, client: TestClient) -> None:
        resp = client.post("/api/llm/generate", json={"prompt": "hola"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        results = body["data"]["branchResults"]
        assert [r["provider"] for r in results] == ["openai", "anthropic"]
        assert results[0]["response"] == "Hola desde OpenAI"
        assert results[0]["model"] == "gpt-4o-mini-2024-07-18"

    def test_selections_and_statistics(self, client: TestClient) -> None:
        resp = client.post(
            "/api/llm/generate",
            json={
                "prompt": "hola",
                "selections": [
                    {"provider": "grok", "temperature": 0},
                    {"provider": "grok", "temperature": 1},
                    {"provider": "openai"},
                ],
            },
        )
        results = resp.json()["data"]["branchResults"]
        assert [r["temperature"] for r in results] == [0, 1, 0.7]
        assert client.get("/api/statistics").json()["data"]["promptCount"] == 1

    def test_missing_prompt_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/llm/generate", json={})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "El prompt es requerido"}
        assert client.get("/api/statistics").json()["data"]["promptCount"] == 0

    def test_bad_temperature_is_400(self, client: TestClient) -> None:
        resp = client.post(
            "/api/llm/generate",
            json={"prompt": "hola", "selections": [{"provider": "openai", "temperature": 1.5}]},
        )
        assert resp.status_code == 400
        assert "La temperatura debe estar entre 0 y 1" in resp.json()["error"]

    def test_unknown_provider_is_400(self, client: TestClient) -> None:
        resp = client.post(
            "/api/llm/generate",
            json={"prompt": "hola", "selections": [{"provider": "mistral"}]},
        )
        assert resp.status_code == 400

    def test_failed_branch_is_still_200(
        self, client: TestClient, anthropic_fake: FakeLLMProvider
    ) -> None:
        anthropic_fake.error = "Límite de uso de API excedido"
        results = client.post("/api/llm/generate", json={"prompt": "hola"}).json()["data"][
            "branchResults"
        ]
        assert results[0]["success"] is True
        assert results[1]["success"] is False
        assert results[1]["response"] == "Límite de uso de API excedido"


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class TestStream:
    def test_dual_stream(self, client: TestClient, app: FastAPI) -> None:
        resp = client.post("/api/llm/stream", json={"prompt": "hola", "provider": "dual"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["x-stream-id"]

        frames = _frames(resp.text)
        assert frames[-1] == {"done": True}
        openai_text = "".join(f["openai"] for f in frames if "openai" in f)
        assert openai_text == "Hola desde OpenAI"
        assert sum(1 for f in frames if f.get("branchDone")) == 2
        assert len(app.state.stream_registry) == 0

    def test_single_provider_stream(self, client: TestClient) -> None:
        resp = client.post(
            "/api/llm/stream",
            json={"prompt": "hola", "provider": "grok", "temperature": 0.3},
        )
        frames = _frames(resp.text)
        assert "".join(f["content"] for f in frames if "content" in f) == "Hola desde Grok"
        assert frames[-1] == {
            "done": True,
            "provider": "grok",
            "model": "grok-3-mini-fast",
            "temperature": 0.3,
        }
        assert not any("branchDone" in f for f in frames)

    def test_stream_branch_error_frame(
        self, client: TestClient, openai_fake: FakeLLMProvider
    ) -> None:
        openai_fake.chunks = []
        openai_fake.error = "API Key de OpenAI inválida"
        frames = _frames(
            client.post("/api/llm/stream", json={"prompt": "hola", "provider": "dual"}).text
        )
        assert {"error": "API Key de OpenAI inválida", "provider": "openai", "branch": 0} in frames
        assert frames[-1] == {"done": True}

    def test_bad_provider_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/llm/stream", json={"prompt": "hola", "provider": "mistral"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Provider debe ser: openai, anthropic, gemini, grok o dual"

    def test_missing_prompt_is_400(self, client: TestClient, app: FastAPI) -> None:
        resp = client.post("/api/llm/stream", json={"provider": "dual"})
        assert resp.status_code == 400
        assert len(app.state.stream_registry) == 0

    def test_cancel_unknown_stream_is_404(self, client: TestClient) -> None:
        resp = client.post("/api/llm/stream/does-not-exist/cancel")
        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_cancel_registered_stream(self, client: TestClient, app: FastAPI) -> None:
        token = app.state.stream_registry.open()
        resp = client.post(f"/api/llm/stream/{token.stream_id}/cancel")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Stream cancelado"}
        assert token.cancelled is True

    def test_stream_with_uploaded_image(self, client: TestClient) -> None:
        upload = client.post(
            "/api/upload/upload",
            files=[("files", ("foto.png", make_png_bytes(), "image/png"))],
        )
        file_id = upload.json()["data"]["files"][0]["id"]

        resp = client.post(
            "/api/llm/stream",
            json={
                "prompt": "describe",
                "provider": "dual",
                "firstProvider": "grok",
                "grokModel": "grok-3-mini-fast",
                "fileIds": [file_id],
            },
        )
        frames = _frames(resp.text)
        changed = next(f for f in frames if f.get("type") == "model_changed")
        assert changed["requestedModel"] == "grok-3-mini-fast"
        assert changed["model"] == "grok-2-vision-1212"
        info = [f for f in frames if f.get("type") == "files_info"]
        assert {f["branch"] for f in info} == {0, 1}


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_get_delete(self, client: TestClient) -> None:
        resp = client.post(
            "/api/upload/upload",
            files=[("files", ("foto.png", make_png_bytes(), "image/png"))],
        )
        assert resp.status_code == 200
        entry = resp.json()["data"]["files"][0]
        assert entry["name"] == "foto.png"
        assert entry["type"] == "image"
        assert entry["mimeType"] == "image/png"

        fetched = client.get(f"/api/upload/file/{entry['id']}").json()["data"]
        assert fetched["originalName"] == "foto.png"
        assert fetched["base64"].startswith("data:image/png;base64,")

        deleted = client.delete(f"/api/upload/file/{entry['id']}")
        assert deleted.json()["message"] == "Archivo eliminado correctamente"

        missing = client.get(f"/api/upload/file/{entry['id']}")
        assert missing.status_code == 404
        assert missing.json() == {"success": False, "error": "Archivo no encontrado"}

    def test_pdf_upload(self, client: TestClient, pdf_bytes: bytes) -> None:
        resp = client.post(
            "/api/upload/upload",
            files=[("files", ("doc.pdf", pdf_bytes, "application/pdf"))],
        )
        entry = resp.json()["data"]["files"][0]
        assert entry["type"] == "pdf"
        fetched = client.get(f"/api/upload/file/{entry['id']}").json()["data"]
        assert "Hola PDF" in fetched["text"]

    def test_rejected_file_listed_in_errors(self, client: TestClient) -> None:
        resp = client.post(
            "/api/upload/upload",
            files=[
                ("files", ("notas.txt", b"hola", "text/plain")),
                ("files", ("foto.png", make_png_bytes(), "image/png")),
            ],
        )
        data = resp.json()["data"]
        assert len(data["files"]) == 1
        assert data["errors"][0]["file"] == "notas.txt"
        assert "Tipo de archivo no permitido" in data["errors"][0]["error"]

    def test_no_files_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/upload/upload")
        assert resp.status_code == 400
        assert resp.json()["error"] == "No se recibieron archivos"

    def test_too_many_files_is_400(self, client: TestClient) -> None:
        png = make_png_bytes()
        files = [("files", (f"f{i}.png", png, "image/png")) for i in range(6)]
        resp = client.post("/api/upload/upload", files=files)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Máximo 5 archivos permitidos"


class TestCheckCapabilities:
    def test_matrix(self, client: TestClient) -> None:
        resp = client.post(
            "/api/upload/check-capabilities",
            json={"models": ["gpt-3.5-turbo-0125", "gemini-2.0-flash"], "fileTypes": ["png"]},
        )
        data = resp.json()["data"]
        assert data["gemini-2.0-flash"]["png"] == {"canProcess": True}
        assert data["gpt-3.5-turbo-0125"]["png"]["canProcess"] is False
        assert "reason" in data["gpt-3.5-turbo-0125"]["png"]

    def test_missing_params_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/upload/check-capabilities", json={"models": ["x"]})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Faltan parámetros requeridos"


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class TestStatistics:
    def test_reset(self, client: TestClient) -> None:
        client.post("/api/llm/generate", json={"prompt": "hola"})
        resp = client.post("/api/statistics/reset")
        assert resp.json()["message"] == "Estadísticas reiniciadas"
        assert client.get("/api/statistics").json()["data"]["promptCount"] == 0

    def test_reset_forbidden_in_production(
        self, registry: ProviderRegistry, tmp_path: Path
    ) -> None:
        settings = Settings(
            _env_file=None,
            app_env="production",
            statistics_db_path=str(tmp_path / "prod.db"),
        )
        with TestClient(_create_test_app(settings, registry)) as client:
            resp = client.post("/api/statistics/reset")
        assert resp.status_code == 403
        assert resp.json()["error"] == "Operación no permitida en producción"


# ---------------------------------------------------------------------------
# Unexpected failures (full application stack)
# ---------------------------------------------------------------------------


def _broken_statistics() -> MagicMock:
    statistics = MagicMock()
    statistics.increment_prompt_count = AsyncMock(side_effect=RuntimeError("disk I/O error"))
    return statistics


class TestUnexpectedErrors:
    def test_generate_failure_returns_json_500(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        app = create_app(settings)
        with TestClient(app) as client:
            app.state.aggregator = SyncAggregator(registry, BranchPlanner(registry))
            app.state.statistics = _broken_statistics()
            resp = client.post("/api/llm/generate", json={"prompt": "hola"})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Error interno del servidor"}

    def test_stream_setup_failure_releases_stream_id(
        self, settings: Settings, registry: ProviderRegistry
    ) -> None:
        app = create_app(settings)
        with TestClient(app) as client:
            app.state.orchestrator = FanOutOrchestrator(registry, BranchPlanner(registry))
            app.state.statistics = _broken_statistics()
            resp = client.post("/api/llm/stream", json={"prompt": "hola", "provider": "dual"})
            active = len(app.state.stream_registry)

        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert active == 0
