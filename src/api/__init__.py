"""API layer — routes, schemas, SSE framing, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from src.api.routes import router
from src.api.schemas import (
    ApiResponse,
    CheckCapabilitiesRequest,
    GenerateRequest,
    HealthResponse,
    StreamRequest,
)
from src.api.sse import SseEncoder

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "register_exception_handlers",
    "router",
    "SseEncoder",
    "ApiResponse",
    "CheckCapabilitiesRequest",
    "GenerateRequest",
    "HealthResponse",
    "StreamRequest",
]
