"""Utility modules for the dual-LLM comparison service.

- **errors** -- Exception hierarchy rooted at DualLLMError; request-level
  errors abort a request, ProviderError subclasses stay inside one branch.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    AttachmentMissingError,
    ConfigurationError,
    CredentialMissingError,
    DualLLMError,
    ProviderError,
    RequestValidationError,
    StreamCancelledError,
    UnsupportedFileError,
    UpstreamError,
    UpstreamRateLimitedError,
    UpstreamUnauthorizedError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "AttachmentMissingError",
    "ConfigurationError",
    "CredentialMissingError",
    "DualLLMError",
    "ProviderError",
    "RequestValidationError",
    "StreamCancelledError",
    "UnsupportedFileError",
    "UpstreamError",
    "UpstreamRateLimitedError",
    "UpstreamUnauthorizedError",
    "configure_logging",
    "get_logger",
]
