"""Custom exception hierarchy for the dual-LLM comparison service.

All application exceptions inherit from :class:`DualLLMError`, which carries
an optional ``provider_name`` so error handlers and logs can identify which
backend (e.g. "openai", "anthropic", "gemini", "grok") caused the failure.

The hierarchy mirrors how far an error is allowed to travel:

    DualLLMError  (base -- catch-all for any service error)
    +-- RequestValidationError     (request-fatal: rejected before any branch starts)
    +-- ConfigurationError         (startup / missing config)
    +-- UnsupportedFileError       (upload ingestion rejected a file)
    +-- AttachmentMissingError     (attachment id no longer resolvable)
    +-- StreamCancelledError       (caller aborted an in-flight stream)
    +-- ProviderError              (branch-local: never aborts sibling branches)
        +-- CredentialMissingError
        +-- UpstreamUnauthorizedError
        +-- UpstreamRateLimitedError
        +-- UpstreamError

Only ``RequestValidationError`` (and transport failures such as a client
disconnect) end a whole request.  Everything under ``ProviderError`` is
folded into a single branch's result or event stream.  A model that
cannot take an attachment only ever produces a warning.
"""


class DualLLMError(Exception):
    """Base exception for all service errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for structured
    log output, e.g. ``[openai] Límite de uso de API excedido``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request-level errors
# ---------------------------------------------------------------------------


class RequestValidationError(DualLLMError):
    """Raised when a request is missing required fields or is malformed.

    The API layer maps this to HTTP 400.  It is always raised before any
    branch is launched.
    """

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DualLLMError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StreamCancelledError(DualLLMError):
    """Raised when an operation is attempted on a cancelled stream."""

    def __init__(
        self,
        message: str = "Stream cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Attachment errors
# ---------------------------------------------------------------------------


class UnsupportedFileError(DualLLMError):
    """Raised by upload ingestion when a file cannot be accepted."""

    def __init__(
        self,
        message: str = "Tipo de archivo no permitido",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AttachmentMissingError(DualLLMError):
    """Raised when a referenced attachment id is unknown or already evicted."""

    def __init__(
        self,
        message: str = "Archivo no encontrado",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider (branch-local) errors
# ---------------------------------------------------------------------------


class ProviderError(DualLLMError):
    """Base for failures that belong to exactly one branch.

    ``user_message`` is the text shown in that branch's response box.
    """

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def user_message(self) -> str:
        return self.message


class CredentialMissingError(ProviderError):
    """Raised when a provider's API key is absent or still a placeholder."""

    def __init__(
        self,
        message: str = "API key not configured",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UpstreamUnauthorizedError(ProviderError):
    """Raised when the provider rejects the configured credential (HTTP 401)."""

    def __init__(
        self,
        message: str = "Invalid API key",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UpstreamRateLimitedError(ProviderError):
    """Raised when the provider reports a rate or quota limit (HTTP 429)."""

    def __init__(
        self,
        message: str = "Límite de uso de API excedido",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UpstreamError(ProviderError):
    """Raised for any other upstream failure; carries the raw error text."""

    def __init__(
        self,
        message: str = "Upstream provider error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
