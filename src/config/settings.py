"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class uses pydantic-settings to automatically read configuration
# from TWO sources (in priority order):
#
#   1. **Environment variables** — e.g., OPENAI_API_KEY=sk-abc123
#      (highest priority — always wins)
#   2. **.env file** — key=value lines in the project root .env file
#      (lower priority — used for local development)
#
# The mapping is automatic: field name `gemini_api_key` maps to env var
# `GEMINI_API_KEY`.  The Grok key is the one exception: it is read from
# GROK_API_KEY first and XAI_API_KEY second, via AliasChoices.
#
# Every field has a default so the service boots with zero configuration.
# A provider without a key stays registered; its branches simply fail
# with a "no configurada" message instead of calling the upstream API.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in .env.example.  A key equal to one of these is treated
# exactly like a missing key.
PLACEHOLDER_KEYS: dict[str, str] = {
    "openai": "your-openai-api-key-here",
    "anthropic": "your-anthropic-api-key-here",
    "gemini": "your-gemini-api-key-here",
    "grok": "your-xai-api-key-here",
}


def is_real_key(provider_id: str, value: str) -> bool:
    """Return True when *value* is non-empty and not the shipped placeholder."""
    return bool(value) and value != PLACEHOLDER_KEYS.get(provider_id)


class Settings(BaseSettings):
    """Dual-LLM comparison service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # === LLM Providers ===
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    grok_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("grok_api_key", "xai_api_key"),
    )
    grok_base_url: str = "https://api.x.ai/v1"

    # === Generation ===
    default_temperature: float = 0.7
    max_output_tokens: int = 2000
    request_timeout_seconds: float = 120.0

    # === Orchestration ===
    # When True, a branch whose requested model cannot take the attached
    # files is switched to the first model of the same provider that can.
    auto_substitute_models: bool = True
    # Seconds without any event before a branch is failed; 0 disables.
    branch_idle_timeout_seconds: float = 60.0
    stream_disconnect_poll_seconds: float = 0.5

    # === Attachments ===
    attachment_ttl_seconds: int = 600
    attachment_max_entries: int = 500
    upload_max_file_bytes: int = 20 * 1024 * 1024
    upload_max_files: int = 5

    # === Statistics ===
    statistics_db_path: str = "data/statistics.db"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 3000
    app_env: str = "development"
    log_level: str = "INFO"

    def api_key_for(self, provider_id: str) -> str:
        """Return the raw configured key for *provider_id* (may be empty)."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
            "grok": self.grok_api_key,
        }.get(provider_id, "")

    def get_configured_providers(self) -> list[str]:
        """Return provider ids whose API key is present and not a placeholder."""
        return [
            provider_id
            for provider_id in ("openai", "anthropic", "gemini", "grok")
            if is_real_key(provider_id, self.api_key_for(provider_id))
        ]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"
