"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  — Static defaults checked into the repo
#                            (default model per provider, default pair)
#   2. .env file           — Local developer overrides (not committed)
#   3. Environment vars    — Set at deploy time
#
# The _deep_merge helper does recursive dict merging:
#   base = {"providers": {"openai": {"default_model": "gpt-4o-mini"}}}
#   overrides = {"providers": {"openai": {"configured": True}}}
#   result = {"providers": {"openai": {"default_model": "gpt-4o-mini",
#                                      "configured": True}}}
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.  Defaults to the
              repository's ``config/config.yaml``.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: The file exists but is not a YAML mapping.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a YAML mapping")
    else:
        yaml_config = {}

    settings = settings or Settings()
    configured = set(settings.get_configured_providers())
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "providers": {
            provider_id: {"configured": provider_id in configured}
            for provider_id in ("openai", "anthropic", "gemini", "grok")
        },
        "generation": {
            "default_temperature": settings.default_temperature,
            "max_output_tokens": settings.max_output_tokens,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def default_models(config: dict) -> dict[str, str]:
    """Extract ``{provider_id: default_model}`` from a loaded config dict."""
    providers = config.get("providers") or {}
    return {
        provider_id: section["default_model"]
        for provider_id, section in providers.items()
        if isinstance(section, dict) and section.get("default_model")
    }


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
