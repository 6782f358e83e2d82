"""Configuration module — exports Settings, load_config and the capability table."""

from src.config.loader import default_models, load_config
from src.config.model_capabilities import (
    MODEL_CAPABILITIES,
    ModelCapabilities,
    get_model_capabilities,
)
from src.config.settings import Settings

__all__ = [
    "MODEL_CAPABILITIES",
    "ModelCapabilities",
    "Settings",
    "default_models",
    "get_model_capabilities",
    "load_config",
]
