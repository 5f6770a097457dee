"""Configuration for the import pipeline."""

from .settings import (
    AI_CONFIG_KEY,
    AI_PROVIDERS,
    ModelInfo,
    ProviderInfo,
    Settings,
    load_ai_config,
    save_ai_config,
    validate_settings,
)

__all__ = [
    "AI_CONFIG_KEY",
    "AI_PROVIDERS",
    "ModelInfo",
    "ProviderInfo",
    "Settings",
    "load_ai_config",
    "save_ai_config",
    "validate_settings",
]
