"""Environment-driven settings and the AI provider table."""

import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class ModelInfo:
    """A model offered by a provider, priced in cents per 1k tokens."""
    id: str
    name: str
    cost_per_1k_tokens: float
    max_tokens: int = 4096


@dataclass(frozen=True)
class ProviderInfo:
    """An AI provider reachable through an OpenAI-compatible client."""
    id: str
    name: str
    base_url: Optional[str]
    api_key_env: Optional[str]
    models: tuple[ModelInfo, ...]
    default_model: str

    def get_model(self, model_id: str) -> Optional[ModelInfo]:
        for model in self.models:
            if model.id == model_id:
                return model
        return None


AI_PROVIDERS: dict[str, ProviderInfo] = {
    "siliconflow": ProviderInfo(
        id="siliconflow",
        name="SiliconFlow",
        base_url="https://api.siliconflow.cn/v1",
        api_key_env="SILICONFLOW_API_KEY",
        models=(
            ModelInfo("Qwen/Qwen2.5-72B-Instruct", "Qwen2.5-72B", 0.57, 8192),
            ModelInfo("deepseek-ai/DeepSeek-V2.5", "DeepSeek-V2.5", 0.14, 8192),
            ModelInfo("deepseek-ai/DeepSeek-R1", "DeepSeek-R1", 5.5, 8192),
            ModelInfo("Qwen/Qwen2.5-7B-Instruct", "Qwen2.5-7B (free)", 0.0, 8192),
        ),
        default_model="Qwen/Qwen2.5-72B-Instruct",
    ),
    "openai": ProviderInfo(
        id="openai",
        name="OpenAI",
        base_url=None,
        api_key_env="OPENAI_API_KEY",
        models=(
            ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo", 150.0, 4096),
            ModelInfo("gpt-4", "GPT-4", 3000.0, 8192),
            ModelInfo("gpt-4o-mini", "GPT-4o mini", 15.0, 16384),
        ),
        default_model="gpt-4o-mini",
    ),
    "local": ProviderInfo(
        id="local",
        name="Local rules",
        base_url=None,
        api_key_env=None,
        models=(ModelInfo("rule-based", "Rule-based", 0.0, 0),),
        default_model="rule-based",
    ),
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the import pipeline."""
    ai_provider: str = "local"
    ai_model: str = "rule-based"
    ai_enabled: bool = False
    ai_temperature: float = 0.1
    ai_max_tokens: int = 2000
    ai_timeout: float = 30.0
    api_key: Optional[str] = field(default=None, repr=False)
    data_dir: Path = Path(".quiz_import")
    daily_budget: int = 1000
    monthly_budget: int = 20000
    per_request_budget: int = 50
    budget_alert_threshold: int = 80
    import_batch_size: int = 100
    use_worker: bool = True

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_path: Path to an environment file. When omitted the first of
                quiz_import.env / .env that exists is loaded.

        Returns:
            Settings populated from the environment.
        """
        if env_path:
            load_dotenv(env_path)
        else:
            for path in [Path("quiz_import.env"), Path(".env")]:
                if path.exists():
                    load_dotenv(path)
                    break

        provider = os.getenv("QUIZ_AI_PROVIDER", "local")
        info = AI_PROVIDERS.get(provider)
        api_key = os.getenv(info.api_key_env) if info and info.api_key_env else None

        return cls(
            ai_provider=provider,
            ai_model=os.getenv("QUIZ_AI_MODEL") or (info.default_model if info else ""),
            ai_enabled=_env_bool("QUIZ_AI_ENABLED", False),
            ai_temperature=_env_float("QUIZ_AI_TEMPERATURE", 0.1),
            ai_max_tokens=_env_int("QUIZ_AI_MAX_TOKENS", 2000),
            ai_timeout=_env_float("QUIZ_AI_TIMEOUT", 30.0),
            api_key=api_key,
            data_dir=Path(os.getenv("QUIZ_DATA_DIR", ".quiz_import")),
            daily_budget=_env_int("QUIZ_DAILY_BUDGET", 1000),
            monthly_budget=_env_int("QUIZ_MONTHLY_BUDGET", 20000),
            per_request_budget=_env_int("QUIZ_PER_REQUEST_BUDGET", 50),
            budget_alert_threshold=_env_int("QUIZ_BUDGET_ALERT_THRESHOLD", 80),
            import_batch_size=_env_int("QUIZ_IMPORT_BATCH_SIZE", 100),
            use_worker=_env_bool("QUIZ_USE_WORKER", True),
        )

    @property
    def provider_info(self) -> Optional[ProviderInfo]:
        return AI_PROVIDERS.get(self.ai_provider)

    @property
    def model_info(self) -> Optional[ModelInfo]:
        info = self.provider_info
        return info.get_model(self.ai_model) if info else None

    @property
    def ai_available(self) -> bool:
        """Whether a remote AI provider is enabled and usable."""
        return (
            self.ai_enabled
            and self.ai_provider != "local"
            and not validate_settings(self)
        )

    def with_changes(self, **changes) -> "Settings":
        return replace(self, **changes)


def validate_settings(settings: Settings) -> list[str]:
    """
    Check settings for problems.

    Returns:
        Human-readable problems; empty when the settings are usable.
    """
    errors = []
    info = settings.provider_info
    if info is None:
        errors.append(f"Unknown AI provider: {settings.ai_provider}")
    else:
        if info.get_model(settings.ai_model) is None:
            errors.append(f"Unknown model for {info.id}: {settings.ai_model}")
        if settings.ai_enabled and info.api_key_env and not settings.api_key:
            errors.append(f"{info.api_key_env} not found in environment")

    if not 0 <= settings.ai_temperature <= 2:
        errors.append("Temperature must be between 0 and 2")
    if settings.ai_max_tokens <= 0:
        errors.append("Max tokens must be positive")
    if settings.import_batch_size <= 0:
        errors.append("Import batch size must be positive")
    return errors


AI_CONFIG_KEY = "ai_config"
_STORED_FIELDS = ("ai_provider", "ai_model", "ai_enabled", "ai_temperature", "ai_max_tokens", "ai_timeout")


def save_ai_config(storage, settings: Settings) -> None:
    """Persist the user-adjustable AI fields (never the API key)."""
    data = asdict(settings)
    storage.set(AI_CONFIG_KEY, {name: data[name] for name in _STORED_FIELDS})


def load_ai_config(storage, settings: Settings) -> Settings:
    """Overlay stored AI fields on the given settings."""
    stored = storage.get(AI_CONFIG_KEY)
    if not isinstance(stored, dict):
        return settings
    known = {f.name for f in fields(Settings)}
    changes = {k: v for k, v in stored.items() if k in _STORED_FIELDS and k in known}
    return replace(settings, **changes)
