"""Configuration management for the math quiz service."""

import logging
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ProviderConfig
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

# Key-value store keys shared with the settings screen
API_KEY_STORE_KEY = "gemini_api_key"
MODEL_STORE_KEY = "gemini_model"

DEFAULT_MODEL = "gemini-3-flash-preview"

# Tried in this order after the preferred model
FALLBACK_MODELS: List[str] = [
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
    "gemini-2.5-flash",
    "gemini-2.5-pro",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Gemini Configuration
    gemini_api_key: Optional[str] = None  # Used when the store holds no key
    default_model: str = DEFAULT_MODEL
    fallback_models: List[str] = list(FALLBACK_MODELS)
    attempt_timeout_seconds: float = 60.0
    generation_temperature: float = 0.7

    # Local Storage
    storage_path: str = "./data/quiz_store.json"

    # HTTP Server
    host: str = "0.0.0.0"
    port: int = 8001


# Global settings instance
settings = Settings()


def load_provider_config(
    store: KeyValueStore, app_settings: Optional[Settings] = None
) -> ProviderConfig:
    """Read the API credential and preferred model from the key-value store.

    Falls back to the environment-provided key and the default model when
    the store has no value.

    Args:
        store: Local key-value store holding user settings
        app_settings: Settings to fall back to (module settings if omitted)

    Returns:
        ProviderConfig for the core services
    """
    app_settings = app_settings or settings
    api_key = store.get(API_KEY_STORE_KEY) or app_settings.gemini_api_key or ""
    preferred_model = store.get(MODEL_STORE_KEY) or app_settings.default_model
    return ProviderConfig(api_key=api_key, preferred_model=preferred_model)


def save_provider_config(store: KeyValueStore, api_key: str, model: str) -> None:
    """Persist the API credential and preferred model.

    Args:
        store: Local key-value store
        api_key: Gemini API key
        model: Preferred model identifier
    """
    store.set(API_KEY_STORE_KEY, api_key.strip())
    store.set(MODEL_STORE_KEY, model.strip())
    logger.info(f"Saved provider settings (model={model.strip()})")
