"""Configuration management for sessionlens.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.

Settings are resolved once at process start and handed to the
components that need them; nothing reads the environment at call time.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/sessionlens.yaml")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class GenerationConfig(BaseModel):
    provider: Literal["gemini", "openai"] = Field(default="gemini")
    model: str = Field(default="gemini-2.5-flash")
    analyze_model: str | None = Field(
        default=None, description="Model for screenshot analysis; falls back to model"
    )
    base_url: str | None = Field(default=None)
    timeout: float = Field(default=60.0, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    analyze_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    chat_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=4096, gt=0)


class PromptConfig(BaseModel):
    regenerate_raw_text_limit: int = Field(default=200, gt=0)
    chat_raw_text_limit: int = Field(default=500, gt=0)


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = Field(default="memory")
    sqlite_path: str = Field(default="data/sessionlens.db")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class AuthConfig(BaseModel):
    tokens: dict[str, str] = Field(
        default_factory=dict, description="Bearer token -> user id"
    )


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the sessionlens system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically. ``SESSIONLENS_`` variables (nested with
    ``__``) override values passed in, including the YAML sections.
    """

    model_config = {
        "env_prefix": "SESSIONLENS_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # API Keys
    gemini_api_key: SecretStr = Field(default=SecretStr(""))
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    prompts: PromptConfig = Field(default_factory=PromptConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Keyword arguments carry the YAML file, so they rank below the environment.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def generation_api_key(self) -> str:
        """The credential for the configured provider, or "" if none is set."""
        if self.generation.provider == "gemini":
            return self.gemini_api_key.get_secret_value()
        return (
            self.openrouter_api_key.get_secret_value()
            or self.openai_api_key.get_secret_value()
        )

    def generation_base_url(self) -> str | None:
        if self.generation.base_url:
            return self.generation.base_url
        if self.generation.provider == "gemini":
            return GEMINI_BASE_URL
        if self.openrouter_api_key.get_secret_value():
            return OPENROUTER_BASE_URL
        return None


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults. The unprefixed
    GEMINI_API_KEY, OPENROUTER_API_KEY, OPENROUTER_BASE_URL and
    GENERATION_MODEL are folded into the YAML data before validation.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    gemini_key = os.environ.get("GEMINI_API_KEY", "")
    or_key = os.environ.get("OPENROUTER_API_KEY", "")
    or_base_url = os.environ.get("OPENROUTER_BASE_URL", "")
    model = os.environ.get("GENERATION_MODEL", "")

    if gemini_key:
        yaml_data["gemini_api_key"] = gemini_key
    if or_key:
        yaml_data["openrouter_api_key"] = or_key

    if "generation" not in yaml_data:
        yaml_data["generation"] = {}

    # An OpenRouter key alone selects the OpenAI-compatible provider
    if or_key and not gemini_key and not yaml_data["generation"].get("provider"):
        yaml_data["generation"]["provider"] = "openai"

    if or_base_url and not yaml_data["generation"].get("base_url"):
        yaml_data["generation"]["base_url"] = or_base_url

    if model and not yaml_data["generation"].get("model"):
        yaml_data["generation"]["model"] = model
