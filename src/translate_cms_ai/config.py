"""
Configuration management for translate-cms-ai.

Handles loading configuration from YAML files and environment variables.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from translate_cms_ai.errors import ConfigurationError

# Load .env file if present (before Settings initialization)
load_dotenv()


class LLMProvider(str, Enum):
    """Available LLM providers."""

    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    ECHO = "echo"


class PathsConfig(BaseModel):
    """Configuration for file paths."""

    database_path: Path = Field(default=Path("./translate_cms.db"))
    logs: Path = Field(default=Path("./logs"))

    @field_validator("database_path", "logs")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        """Expand user home directory and make path absolute."""
        return Path(v).expanduser().resolve()


DEFAULT_SYSTEM_PROMPT = """You are a professional website translator.
Preserve ALL HTML tags and attributes exactly as they are.
Preserve ALL WordPress shortcodes unchanged, e.g. [gallery], [contact-form-7], [gravityform id="7"].
Preserve WordPress block comments such as <!-- wp:paragraph --> unchanged.
Do not translate text inside square brackets or attribute values.
The text is split into blocks separated by a blank line. Keep exactly the same
number of blocks, in the same order, separated by a single blank line.
Return ONLY the translation, with no explanation and no markdown."""


class TranslationConfig(BaseModel):
    """Configuration for translation."""

    provider: LLMProvider = Field(default=LLMProvider.OPENROUTER)
    default_model: str = Field(default="default")
    source_language: str = Field(default="en")
    target_languages: list[str] = Field(default_factory=lambda: ["fr"])
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    max_tokens: int = Field(default=8192, ge=256, le=65536)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=120.0, ge=5.0, le=600.0)
    # API keys (only the one matching provider is required)
    openrouter_api_key: str = Field(default="")
    gemini_api_key: str = Field(default="")


class QueueConfig(BaseModel):
    """Configuration for the translation queue."""

    # Kept low since provider quotas are strict
    concurrency: int = Field(default=2, ge=1, le=20)
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=5.0, ge=0.0, le=300.0)


class ExtractionConfig(BaseModel):
    """Configuration for content block extraction."""

    max_depth: int = Field(default=20, ge=1, le=200)
    max_nodes: int = Field(default=10_000, ge=10, le=1_000_000)
    min_text_length: int = Field(default=3, ge=1, le=50)
    detect_tables: bool = Field(default=True)
    min_table_rows: int = Field(default=2, ge=2, le=50)


class CMSConfig(BaseModel):
    """Configuration for the WordPress REST API."""

    base_url: str = Field(default="")
    username: str = Field(default="")
    application_password: str = Field(default="")
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    publish_status: str = Field(default="publish")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO")
    file: Path | None = Field(default=Path("./logs/translation.log"))
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    max_file_size_mb: int = Field(default=10, ge=1, le=100)
    backup_count: int = Field(default=5, ge=1, le=20)


class Settings(BaseSettings):
    """Main settings class that combines all configurations."""

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix for simpler env vars
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Configuration sections
    paths: PathsConfig = Field(default_factory=PathsConfig)
    translation: TranslationConfig = Field(default_factory=TranslationConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    cms: CMSConfig = Field(default_factory=CMSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable fallbacks for secrets."""
        super().__init__(**data)
        # Override secrets from environment if not set in config
        if not self.translation.openrouter_api_key:
            self.translation.openrouter_api_key = os.getenv("OPENROUTER_API_KEY", "")
        if not self.translation.gemini_api_key:
            self.translation.gemini_api_key = os.getenv("GEMINI_API_KEY", "")
        if not self.cms.application_password:
            self.cms.application_password = os.getenv("WP_APP_PASSWORD", "")

    @property
    def provider_api_key(self) -> str:
        """API key for the configured provider."""
        keys = {
            LLMProvider.OPENROUTER: self.translation.openrouter_api_key,
            LLMProvider.GEMINI: self.translation.gemini_api_key,
        }
        return keys.get(self.translation.provider, "")

    def validate_provider(self) -> None:
        """
        Check that the configured provider can be created.

        Raises:
            ConfigurationError: If the provider needs an API key that is not set.
        """
        provider = self.translation.provider
        if provider != LLMProvider.ECHO and not self.provider_api_key:
            env_var = f"{provider.value.upper()}_API_KEY"
            raise ConfigurationError(
                f"{provider.value} provider requires an API key "
                f"(set translation.{provider.value}_api_key or {env_var})"
            )

    def validate_cms(self) -> None:
        """
        Check that the CMS connection is configured.

        Raises:
            ConfigurationError: If the base URL is missing.
        """
        if not self.cms.base_url:
            raise ConfigurationError("cms.base_url is not configured")

    @classmethod
    def from_yaml(cls, path: Path | str) -> Settings:
        """Load settings from a YAML file, with environment variable overrides."""
        path = Path(path)
        if not path.exists():
            # Return defaults if file doesn't exist
            return cls()

        with open(path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        # Process environment variable substitutions in YAML values
        yaml_config = _substitute_env_vars(yaml_config)

        return cls(**yaml_config)


def _substitute_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively substitute ${ENV_VAR} patterns in config values."""
    result = {}
    for key, value in config.items():
        if isinstance(value, dict):
            result[key] = _substitute_env_vars(value)
        elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_var = value[2:-1]
            result[key] = os.getenv(env_var, "")
        elif isinstance(value, list):
            result[key] = [
                _substitute_env_vars(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            result[key] = value
    return result


def load_config(path: Path | str | None = None) -> Settings:
    """
    Load configuration from YAML file or return defaults.

    Args:
        path: Path to YAML config file. If None, looks for config.yaml in current directory.

    Returns:
        Settings instance with merged YAML and environment configurations.
    """
    if path is None:
        default_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(".translate-cms.yaml"),
        ]
        for p in default_paths:
            if p.exists():
                path = p
                break

    if path is not None:
        return Settings.from_yaml(path)

    return Settings()


DEFAULT_CONFIG = """# translate-cms-ai configuration

paths:
  database_path: ./translate_cms.db
  logs: ./logs

translation:
  # Provider: openrouter, gemini, or echo (no translation, for dry runs)
  provider: openrouter
  default_model: default
  source_language: en
  target_languages:
    - fr
    - de
  temperature: 0.3
  max_tokens: 8192
  # openrouter_api_key: ${OPENROUTER_API_KEY}
  # gemini_api_key: ${GEMINI_API_KEY}

queue:
  # Jobs translated at the same time
  concurrency: 2
  # Retries after a quota error, waiting retry_base_delay * 2^attempt seconds
  max_retries: 3
  retry_base_delay: 5

extraction:
  max_depth: 20
  min_text_length: 3
  # Promote whitespace-aligned text to HTML tables
  detect_tables: true

cms:
  base_url: https://example.com
  username: editor
  # application_password: ${WP_APP_PASSWORD}
  publish_status: publish

logging:
  level: INFO
  file: ./logs/translation.log
"""


def create_default_config(path: Path | str = "config.yaml") -> None:
    """Create a default configuration file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(DEFAULT_CONFIG)
