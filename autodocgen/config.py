"""Configuration management for AutoDocGen."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ["autodocgen.config.json", ".autodocgenrc.json", ".autodocgenrc"]

SUPPORTED_PROVIDERS = ["groq", "openai", "anthropic", "google"]

DEFAULT_MODELS = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
    "google": "gemini-1.5-flash",
}

# Provider -> environment variables checked in order
PROVIDER_API_KEY_ENV = {
    "groq": ["GROQ_API_KEY", "AUTODOCGEN_GROQ_API_KEY"],
    "openai": ["OPENAI_API_KEY", "AUTODOCGEN_OPENAI_API_KEY"],
    "anthropic": ["ANTHROPIC_API_KEY", "AUTODOCGEN_ANTHROPIC_API_KEY"],
    "google": [
        "GOOGLE_AI_API_KEY",
        "GOOGLE_GENERATIVE_AI_API_KEY",
        "AUTODOCGEN_GOOGLE_API_KEY",
    ],
}


class ConfigError(Exception):
    """Configuration error."""
    pass


class _SectionModel(BaseModel):
    """Config section accepting camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AIConfig(_SectionModel):
    """AI provider configuration."""

    provider: str = Field(default="openai", description="AI provider (groq, openai, anthropic, google)")
    model: Optional[str] = Field(default=None, description="Model name, provider default when unset")
    api_key: Optional[str] = Field(default=None, description="Provider API key")
    temperature: float = Field(default=0.2, description="Model temperature")
    max_tokens: int = Field(default=8000, description="Maximum output tokens")
    template: str = Field(default="default", description="Prompt template name")
    custom_prompt_file: Optional[str] = Field(default=None, description="Path to a custom prompt template")
    timeout: float = Field(default=120.0, description="Request timeout in seconds")

    def resolved_model(self) -> str:
        """Model name, falling back to the provider default."""
        return self.model or DEFAULT_MODELS.get(self.provider, "")


class FilesConfig(_SectionModel):
    """Output file configuration."""

    output_dir: str = Field(default="docs", description="Directory for generated documentation")
    analysis_filename: str = Field(default="analysis.json", description="Raw analysis filename")
    docs_filename: str = Field(default="api-documentation.md", description="AI documentation filename")
    timestamp_files: bool = Field(default=False, description="Append timestamps to output filenames")
    save_raw_analysis: bool = Field(default=True, description="Write the analysis JSON file")
    save_ai_docs: bool = Field(default=True, description="Write AI documentation files")


class DatabaseConfig(_SectionModel):
    """MongoDB configuration."""

    enabled: bool = Field(default=False, description="Always persist results to MongoDB")
    connection_string: str = Field(default="mongodb://localhost:27017", description="MongoDB URI")
    database_name: str = Field(default="autodocgen", description="Database name")
    timeout_ms: int = Field(default=5000, description="Server selection timeout in milliseconds")


class CacheConfig(_SectionModel):
    """Redis documentation cache configuration."""

    enabled: bool = Field(default=False, description="Enable Redis caching of generated docs")
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[str] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    ttl: int = Field(default=7200, description="Default TTL in seconds (2 hours)")


class WatchConfig(_SectionModel):
    """Watch mode configuration."""

    port: int = Field(default=3001, description="Status dashboard port")
    debounce_ms: int = Field(default=1000, description="Debounce delay in milliseconds")
    poll_interval: float = Field(default=0.5, description="File polling interval in seconds")
    auto_analyze: bool = Field(default=True, description="Run an analysis as soon as watching starts")
    ignore_patterns: List[str] = Field(
        default=[
            "node_modules/**",
            "dist/**",
            ".git/**",
            "*.log",
            "*.tmp",
            "coverage/**",
            ".nyc_output/**",
            "**/*.js.map",
            "**/*.d.ts",
            "**/*.d.ts.map",
            "build/**",
            "out/**",
            ".next/**",
            ".nuxt/**",
        ],
        description="Glob patterns ignored by the watcher",
    )


class ScanConfig(_SectionModel):
    """Source scanning configuration."""

    exclude_dirs: List[str] = Field(
        default=[
            "node_modules", "dist", "build", "out", "coverage", ".git", ".hg", ".svn",
            ".next", ".nuxt", ".nyc_output", ".turbo", ".cache", "tmp",
        ],
        description="Directories pruned during scanning",
    )
    extensions: List[str] = Field(
        default=[".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts"],
        description="Source file extensions",
    )
    max_file_size: int = Field(default=1048576, description="Max file size in bytes (1MB)")
    detection_sample_size: int = Field(default=50, description="Files sampled for framework detection")


class Settings(BaseSettings):
    """Main application settings."""

    verbose: bool = Field(default=False, description="Verbose output")
    log_level: str = Field(default="INFO", description="Logging level")

    ai: AIConfig = Field(default_factory=AIConfig)
    files: FilesConfig = Field(default_factory=FilesConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)

    model_config = SettingsConfigDict(
        env_prefix="AUTODOCGEN_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Values from the config file arrive as init kwargs; the environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def api_key_for(self, provider: Optional[str] = None) -> Optional[str]:
        """Resolve the API key from config, then the environment."""
        provider = provider or self.ai.provider
        if self.ai.api_key and provider == self.ai.provider:
            return self.ai.api_key
        return get_api_key_from_env(provider)


def get_api_key_from_env(provider: str) -> Optional[str]:
    """Look up a provider API key in the environment."""
    for name in PROVIDER_API_KEY_ENV.get(provider, []):
        value = os.getenv(name)
        if value:
            return value
    return None


def find_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Find the first default config file in the given directory."""
    base = start or Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read a JSON config file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    # Top-level camelCase keys are accepted too
    if "logLevel" in data:
        data["log_level"] = data.pop("logLevel")
    return data


def load_settings(config_file: Optional[str] = None, **overrides: Any) -> Settings:
    """Load settings from an optional config file, .env and the environment."""
    from dotenv import find_dotenv, load_dotenv

    # Provider keys such as OPENAI_API_KEY live outside the AUTODOCGEN_ prefix
    load_dotenv(find_dotenv(usecwd=True))

    file_data: Dict[str, Any] = {}
    path = Path(config_file) if config_file else find_config_file()
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        file_data = read_config_file(path)
        logger.debug(f"Loaded configuration from {path}")

    file_data.update(overrides)
    return Settings(**file_data)
