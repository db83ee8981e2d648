"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (LOCINDEX_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseModel):
    """HTTP query API configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=1, ge=1, description="Number of worker processes")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: Literal["json", "console"] = Field(default="console", description="Log format: json, console")

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        if v.lower() not in {"debug", "info", "warning", "error"}:
            raise ValueError(f"unknown log level: {v}")
        return v.lower()


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the LOCINDEX_ prefix.
    Nested settings use double underscores: LOCINDEX_SERVER__PORT=9090

    Example:
        LOCINDEX_DATABASE_URI='elasticsearch://?endpoint=http://es:9200&index=loc'
        LOCINDEX_OBSERVABILITY__LOG_FORMAT=json
    """

    model_config = {
        "env_prefix": "LOCINDEX_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="locindex", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    database_uri: str = Field(
        default="elasticsearch://?endpoint=http://localhost:9200&index=libraryofcongress",
        description="Database URI; the scheme selects the backend",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file override environment variables.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
