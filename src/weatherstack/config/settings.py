"""
Pydantic Settings Configuration
=================================

Type-safe configuration for the instrumented service and the local topology.
Validates all configuration values at startup and fails fast with clear error
messages.
"""

from importlib import metadata
from pathlib import Path
from typing import Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings


DEVELOPMENT = "development"


def _project_version() -> str:
    """Resolve the project version from package metadata."""
    try:
        return metadata.version("weatherstack")
    except metadata.PackageNotFoundError:
        return "0.0.0-dev"


class HttpClientConfig(BaseModel):
    """Outbound HTTP client defaults (resilience handler)"""
    timeout_seconds: float = Field(10.0, gt=0, description="Per-attempt timeout in seconds")
    retries: int = Field(3, ge=0, le=10, description="Connection retries performed by the transport")
    circuit_fail_max: int = Field(5, ge=1, description="Consecutive failures before the circuit opens")
    circuit_reset_timeout: int = Field(30, ge=1, description="Seconds an open circuit waits before probing")

    model_config = ConfigDict(extra='ignore')


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = Field("INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field("json", description="Log format (json, text)")

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in {'json', 'text'}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    model_config = ConfigDict(extra='ignore')


class Settings(BaseSettings):
    """
    Main application settings with type validation.

    Configuration is loaded from (highest precedence first):
    1. YAML config file (if provided)
    2. Environment variables with WEATHERSTACK_ prefix
    3. Default values (fallback)

    A few well-known variables are read without the prefix so the service
    behaves like any other OpenTelemetry-instrumented process:
      OTEL_EXPORTER_OTLP_ENDPOINT, OTEL_SERVICE_NAME, GRAFANA_URL, APP_ENV

    Nested models use double-underscore nesting:
      WEATHERSTACK_HTTP_CLIENT__RETRIES
      WEATHERSTACK_LOGGING__LEVEL
    """

    environment: str = Field(
        "production",
        validation_alias=AliasChoices("WEATHERSTACK_ENVIRONMENT", "APP_ENV"),
        description="Runtime environment name (development enables full trace sampling)",
    )
    service_name: str = Field(
        "weatherapi",
        validation_alias=AliasChoices("OTEL_SERVICE_NAME", "WEATHERSTACK_SERVICE_NAME"),
        description="Service name reported on every signal",
    )
    otel_exporter_otlp_endpoint: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "OTEL_EXPORTER_OTLP_ENDPOINT",
            "WEATHERSTACK_OTEL_EXPORTER_OTLP_ENDPOINT",
        ),
        description="OTLP collector endpoint; push export is enabled only when set",
    )
    grafana_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("GRAFANA_URL", "WEATHERSTACK_GRAFANA_URL"),
        description="Dashboard endpoint injected by the topology",
    )
    host: str = Field("127.0.0.1", description="Host to bind to")
    port: int = Field(8000, ge=1, le=65535, description="Port to bind to")

    http_client: HttpClientConfig = Field(default_factory=HttpClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    version: str = Field(default_factory=_project_version, description="Project version")

    model_config = ConfigDict(
        env_prefix='WEATHERSTACK_',
        env_nested_delimiter='__',
        extra='ignore',
        populate_by_name=True,
    )

    @field_validator('environment')
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower() or "production"

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def otlp_endpoint(self) -> str | None:
        """The OTLP endpoint, or None when unset or blank."""
        if self.otel_exporter_otlp_endpoint is None:
            return None
        return self.otel_exporter_otlp_endpoint.strip() or None

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """
    Load and validate application settings.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from weatherstack.core.exceptions import ConfigurationError

    try:
        if config_path:
            return Settings.from_yaml(config_path)
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
    except FileNotFoundError as e:
        raise ConfigurationError(str(e), details={'path': str(config_path)}) from e
