import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from concord.core.logging import get_logger


logger = get_logger(__name__)

__all__ = [
    "ConfigurationError",
    "LoggingSettings",
    "ProxySettings",
    "Settings",
    "TimeoutSettings",
    "TLSSettings",
]


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ProxySettings(BaseModel):
    """Forward proxy selection and credentials."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = Field(
        default=None,
        description="Proxy URL used for every request (http:// or https://)",
    )
    username: str | None = Field(
        default=None,
        description="Username for Basic proxy authentication",
    )
    password: SecretStr | None = Field(
        default=None,
        description="Password for Basic proxy authentication",
    )
    trust_env: bool = Field(
        default=True,
        description=(
            "Fall back to HTTP_PROXY/HTTPS_PROXY/ALL_PROXY/NO_PROXY when no "
            "proxy URL is configured"
        ),
    )

    @model_validator(mode="after")
    def _credentials_complete(self) -> "ProxySettings":
        if self.username is not None and self.password is None:
            raise ValueError("proxy.password is required when proxy.username is set")
        return self


class TLSSettings(BaseModel):
    """TLS settings for https destinations and https proxies."""

    verify: bool = Field(default=True, description="Enable certificate verification")
    ca_bundle: str | None = Field(default=None, description="Path to CA bundle file")
    client_cert: str | None = Field(
        default=None, description="Path to client certificate file"
    )
    client_key: str | None = Field(default=None, description="Path to client key file")


class TimeoutSettings(BaseModel):
    """Per-operation deadlines in seconds."""

    connect: float = Field(default=10.0, gt=0, description="Dial and TLS timeout")
    read: float = Field(default=30.0, gt=0, description="Read timeout")
    write: float = Field(default=30.0, gt=0, description="Write timeout")


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    level: str = Field(default="INFO", description="Log level name")
    json_logs: bool = Field(default=False, description="Render logs as JSON")


class Settings(BaseSettings):
    """
    Configuration for concord transports and clients.

    Settings are loaded from environment variables (prefix ``CONCORD_``,
    nested with ``__``, e.g. ``CONCORD_PROXY__URL``), a ``.env`` file, and
    optionally a TOML file passed to :meth:`from_config`. Environment
    variables take precedence over TOML values.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    proxy: ProxySettings = Field(
        default_factory=ProxySettings,
        description="Proxy selection and credentials",
    )

    tls: TLSSettings = Field(
        default_factory=TLSSettings,
        description="TLS configuration",
    )

    timeouts: TimeoutSettings = Field(
        default_factory=TimeoutSettings,
        description="Connection timeouts",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    @classmethod
    def load_toml_config(cls, config_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with config_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read config file {config_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                f"Invalid TOML syntax in {config_path}: {e}"
            ) from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **overrides: Any
    ) -> "Settings":
        """Build settings from an optional TOML file plus the environment.

        Args:
            config_path: TOML file to load, or None for environment only
            **overrides: Explicit values that win over everything else

        Raises:
            ConfigurationError: If the file is unreadable or values are invalid
        """
        config_data: dict[str, Any] = {}
        if config_path is not None:
            config_path = Path(config_path)
            config_data = cls.load_toml_config(config_path)
            logger.debug("config_file_loaded", path=str(config_path))

        try:
            # Environment beats the file: only values the environment
            # actually sets are layered over it
            env_data = cls().model_dump(exclude_unset=True)
            merged = _deep_merge(_deep_merge(config_data, env_data), overrides)
            return cls.model_validate(merged)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
