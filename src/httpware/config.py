"""Configuration for the Basic Authentication gate.

All settings can be configured via environment variables with the HTTPWARE_ prefix.
Example: HTTPWARE_REALM="Admin area" sets the advertised realm.

The verify callback is code, not configuration, so it is supplied when the
settings are turned into gate options:

    config = get_config()
    options = config.to_options(verify=check_user)
    app = web.Application(middlewares=[basic_auth_middleware(options)])
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httpware.basicauth import BasicAuthOptions, VerifyFunc
from httpware.responders import Handler

LOG_LEVELS = ("debug", "info", "warning", "error")

CONFIG_SECTION = "basic_auth"


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            data = tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested sections into underscore-joined keys.

    ``{"allow": {"url_credentials": True}}`` becomes ``{"allow_url_credentials": True}``.
    """
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class BasicAuthConfig(BaseSettings):
    """Settings for a Basic Authentication gate.

    All settings can be overridden via environment variables:
    - HTTPWARE_REALM: Name of the protected scope
    - HTTPWARE_ALLOW_EMPTY_PASSWORD: Accept empty passwords
    - HTTPWARE_ALLOW_URL_CREDENTIALS: Read credentials from the request URL
    - HTTPWARE_LOG_LEVEL: debug, info, warning or error
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTPWARE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    realm: str = Field(
        default="",
        description='Name of the protected scope. Empty means "Restricted".',
    )
    allow_empty_password: bool = Field(
        default=False,
        description="Accept credentials with an empty password.",
    )
    allow_url_credentials: bool = Field(
        default=False,
        description="Read credentials from URL userinfo when no Authorization header is sent.",
    )
    log_level: str = Field(
        default="info",
        description="Log level (debug, info, warning, error).",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @classmethod
    def from_file(cls, path: str | Path) -> BasicAuthConfig:
        """Build settings from a YAML or TOML file.

        Values are read from a ``basic_auth`` section when the file has one,
        otherwise from the top level. Nested tables are flattened with
        ``flatten_config``. Explicit file values win over the environment.
        """
        data = load_config_from_file(path)
        section = data.get(CONFIG_SECTION, data)
        if not isinstance(section, dict):
            raise ValueError(f"Section '{CONFIG_SECTION}' in {path} must be a mapping")
        return cls(**flatten_config(section))

    def to_options(
        self,
        verify: VerifyFunc,
        unauthorized: Handler | None = None,
        forbidden: Handler | None = None,
    ) -> BasicAuthOptions:
        """Create gate options from these settings."""
        return BasicAuthOptions(
            verify=verify,
            realm=self.realm,
            allow_empty_password=self.allow_empty_password,
            allow_url_credentials=self.allow_url_credentials,
            unauthorized=unauthorized,
            forbidden=forbidden,
        )

    def configure_logging(self) -> None:
        """Apply ``log_level`` to structlog."""
        configure_logging(self.log_level)

    def to_env_dict(self) -> dict[str, str]:
        """Export current configuration as environment variable dictionary."""
        return {
            "HTTPWARE_REALM": self.realm,
            "HTTPWARE_ALLOW_EMPTY_PASSWORD": str(self.allow_empty_password).lower(),
            "HTTPWARE_ALLOW_URL_CREDENTIALS": str(self.allow_url_credentials).lower(),
            "HTTPWARE_LOG_LEVEL": self.log_level,
        }


def configure_logging(level: str = "info") -> None:
    """Configure structlog to drop events below ``level``."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
    )


_config: BasicAuthConfig | None = None


def get_config() -> BasicAuthConfig:
    """Get the global configuration instance.

    The instance reads from environment variables once and is cached for the
    lifetime of the process. To reload it (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = BasicAuthConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration."""
    global _config
    _config = None
