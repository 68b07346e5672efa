"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# Config file location
CONFIG_PATH = Path.home() / ".config" / "concept2-mcp" / "config.yaml"

DEV_SERVER_HOST = "log-dev.concept2.com"
LOG_LEVELS = ("debug", "info", "warning", "error", "none")


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from YAML config file."""

    def get_field_value(
        self, field: Any, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get field value from YAML config."""
        config = self._load_config()
        if field_name in config:
            return config[field_name], field_name, False
        return None, field_name, False

    def _load_config(self) -> dict:
        """Load config from YAML file."""
        if not CONFIG_PATH.exists():
            return {}
        try:
            with open(CONFIG_PATH) as f:
                return yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError):
            return {}

    def __call__(self) -> dict[str, Any]:
        """Return all config values."""
        return self._load_config()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The instance is frozen: it is assembled once at startup and handed to
    the token manager by value.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONCEPT2_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    base_url: str = Field(
        default="https://log.concept2.com",
        description="Logbook API and authorization server base URL",
    )
    client_id: str | None = Field(default=None, description="OAuth2 client identifier")
    client_secret: str | None = Field(default=None, description="OAuth2 client secret")
    scopes: str = Field(
        default="user:read,results:read",
        description="Requested OAuth2 scopes",
    )
    redirect_port: int = Field(
        default=49721,
        ge=1024,
        le=65535,
        description="Port for the local OAuth callback listener",
    )
    callback_host: str = Field(
        default="localhost",
        description="Interface the callback listener binds to",
    )
    callback_path: str = Field(default="/callback", description="OAuth callback path")
    token_file: Path = Field(
        default=Path.home() / ".concept2_mcp_tokens.json",
        description="Where OAuth tokens are persisted",
    )
    access_token: str | None = Field(
        default=None,
        description="Static access token; overrides the OAuth flow when set",
    )
    auth_timeout_ms: int = Field(
        default=60_000,
        ge=1,
        description="How long to wait for the OAuth redirect, in milliseconds",
    )
    expiry_buffer_ms: int = Field(
        default=60_000,
        ge=0,
        description="Refresh tokens this long before they actually expire",
    )
    http_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    log_level: str = Field(default="none", description="debug, info, warning, error or none")

    @field_validator("base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("callback_path", mode="after")
    @classmethod
    def validate_callback_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Callback path must start with '/'")
        return v

    @field_validator("client_id", "client_secret", "access_token", mode="after")
    @classmethod
    def blank_is_unset(cls, v: str | None) -> str | None:
        """Treat empty environment variables as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v} (expected one of {', '.join(LOG_LEVELS)})")
        return level

    @property
    def redirect_uri(self) -> str:
        """Loopback redirect URI registered with the provider."""
        return f"http://localhost:{self.redirect_port}{self.callback_path}"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.base_url}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/oauth/access_token"

    @property
    def api_base(self) -> str:
        return f"{self.base_url}/api"

    @property
    def is_dev_server(self) -> bool:
        """True when pointed at the development logbook (data may be reset)."""
        return DEV_SERVER_HOST in self.base_url

    @property
    def developer_portal_url(self) -> str:
        host = DEV_SERVER_HOST if self.is_dev_server else "log.concept2.com"
        return f"https://{host}/developers/keys"

    @property
    def has_oauth_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def has_static_token(self) -> bool:
        return bool(self.access_token)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources - priority: env > yaml > defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
