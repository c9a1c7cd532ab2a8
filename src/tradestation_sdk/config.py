"""Configuration for the TradeStation SDK.

Uses Pydantic v2 for validation with sensible defaults. A ``ClientConfig``
is immutable once a client has been built from it.
"""

from __future__ import annotations

import os
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
)

from .models import REQUIRED_SCOPES, Scope, format_scopes, parse_scopes

DEFAULT_BASE_URL = "https://api.tradestation.com/v3"
DEFAULT_IDENTITY_URL = "https://signin.tradestation.com"
DEFAULT_REDIRECT_URI = "http://localhost:8080/"


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "tradestation-sdk"
    log_level: str = "INFO"


class ClientConfig(BaseModel):
    """Main configuration for the TradeStation SDK."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # Credentials
    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scopes: frozenset[Scope] = REQUIRED_SCOPES

    # Endpoints
    base_url: str = DEFAULT_BASE_URL
    identity_url: str = DEFAULT_IDENTITY_URL

    # Seconds subtracted from expires_in when deciding freshness
    refresh_margin: Annotated[float, Field(ge=30)] = 30.0

    # HTTP settings; no read deadline by default so streams stay open
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 10.0
    timeout: Annotated[float, Field(gt=0)] | None = None

    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_scopes(v)
        return v

    @field_validator("scopes")
    @classmethod
    def require_scopes(cls, v: frozenset[Scope]) -> frozenset[Scope]:
        """openid and offline_access are mandatory for the refresh flow."""
        missing = REQUIRED_SCOPES - v
        if missing:
            msg = f"Missing required scopes: {format_scopes(missing)}"
            raise ValueError(msg)
        return v

    @field_validator("base_url", "identity_url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            msg = "URL must not be empty"
            raise ValueError(msg)
        if "://" not in v:
            v = f"http://{v}"
        return v

    @property
    def token_endpoint(self) -> str:
        return f"{self.identity_url}/oauth/token"

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.identity_url}/authorize"

    @property
    def scope_string(self) -> str:
        """Get scopes as space-separated string."""
        return format_scopes(self.scopes)

    def with_overrides(self, **kwargs: Any) -> Self:
        """Create new config with overridden values."""
        data = self.model_dump()
        data["client_secret"] = self.client_secret.get_secret_value()
        data.update(kwargs)
        return self.__class__(**data)

    @classmethod
    def from_env(cls, prefix: str = "TRADESTATION_") -> Self:
        """Create config from environment variables."""

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        client_id = get_env("CLIENT_ID")
        if not client_id:
            msg = f"{prefix}CLIENT_ID environment variable is required"
            raise ValueError(msg)

        client_secret = get_env("CLIENT_SECRET")
        if not client_secret:
            msg = f"{prefix}CLIENT_SECRET environment variable is required"
            raise ValueError(msg)

        data: dict[str, Any] = {
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": get_env("REDIRECT_URI", DEFAULT_REDIRECT_URI),
            "base_url": get_env("BASE_URL", DEFAULT_BASE_URL),
            "identity_url": get_env("IDENTITY_URL", DEFAULT_IDENTITY_URL),
            "refresh_margin": float(get_env("REFRESH_MARGIN", "30")),
        }
        scopes = get_env("SCOPES")
        if scopes:
            data["scopes"] = scopes
        return cls(**data)
