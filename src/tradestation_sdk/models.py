"""Pydantic models for the TradeStation SDK.

Token, scope and OAuth request models. Stream event models live in
:mod:`tradestation_sdk.stream`.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import TokenConfigError


class Scope(StrEnum):
    """Capabilities a token can be granted. Values are the wire names."""

    MARKET_DATA = "MarketData"
    READ_ACCOUNT = "ReadAccount"
    TRADE = "Trade"
    OPTION_SPREADS = "OptionSpreads"
    MATRIX = "Matrix"
    OPENID = "openid"
    OFFLINE_ACCESS = "offline_access"
    PROFILE = "profile"
    EMAIL = "email"


REQUIRED_SCOPES: frozenset[Scope] = frozenset({Scope.OPENID, Scope.OFFLINE_ACCESS})

_SCOPE_ORDER = {scope: index for index, scope in enumerate(Scope)}


def parse_scopes(value: str) -> frozenset[Scope]:
    """Parse a space-separated scope string.

    Raises:
        ValueError: If any token is not a known scope.
    """
    scopes: set[Scope] = set()
    for token in value.split():
        try:
            scopes.add(Scope(token))
        except ValueError:
            msg = f"unknown scope: {token}"
            raise ValueError(msg) from None
    return frozenset(scopes)


def format_scopes(scopes: Iterable[Scope | str]) -> str:
    """Join scopes into their space-separated wire form, in a stable order."""
    unique = {Scope(scope) for scope in scopes}
    return " ".join(sorted(unique, key=_SCOPE_ORDER.__getitem__))


def _coerce_scopes(value: Any) -> Any:
    if isinstance(value, str):
        return parse_scopes(value)
    if value is None:
        return frozenset()
    return value


class TokenResponse(BaseModel):
    """OAuth 2.0 token response from the identity endpoint.

    ``refresh_token`` is absent on most refresh responses.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    id_token: str = ""
    token_type: Literal["Bearer"] = "Bearer"
    scope: frozenset[Scope] = frozenset()
    expires_in: Annotated[int, Field(ge=0)]

    @field_validator("scope", mode="before")
    @classmethod
    def split_scope(cls, v: Any) -> Any:
        return _coerce_scopes(v)


class Token(BaseModel):
    """Bearer token held by a client, with the moment it was acquired."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    id_token: str = ""
    token_type: Literal["Bearer"] = "Bearer"
    scope: frozenset[Scope] = frozenset()
    expires_in: Annotated[int, Field(ge=0)]
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("scope", mode="before")
    @classmethod
    def split_scope(cls, v: Any) -> Any:
        return _coerce_scopes(v)

    @field_serializer("scope")
    def join_scope(self, scope: frozenset[Scope]) -> str:
        return format_scopes(scope)

    @classmethod
    def from_response(
        cls,
        response: TokenResponse,
        *,
        previous: Token | None = None,
        issued_at: datetime | None = None,
    ) -> Self:
        """Create a Token from an identity endpoint response.

        Args:
            response: Parsed token response.
            previous: Token being refreshed; its refresh token is kept when
                the response omits one.
            issued_at: Acquisition time, defaults to now.

        Raises:
            TokenConfigError: If no refresh token is available.
        """
        refresh_token = response.refresh_token or (
            previous.refresh_token if previous else None
        )
        if not refresh_token:
            msg = "Token response did not include a refresh token"
            raise TokenConfigError(msg)

        return cls(
            access_token=response.access_token,
            refresh_token=refresh_token,
            id_token=response.id_token,
            token_type=response.token_type,
            scope=response.scope or (previous.scope if previous else frozenset()),
            expires_in=response.expires_in,
            issued_at=issued_at or datetime.now(UTC),
        )

    @classmethod
    def from_parts(
        cls,
        *,
        access_token: str | None,
        refresh_token: str | None,
        id_token: str | None,
        scope: Iterable[Scope | str] | str,
        expires_in: int = 1200,
        issued_at: datetime | None = None,
    ) -> Self:
        """Assemble a token restored from caller storage.

        Raises:
            TokenConfigError: If a token string is missing or scope is empty.
        """
        for name, value in (
            ("access_token", access_token),
            ("refresh_token", refresh_token),
            ("id_token", id_token),
        ):
            if not value:
                msg = f"`Token.{name}` is not set"
                raise TokenConfigError(msg, details={"field": name})

        try:
            scopes = parse_scopes(scope) if isinstance(scope, str) else frozenset(
                Scope(s) for s in scope
            )
        except ValueError as e:
            raise TokenConfigError(str(e), details={"field": "scope"}) from e
        if not scopes:
            msg = "`Token.scope` is empty, but required"
            raise TokenConfigError(msg, details={"field": "scope"})

        try:
            return cls(
                access_token=access_token,
                refresh_token=refresh_token,
                id_token=id_token,
                scope=scopes,
                expires_in=expires_in,
                issued_at=issued_at or datetime.now(UTC),
            )
        except ValidationError as e:
            raise TokenConfigError(f"Invalid token: {e}") from e

    @property
    def expires_at(self) -> datetime:
        """Absolute expiry, ``issued_at + expires_in``."""
        return self.issued_at + timedelta(seconds=self.expires_in)

    def is_fresh(self, margin: float, *, now: datetime | None = None) -> bool:
        """True while ``now + margin < issued_at + expires_in``."""
        now = now or datetime.now(UTC)
        return now + timedelta(seconds=margin) < self.expires_at

    def time_until_expiry(self, *, now: datetime | None = None) -> timedelta:
        """Get time remaining until token expires."""
        return self.expires_at - (now or datetime.now(UTC))

    def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"{self.token_type} {self.access_token}"}

    def __repr__(self) -> str:
        return (
            f"Token(scope={format_scopes(self.scope)!r}, "
            f"expires_at={self.expires_at.isoformat()!r})"
        )


class TokenRequest(BaseModel):
    """OAuth 2.0 token request parameters."""

    model_config = ConfigDict(frozen=True)

    grant_type: Literal["authorization_code", "refresh_token"]
    client_id: str
    client_secret: SecretStr
    code: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None

    @model_validator(mode="after")
    def validate_grant_requirements(self) -> Self:
        """Validate required fields based on grant type."""
        if self.grant_type == "authorization_code":
            if not self.code:
                msg = "code is required for authorization_code grant"
                raise ValueError(msg)
            if not self.redirect_uri:
                msg = "redirect_uri is required for authorization_code grant"
                raise ValueError(msg)
        elif not self.refresh_token:
            msg = "refresh_token is required for refresh_token grant"
            raise ValueError(msg)
        return self

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for token request."""
        data: dict[str, str] = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "client_secret": self.client_secret.get_secret_value(),
        }
        if self.code:
            data["code"] = self.code
        if self.redirect_uri:
            data["redirect_uri"] = self.redirect_uri
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        return data
