"""Step-by-step client construction.

Required order::

    ClientBuilder().credentials(client_id, client_secret)   # CredentialsStep
        [.redirect_uri(...).scopes(...).refresh_margin(...)]
        .exchange_code(code)  |  .with_token(token)         # ReadyStep
        .build()                                            # TradeStationClient

or ``ClientBuilder().testing_url("127.0.0.1:8080").build()`` for a client
bound to a mock server. Calling ``build()`` on a step that is not ready
raises :class:`~tradestation_sdk.errors.BuilderStepError`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Self

from pydantic import ValidationError

from .auth import AuthEngine
from .client import TradeStationClient
from .config import ClientConfig
from .core.auth_builder import AuthorizationBuilder
from .core.http_executor import AsyncHTTPExecutor
from .errors import BuilderStepError, TokenConfigError
from .http import create_async_http_client
from .models import Scope, Token

if TYPE_CHECKING:
    import httpx

TESTING_CLIENT_ID = "NO_CLIENT_ID_IN_TEST_MODE"
TESTING_CLIENT_SECRET = "NO_CLIENT_SECRET_IN_TEST_MODE"
TESTING_TOKEN_LIFETIME = 9999


def placeholder_token() -> Token:
    """Long-lived placeholder token for clients bound to a mock server."""
    return Token(
        access_token="NO_ACCESS_TOKEN_IN_TEST_MODE",
        refresh_token="NO_REFRESH_TOKEN_IN_TEST_MODE",
        id_token="NO_ID_TOKEN_IN_TEST_MODE",
        scope=frozenset(Scope),
        expires_in=TESTING_TOKEN_LIFETIME,
    )


class ClientBuilder:
    """Entry point: supply credentials, or bind to a testing URL."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http_client = http_client
        self._transport = transport

    def credentials(self, client_id: str, client_secret: str) -> CredentialsStep:
        return CredentialsStep(
            self,
            {"client_id": client_id, "client_secret": client_secret},
        )

    def testing_url(self, url: str) -> ReadyStep:
        """Skip authentication and target ``url`` with a placeholder token."""
        config = _make_config(
            client_id=TESTING_CLIENT_ID,
            client_secret=TESTING_CLIENT_SECRET,
            base_url=url,
        )
        return ReadyStep(self, config, placeholder_token())

    def build(self) -> TradeStationClient:
        msg = "credentials() must be called before build()"
        raise BuilderStepError(msg)


class CredentialsStep:
    """Credentials are set; a token is still needed."""

    def __init__(self, builder: ClientBuilder, settings: dict[str, Any]) -> None:
        self._builder = builder
        self._settings = settings

    def redirect_uri(self, uri: str) -> Self:
        self._settings["redirect_uri"] = uri
        return self

    def scopes(self, scopes: Iterable[Scope | str] | str) -> Self:
        self._settings["scopes"] = scopes if isinstance(scopes, str) else frozenset(scopes)
        return self

    def refresh_margin(self, seconds: float) -> Self:
        self._settings["refresh_margin"] = seconds
        return self

    def testing_url(self, url: str) -> Self:
        """Send API requests to ``url`` instead of the production host."""
        self._settings["base_url"] = url
        return self

    def identity_url(self, url: str) -> Self:
        self._settings["identity_url"] = url
        return self

    def config(self) -> ClientConfig:
        """Validated configuration for the settings so far.

        Raises:
            TokenConfigError: If a setting is invalid.
        """
        return _make_config(**self._settings)

    def authorization_url(self, state: str | None = None) -> str:
        """Hosted sign-in URL to send the user to."""
        return AuthorizationBuilder(self.config()).build_authorization_url(state)

    async def exchange_code(self, authorization_code: str) -> ReadyStep:
        """Exchange an authorization code for a token.

        Raises:
            TokenConfigError: If the identity endpoint rejects the exchange.
            TransportError: If the identity endpoint cannot be reached.
        """
        config = self.config()
        if self._builder._http_client is not None:
            engine = AuthEngine(config, AsyncHTTPExecutor(self._builder._http_client))
            token = await engine.exchange(authorization_code)
        else:
            async with create_async_http_client(
                config, transport=self._builder._transport
            ) as http:
                token = await AuthEngine(config, AsyncHTTPExecutor(http)).exchange(
                    authorization_code
                )
        return ReadyStep(self._builder, config, token)

    def with_token(self, token: Token) -> ReadyStep:
        """Use a token restored from caller storage."""
        return ReadyStep(self._builder, self.config(), token)

    def build(self) -> TradeStationClient:
        msg = "exchange_code() or with_token() must be called before build()"
        raise BuilderStepError(msg)


class ReadyStep:
    """Configuration and token are both present."""

    def __init__(self, builder: ClientBuilder, config: ClientConfig, token: Token) -> None:
        self._builder = builder
        self.config = config
        self.token = token

    def build(self) -> TradeStationClient:
        return TradeStationClient(
            self.config,
            self.token,
            http_client=self._builder._http_client,
            transport=self._builder._transport,
        )


def _make_config(**settings: Any) -> ClientConfig:
    try:
        return ClientConfig(**settings)
    except ValidationError as e:
        raise TokenConfigError(f"Invalid client configuration: {e}") from e
