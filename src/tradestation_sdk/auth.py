"""OAuth2 authorization-code and refresh-token flows, and the token cell.

``AuthEngine`` talks to the identity endpoint. ``TokenStore`` holds the one
piece of shared mutable state in a client, the current token, and makes
sure concurrent callers that find it stale share a single refresh.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

from .core.auth_builder import AuthorizationBuilder
from .core.token_ops import FORM_HEADERS, TokenOperations
from .errors import InvalidTokenError
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from .config import ClientConfig
    from .core.http_executor import HTTPExecutorProtocol
    from .models import Token

    Refresher = Callable[[Token], Awaitable[Token]]


def is_fresh(token: Token | None, margin: float, *, now: datetime | None = None) -> bool:
    """True iff a token exists and ``now + margin < issued_at + expires_in``."""
    return token is not None and token.is_fresh(margin, now=now)


class AuthEngine:
    """Exchanges authorization codes and refreshes tokens."""

    def __init__(self, config: ClientConfig, executor: HTTPExecutorProtocol) -> None:
        self.config = config
        self._executor = executor
        self._ops = TokenOperations(config)
        self._authorization = AuthorizationBuilder(config)
        self._logger = get_logger()

    def authorize_url(self, state: str | None = None) -> str:
        """Hosted sign-in URL the user visits to obtain an authorization code."""
        return self._authorization.build_authorization_url(state)

    def code_from_redirect(self, callback_url: str, expected_state: str | None = None) -> str:
        return self._authorization.parse_callback_url(callback_url, expected_state)

    async def exchange(self, authorization_code: str) -> Token:
        """Exchange an authorization code for a token.

        Raises:
            TransportError: If the identity endpoint cannot be reached.
            TokenConfigError: On a non-2xx status or malformed body.
        """
        with trace_operation("token_exchange"):
            data = self._ops.build_authorization_code_request(authorization_code)
            self._logger.info("Exchanging authorization code")
            response = await self._post_form(data)
            token = self._ops.process_exchange(response)
            self._logger.info(
                "Authorization code exchanged",
                expires_in=token.expires_in,
                scope=sorted(token.scope),
            )
            return token

    async def refresh(self, current: Token) -> Token:
        """Refresh ``current`` using its refresh token.

        Raises:
            TransportError: If the identity endpoint cannot be reached.
            TokenConfigError: On a non-2xx status or malformed body.
        """
        with trace_operation("token_refresh"):
            data = self._ops.build_refresh_token_request(current.refresh_token)
            self._logger.info("Refreshing token")
            response = await self._post_form(data)
            token = self._ops.process_refresh(response, current)
            self._logger.info("Token refreshed", expires_in=token.expires_in)
            return token

    async def _post_form(self, data: dict[str, str]) -> httpx.Response:
        return await self._executor.execute(
            "POST",
            self.config.token_endpoint,
            data=data,
            headers=FORM_HEADERS,
        )


class TokenStore:
    """Current token plus single-flight refresh."""

    def __init__(self, token: Token | None, *, margin: float) -> None:
        self._token = token
        self.margin = margin
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Future[Token] | None = None
        self._refresh_count = 0
        self._logger = get_logger()

    @property
    def token(self) -> Token | None:
        """Current token snapshot."""
        return self._token

    @property
    def refresh_count(self) -> int:
        """Number of successful refreshes performed through this store."""
        return self._refresh_count

    def is_fresh(self, *, now: datetime | None = None) -> bool:
        return is_fresh(self._token, self.margin, now=now)

    def replace(self, token: Token) -> None:
        self._token = token

    async def ensure_fresh(self, refresher: Refresher) -> Token:
        """Return a fresh token, refreshing first if the current one is stale.

        Raises:
            InvalidTokenError: If no token is held.
        """
        token = self._token
        if token is None:
            raise InvalidTokenError("No token available")
        if token.is_fresh(self.margin):
            return token
        return await self.refresh(refresher, observed=token)

    async def refresh(
        self,
        refresher: Refresher,
        *,
        observed: Token | None = None,
    ) -> Token:
        """Refresh the token, joining a refresh already in flight.

        Args:
            refresher: Coroutine function performing the actual refresh.
            observed: The stale token the caller saw. If another refresh has
                replaced it with a fresh one meanwhile, that one is returned.

        Raises:
            InvalidTokenError: If no token is held.
            TokenConfigError, TransportError: Shared by every waiter when the
                refresh fails.
        """
        async with self._lock:
            current = self._token
            if current is None:
                raise InvalidTokenError("No token to refresh")
            if observed is not None and current is not observed and current.is_fresh(self.margin):
                return current

            task = self._inflight
            if task is None:
                task = asyncio.ensure_future(self._run_refresh(refresher, current))
                self._inflight = task
            else:
                self._logger.debug("Joining in-flight token refresh")

        return await asyncio.shield(task)

    async def _run_refresh(self, refresher: Refresher, current: Token) -> Token:
        try:
            token = await refresher(current)
            self._token = token
            self._refresh_count += 1
            return token
        finally:
            self._inflight = None
