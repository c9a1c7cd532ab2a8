"""TradeStation API client.

Owns the connection pool, the current token and the auth engine. Every
one-shot request and every stream goes through the same freshness check,
so a stale token is refreshed (once, however many callers notice) before
the request is sent.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, Generic, Self, TypeVar

from pydantic import BaseModel

from .auth import AuthEngine, TokenStore
from .core.http_executor import AsyncHTTPExecutor
from .envelope import PartialResult, decode_partial, decode_response
from .http import HTTPMethod, create_async_http_client
from .stream import EventStream, StreamCallback, StreamDescriptor, run_stream
from .telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from .config import ClientConfig
    from .models import Token

T = TypeVar("T")
P = TypeVar("P")

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class RequestDescriptor(Generic[T]):
    """One endpoint call: method, path fragment, optional body, response shape."""

    method: HTTPMethod
    path: str
    shape: Any = dict[str, Any]
    body: Any = None
    params: dict[str, Any] = field(default_factory=dict)


def _json_body(body: Any) -> Any:
    if isinstance(body, BaseModel):
        return body.model_dump(mode="json", by_alias=True, exclude_none=True)
    return body


class TradeStationClient:
    """Authenticated client for the TradeStation v3 API.

    Usually built with :class:`~tradestation_sdk.builder.ClientBuilder`.
    """

    def __init__(
        self,
        config: ClientConfig,
        token: Token | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            config: SDK configuration.
            token: Initial token; requests fail with InvalidTokenError
                while none is held.
            http_client: Shared HTTP client. It is not closed by ``close()``.
            transport: Transport for a client created here.
        """
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client or create_async_http_client(config, transport=transport)
        self._executor = AsyncHTTPExecutor(self._http)
        self._auth = AuthEngine(config, self._executor)
        self._tokens = TokenStore(token, margin=config.refresh_margin)
        self._logger = get_logger()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def token(self) -> Token | None:
        """Current token, e.g. for the caller to persist."""
        return self._tokens.token

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def auth(self) -> AuthEngine:
        return self._auth

    def url_for(self, path: str) -> str:
        """Base URL + ``/`` + path fragment, appended verbatim."""
        return f"{self.config.base_url}/{path}"

    async def access_token(self) -> Token:
        """Return a fresh token, refreshing first if needed.

        Raises:
            InvalidTokenError: If no token is held.
            TokenConfigError: If the refresh is rejected.
            TransportError: If the identity endpoint cannot be reached.
        """
        return await self._tokens.ensure_fresh(self._auth.refresh)

    async def refresh_token(self) -> Token:
        """Refresh now, regardless of freshness."""
        return await self._tokens.refresh(self._auth.refresh)

    async def request(
        self,
        method: HTTPMethod | str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one authenticated request and return the undecoded response.

        Nothing is retried. POST and PUT carry ``body`` as JSON.

        Raises:
            InvalidTokenError: If no token is held.
            TokenConfigError: If a needed refresh is rejected.
            TransportError: On a transport-level failure.
        """
        method = HTTPMethod(method)
        token = await self.access_token()
        headers = token.authorization_header()
        kwargs: dict[str, Any] = {}
        if method.has_body:
            headers.update(JSON_HEADERS)
            kwargs["json"] = _json_body(body)
        if params:
            kwargs["params"] = params

        url = self.url_for(path)
        self._logger.debug("Sending request", method=str(method), path=path)
        return await self._executor.execute(str(method), url, headers=headers, **kwargs)

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        return await self.request(HTTPMethod.GET, path, params=params)

    async def post(self, path: str, body: Any) -> httpx.Response:
        return await self.request(HTTPMethod.POST, path, body=body)

    async def put(self, path: str, body: Any) -> httpx.Response:
        return await self.request(HTTPMethod.PUT, path, body=body)

    async def delete(self, path: str) -> httpx.Response:
        return await self.request(HTTPMethod.DELETE, path)

    async def send(self, descriptor: RequestDescriptor[T]) -> T:
        """Send a described request and decode its envelope into the shape.

        Raises:
            RemoteError: For an error envelope or a failed status.
            JsonDecodeError: If the body does not decode.
        """
        with trace_operation(
            "send", attributes={"http.method": str(descriptor.method), "path": descriptor.path}
        ):
            response = await self.request(
                descriptor.method,
                descriptor.path,
                body=descriptor.body,
                params=descriptor.params or None,
            )
            return decode_response(response, descriptor.shape)

    async def send_partial(
        self,
        descriptor: RequestDescriptor[Any],
        items_key: str,
        *,
        errors_key: str = "Errors",
    ) -> PartialResult[Any]:
        """Like :meth:`send` for list endpoints returning per-item errors.

        ``descriptor.shape`` is the shape of one item.
        """
        response = await self.request(
            descriptor.method,
            descriptor.path,
            body=descriptor.body,
            params=descriptor.params or None,
        )
        return decode_partial(
            response.content,
            descriptor.shape,
            items_key,
            errors_key=errors_key,
            status_code=response.status_code,
        )

    def stream(self, descriptor: StreamDescriptor[P]) -> EventStream[P]:
        """Open a stream lazily; nothing is sent until the first item is awaited."""
        return EventStream(partial(self._open_stream, descriptor.path), descriptor)

    async def stream_to(self, descriptor: StreamDescriptor[P], callback: StreamCallback) -> list[P]:
        """Push surface: feed every stream item to ``callback``.

        See :func:`~tradestation_sdk.stream.run_stream`.
        """
        return await run_stream(self.stream(descriptor), callback)

    @asynccontextmanager
    async def _open_stream(self, path: str) -> AsyncIterator[httpx.Response]:
        token = await self.access_token()
        url = self.url_for(path)
        async with self._executor.stream(
            "GET",
            url,
            headers=token.authorization_header(),
        ) as response:
            yield response
