"""HTTP executor for the TradeStation SDK.

Sends exactly one attempt per call. Nothing is retried here: POST and PUT
may place orders, and business failures are the caller's to handle.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from ..telemetry import get_logger, trace_operation
from .errors import ErrorFactory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class HTTPExecutorProtocol(Protocol):
    """Anything that can send one request and return the response."""

    async def execute(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute HTTP request."""
        ...


class AsyncHTTPExecutor:
    """Asynchronous HTTP executor translating transport faults."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize async HTTP executor.

        Args:
            client: Async HTTP client, owned by the caller.
        """
        self._client = client
        self._logger = get_logger()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def execute(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute a single HTTP request and read its body.

        Args:
            method: HTTP method.
            url: Absolute request URL.
            **kwargs: Additional request arguments.

        Returns:
            HTTP response with the body loaded, whatever its status.

        Raises:
            TransportError: On any transport-level failure.
        """
        with trace_operation(
            "http_request",
            attributes={"http.method": method, "http.url": url},
        ) as span:
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                self._logger.warning(
                    "Request failed",
                    method=method,
                    url=url,
                    error=str(e),
                )
                raise ErrorFactory.from_exception(e) from e

            span.set_attribute("http.status_code", response.status_code)
            return response

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming response; the connection is released on exit.

        Raises:
            TransportError: If the connection cannot be opened.
        """
        try:
            async with self._client.stream(method, url, **kwargs) as response:
                yield response
        except httpx.HTTPError as e:
            self._logger.warning(
                "Stream request failed",
                method=method,
                url=url,
                error=str(e),
            )
            raise ErrorFactory.from_exception(e) from e
