"""HTTP client utilities for the TradeStation SDK.

One pooled ``httpx.AsyncClient`` is owned by each SDK client and shared by
the identity endpoint, one-shot requests and streams.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import httpx

from .telemetry import SDK_NAME, SDK_VERSION

if TYPE_CHECKING:
    from .config import ClientConfig

USER_AGENT = f"{SDK_NAME}/{SDK_VERSION} Python"


class HTTPMethod(StrEnum):
    """Methods the request pipeline issues."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def has_body(self) -> bool:
        return self in (HTTPMethod.POST, HTTPMethod.PUT)


def build_timeout(config: ClientConfig) -> httpx.Timeout:
    """Connect deadline only, unless a read timeout is configured."""
    return httpx.Timeout(
        config.timeout,
        connect=config.connect_timeout,
    )


def create_async_http_client(
    config: ClientConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    URLs are always absolute (base URL + path fragment), so no ``base_url``
    is set on the client.

    Args:
        config: SDK configuration.
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        timeout=build_timeout(config),
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
        follow_redirects=False,
        transport=transport,
    )
