"""
Shared test fixtures for TradeStation SDK tests.

Provides common fixtures for configuration, tokens and fake HTTP
transports built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import UTC, datetime

import httpx
import pytest

from tradestation_sdk.client import TradeStationClient
from tradestation_sdk.config import ClientConfig, TelemetryConfig
from tradestation_sdk.models import Token

BASE_URL = "https://api.test/v3"
IDENTITY_URL = "https://signin.test"


class RecordingStream(httpx.AsyncByteStream):
    """Chunked response body that records how far it was read and whether
    it was closed."""

    def __init__(self, chunks: Iterable[bytes | str]) -> None:
        self.chunks = [c.encode() if isinstance(c, str) else c for c in chunks]
        self.chunks_sent = 0
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.chunks_sent += 1
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def ndjson(*objects: object) -> str:
    """Encode objects as newline-delimited JSON."""
    return "".join(json.dumps(obj) + "\n" for obj in objects)


@pytest.fixture
def base_config() -> ClientConfig:
    """Provide a basic SDK configuration for testing."""
    return ClientConfig(
        client_id="CID",
        client_secret="CSEC",
        base_url=BASE_URL,
        identity_url=IDENTITY_URL,
    )


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    """Provide telemetry configuration for testing."""
    return TelemetryConfig(enabled=False, service_name="test-sdk", log_level="DEBUG")


@pytest.fixture
def sample_token_response() -> dict:
    """Provide the identity endpoint's authorization-code response."""
    return {
        "access_token": "A",
        "refresh_token": "R",
        "id_token": "I",
        "token_type": "Bearer",
        "scope": "openid offline_access MarketData",
        "expires_in": 1200,
    }


@pytest.fixture
def make_token() -> Callable[..., Token]:
    """Provide a token factory."""

    def _make(
        access_token: str = "A",
        *,
        refresh_token: str = "R",
        expires_in: int = 1200,
        issued_at: datetime | None = None,
    ) -> Token:
        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            id_token="I",
            scope="openid offline_access MarketData",
            expires_in=expires_in,
            issued_at=issued_at or datetime.now(UTC),
        )

    return _make


@pytest.fixture
def make_client(
    base_config: ClientConfig, make_token: Callable[..., Token]
) -> Callable[..., TradeStationClient]:
    """Provide a factory for clients wired to a mock transport handler."""

    def _make(handler: Callable, token: Token | None = None) -> TradeStationClient:
        return TradeStationClient(
            base_config,
            token if token is not None else make_token(),
            transport=httpx.MockTransport(handler),
        )

    return _make


@pytest.fixture
def recording_stream() -> type[RecordingStream]:
    """Provide the chunked body class for streaming responses."""
    return RecordingStream


@pytest.fixture
def encode_ndjson() -> Callable[..., str]:
    return ndjson
