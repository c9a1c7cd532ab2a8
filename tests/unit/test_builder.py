"""Unit tests for step-by-step client construction."""

import asyncio
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from tradestation_sdk.builder import ClientBuilder, ReadyStep, placeholder_token
from tradestation_sdk.client import TradeStationClient
from tradestation_sdk.errors import BuilderStepError, TokenConfigError
from tradestation_sdk.models import Scope, Token


class TestAuthorizationCodeFlow:
    """Credentials, then code exchange, then build."""

    def test_exchange_and_build(self, sample_token_response: dict) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=sample_token_response)

        async def run():
            step = await (
                ClientBuilder(transport=httpx.MockTransport(handler))
                .credentials("CID", "CSEC")
                .exchange_code("ABC")
            )
            return step.build()

        before = datetime.now(UTC)
        client = asyncio.run(run())

        form = {k: v[0] for k, v in parse_qs(seen[0].content.decode()).items()}
        assert str(seen[0].url) == "https://signin.tradestation.com/oauth/token"
        assert form == {
            "grant_type": "authorization_code",
            "client_id": "CID",
            "client_secret": "CSEC",
            "code": "ABC",
            "redirect_uri": "http://localhost:8080/",
        }
        token = client.token
        assert isinstance(client, TradeStationClient)
        assert token.scope == {Scope.OPENID, Scope.OFFLINE_ACCESS, Scope.MARKET_DATA}
        assert token.is_fresh(30)
        assert token.is_fresh(30, now=before + timedelta(seconds=1160))
        assert not token.is_fresh(30, now=datetime.now(UTC) + timedelta(seconds=1171))

    def test_custom_redirect_and_scopes(self, sample_token_response: dict) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=sample_token_response)

        step = (
            ClientBuilder(transport=httpx.MockTransport(handler))
            .credentials("CID", "CSEC")
            .redirect_uri("https://example.com/callback")
            .scopes([Scope.OPENID, Scope.OFFLINE_ACCESS, Scope.TRADE])
            .identity_url("https://signin.test")
        )

        url = step.authorization_url("state-1")
        asyncio.run(step.exchange_code("ABC"))

        assert url.startswith("https://signin.test/authorize?")
        assert "scope=Trade%20openid%20offline_access" in url
        assert "redirect_uri=https%3A%2F%2Fexample.com%2Fcallback" in url
        assert parse_qs(seen[0].content.decode())["redirect_uri"] == [
            "https://example.com/callback"
        ]

    def test_rejected_code(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid_grant"})

        step = ClientBuilder(transport=httpx.MockTransport(handler)).credentials("CID", "CSEC")

        with pytest.raises(TokenConfigError):
            asyncio.run(step.exchange_code("BAD"))

    def test_shared_http_client(self, sample_token_response: dict) -> None:
        async def run():
            http = httpx.AsyncClient(
                transport=httpx.MockTransport(
                    lambda r: httpx.Response(200, json=sample_token_response)
                )
            )
            step = await ClientBuilder(http_client=http).credentials("CID", "CSEC").exchange_code("ABC")
            client = step.build()
            await client.close()
            closed = http.is_closed
            await http.aclose()
            return closed

        assert asyncio.run(run()) is False


class TestExistingToken:
    """Credentials, then a restored token, then build."""

    def test_with_token(self, make_token) -> None:
        token = make_token("restored")

        client = ClientBuilder().credentials("CID", "CSEC").with_token(token).build()

        assert client.token is token
        assert client.config.base_url == "https://api.tradestation.com/v3"

    def test_with_token_and_testing_url(self, make_token) -> None:
        client = (
            ClientBuilder()
            .credentials("CID", "CSEC")
            .refresh_margin(60)
            .testing_url("127.0.0.1:8080")
            .with_token(make_token())
            .build()
        )

        assert client.config.base_url == "http://127.0.0.1:8080"
        assert client.tokens.margin == 60


class TestStepOrder:
    """Out-of-order calls raise BuilderStepError."""

    def test_build_without_credentials(self) -> None:
        with pytest.raises(BuilderStepError, match="credentials"):
            ClientBuilder().build()

    def test_build_without_token(self) -> None:
        with pytest.raises(BuilderStepError, match="with_token"):
            ClientBuilder().credentials("CID", "CSEC").build()

    def test_invalid_settings(self) -> None:
        step = ClientBuilder().credentials("CID", "CSEC").refresh_margin(5)

        with pytest.raises(TokenConfigError, match="Invalid client configuration"):
            step.config()

    def test_missing_required_scope(self, make_token) -> None:
        step = ClientBuilder().credentials("CID", "CSEC").scopes("MarketData openid")

        with pytest.raises(TokenConfigError):
            step.with_token(make_token())


class TestTestingUrl:
    """Builder bound to a mock server."""

    def test_placeholder_client(self) -> None:
        ready = ClientBuilder().testing_url("127.0.0.1:8080")
        client = ready.build()

        assert isinstance(ready, ReadyStep)
        assert client.config.base_url == "http://127.0.0.1:8080"
        assert client.token.is_fresh(30)
        assert client.token.expires_in == 9999

    def test_requests_go_to_testing_url(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Accounts": []})

        async def run():
            async with ClientBuilder(transport=httpx.MockTransport(handler)).testing_url(
                "http://127.0.0.1:9999"
            ).build() as client:
                await client.get("brokerage/accounts")

        asyncio.run(run())

        assert str(seen[0].url) == "http://127.0.0.1:9999/brokerage/accounts"

    def test_placeholder_token(self) -> None:
        token = placeholder_token()

        assert isinstance(token, Token)
        assert token.scope == frozenset(Scope)
