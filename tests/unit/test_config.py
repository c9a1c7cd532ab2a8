"""Unit tests for SDK configuration."""

import pytest
from pydantic import ValidationError

from tradestation_sdk.config import (
    DEFAULT_BASE_URL,
    DEFAULT_REDIRECT_URI,
    ClientConfig,
    TelemetryConfig,
)
from tradestation_sdk.models import REQUIRED_SCOPES, Scope


class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC")

        assert config.base_url == DEFAULT_BASE_URL
        assert config.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.scopes == REQUIRED_SCOPES
        assert config.refresh_margin == 30
        assert config.timeout is None
        assert config.token_endpoint == "https://signin.tradestation.com/oauth/token"
        assert config.authorization_endpoint == "https://signin.tradestation.com/authorize"

    def test_secret_is_masked(self) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC")

        assert "CSEC" not in repr(config)
        assert config.client_secret.get_secret_value() == "CSEC"

    def test_scopes_from_string(self) -> None:
        config = ClientConfig(
            client_id="CID",
            client_secret="CSEC",
            scopes="openid offline_access Trade",
        )

        assert Scope.TRADE in config.scopes
        assert config.scope_string == "Trade openid offline_access"

    def test_required_scopes_enforced(self) -> None:
        with pytest.raises(ValidationError, match="offline_access"):
            ClientConfig(client_id="CID", client_secret="CSEC", scopes="openid MarketData")

    def test_margin_lower_bound(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig(client_id="CID", client_secret="CSEC", refresh_margin=10)

    @pytest.mark.parametrize(
        ("given", "expected"),
        [
            ("127.0.0.1:8080", "http://127.0.0.1:8080"),
            ("http://127.0.0.1:8080/", "http://127.0.0.1:8080"),
            ("https://sim-api.tradestation.com/v3/", "https://sim-api.tradestation.com/v3"),
        ],
    )
    def test_base_url_normalized(self, given: str, expected: str) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC", base_url=given)

        assert config.base_url == expected

    def test_immutable(self) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC")

        with pytest.raises(ValidationError):
            config.client_id = "other"  # type: ignore[misc]

    def test_with_overrides(self) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC")

        updated = config.with_overrides(refresh_margin=60)

        assert updated.refresh_margin == 60
        assert updated.client_secret.get_secret_value() == "CSEC"
        assert config.refresh_margin == 30

    def test_with_overrides_revalidates(self) -> None:
        config = ClientConfig(client_id="CID", client_secret="CSEC")

        with pytest.raises(ValidationError):
            config.with_overrides(refresh_margin=1)


class TestFromEnv:
    """Tests for environment configuration."""

    def test_reads_prefixed_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRADESTATION_CLIENT_ID", "env-id")
        monkeypatch.setenv("TRADESTATION_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("TRADESTATION_SCOPES", "openid offline_access ReadAccount")
        monkeypatch.setenv("TRADESTATION_BASE_URL", "https://sim-api.tradestation.com/v3")
        monkeypatch.setenv("TRADESTATION_REFRESH_MARGIN", "45")

        config = ClientConfig.from_env()

        assert config.client_id == "env-id"
        assert Scope.READ_ACCOUNT in config.scopes
        assert config.base_url == "https://sim-api.tradestation.com/v3"
        assert config.refresh_margin == 45

    def test_missing_client_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRADESTATION_CLIENT_ID", raising=False)

        with pytest.raises(ValueError, match="TRADESTATION_CLIENT_ID"):
            ClientConfig.from_env()

    def test_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TS_CLIENT_ID", "a")
        monkeypatch.delenv("TS_CLIENT_SECRET", raising=False)

        with pytest.raises(ValueError, match="TS_CLIENT_SECRET"):
            ClientConfig.from_env(prefix="TS_")


class TestTelemetryConfig:
    def test_defaults(self) -> None:
        config = TelemetryConfig()

        assert config.enabled is True
        assert config.service_name == "tradestation-sdk"
