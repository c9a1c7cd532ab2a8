"""Unit tests for logging and tracing helpers."""

from unittest.mock import MagicMock, patch

import pytest
from opentelemetry import trace

from tradestation_sdk import telemetry
from tradestation_sdk.config import TelemetryConfig
from tradestation_sdk.telemetry import (
    _log_level_to_int,
    configure_telemetry,
    get_logger,
    get_tracer,
    redact_secrets,
    trace_operation,
)


class TestRedactSecrets:
    def test_masks_credentials(self) -> None:
        event = {
            "event": "Token refreshed",
            "access_token": "A",
            "refresh_token": "R",
            "client_secret": "CSEC",
            "expires_in": 1200,
        }

        result = redact_secrets(None, "info", event)

        assert result["access_token"] == "***"
        assert result["refresh_token"] == "***"
        assert result["client_secret"] == "***"
        assert result["expires_in"] == 1200


class TestLogLevel:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [("DEBUG", 10), ("info", 20), ("WARNING", 30), ("ERROR", 40), ("bogus", 20)],
    )
    def test_levels(self, level: str, expected: int) -> None:
        assert _log_level_to_int(level) == expected


class TestConfigureTelemetry:
    def test_disabled_installs_noop_tracer(self, telemetry_config: TelemetryConfig) -> None:
        with patch.object(telemetry, "_tracer", None):
            configure_telemetry(telemetry_config)

            assert isinstance(get_tracer(), trace.NoOpTracer)

    def test_enabled_configures_structlog(self) -> None:
        with patch.object(telemetry, "_tracer", None), patch.object(
            telemetry, "_logger", None
        ), patch("tradestation_sdk.telemetry.structlog.configure") as configure:
            configure_telemetry(TelemetryConfig(service_name="svc", log_level="DEBUG"))

            processors = configure.call_args.kwargs["processors"]
            assert redact_secrets in processors
            assert get_logger() is not None


class TestTraceOperation:
    def test_sets_attributes(self) -> None:
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span
        tracer.start_as_current_span.return_value.__exit__.return_value = False

        with patch("tradestation_sdk.telemetry.get_tracer", return_value=tracer):
            with trace_operation("op", attributes={"http.method": "GET"}) as active:
                assert active is span

        tracer.start_as_current_span.assert_called_once_with("op")
        span.set_attribute.assert_called_once_with("http.method", "GET")

    def test_skips_none_attributes(self) -> None:
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span
        tracer.start_as_current_span.return_value.__exit__.return_value = False

        with patch("tradestation_sdk.telemetry.get_tracer", return_value=tracer):
            with trace_operation("op", attributes={"stream.path": None, "n": 1}):
                pass

        span.set_attribute.assert_called_once_with("n", 1)

    def test_records_errors(self) -> None:
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_as_current_span.return_value.__enter__.return_value = span
        tracer.start_as_current_span.return_value.__exit__.return_value = False

        with patch("tradestation_sdk.telemetry.get_tracer", return_value=tracer):
            with pytest.raises(RuntimeError):
                with trace_operation("op"):
                    raise RuntimeError("boom")

        span.record_exception.assert_called_once()
        span.set_status.assert_called_once()
