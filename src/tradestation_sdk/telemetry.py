"""Structured logging and tracing for the TradeStation client.

Every module logs through one structlog logger and opens spans on one
OpenTelemetry tracer. Both are created lazily so importing the package never
touches global logging state; call :func:`configure_telemetry` to install
the JSON pipeline.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Generator, Mapping

    from .config import TelemetryConfig

SDK_NAME = "tradestation-sdk"
SDK_VERSION = "0.1.0"

# Event keys whose values never reach a log sink.
SECRET_KEYS = frozenset(
    {"access_token", "refresh_token", "id_token", "client_secret", "code", "authorization"}
)
REDACTED = "***"

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    """Return the client tracer, creating it on first use."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SDK_NAME, SDK_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(SDK_NAME)
    return _logger


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor masking credential values in log events."""
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def _log_level_to_int(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install the logging pipeline and tracer described by ``config``.

    Disabled telemetry swaps in a no-op tracer and leaves structlog as the
    application configured it.

    Args:
        config: Telemetry configuration.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=_processors(),
        wrapper_class=structlog.make_filtering_bound_logger(
            _log_level_to_int(config.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _tracer = trace.get_tracer(config.service_name, SDK_VERSION)
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: Mapping[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run a block inside a span named ``name``.

    Attributes with a ``None`` value are skipped. A failure inside the block
    marks the span as an error, records the exception and re-raises it.

    Yields:
        The active span.
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}"))
            raise
