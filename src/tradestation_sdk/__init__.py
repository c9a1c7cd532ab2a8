"""TradeStation API Python SDK."""

from .builder import ClientBuilder, CredentialsStep, ReadyStep
from .client import RequestDescriptor, TradeStationClient
from .config import ClientConfig, TelemetryConfig
from .envelope import Envelope, ItemError, PartialResult, decode, decode_partial
from .errors import (
    BadRequestError,
    BuilderStepError,
    ErrorCode,
    ForbiddenError,
    GatewayTimeoutError,
    InternalServerError,
    InvalidTokenError,
    JsonDecodeError,
    MissingFieldError,
    NotFoundError,
    RemoteError,
    StreamStopped,
    TokenConfigError,
    TooManyRequestsError,
    TradeStationError,
    TransportError,
    UnauthorizedError,
    UnknownRemoteError,
)
from .http import HTTPMethod
from .models import Scope, Token
from .stream import (
    EventStream,
    Heartbeat,
    Payload,
    StreamDescriptor,
    StreamErrorEvent,
    StreamStatus,
    has_key,
    run_stream,
)
from .telemetry import configure_telemetry

__all__ = [
    "BadRequestError",
    "BuilderStepError",
    "ClientBuilder",
    "ClientConfig",
    "CredentialsStep",
    "Envelope",
    "ErrorCode",
    "EventStream",
    "ForbiddenError",
    "GatewayTimeoutError",
    "HTTPMethod",
    "Heartbeat",
    "InternalServerError",
    "InvalidTokenError",
    "ItemError",
    "JsonDecodeError",
    "MissingFieldError",
    "NotFoundError",
    "PartialResult",
    "Payload",
    "ReadyStep",
    "RemoteError",
    "RequestDescriptor",
    "Scope",
    "StreamDescriptor",
    "StreamErrorEvent",
    "StreamStatus",
    "StreamStopped",
    "TelemetryConfig",
    "Token",
    "TokenConfigError",
    "TooManyRequestsError",
    "TradeStationClient",
    "TradeStationError",
    "TransportError",
    "UnauthorizedError",
    "UnknownRemoteError",
    "configure_telemetry",
    "decode",
    "decode_partial",
    "has_key",
    "run_stream",
]

__version__ = "0.1.0"
