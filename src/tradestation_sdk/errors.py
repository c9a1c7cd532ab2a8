"""Error classes for the TradeStation SDK.

Every operation either succeeds or raises one member of this closed
hierarchy. Remote error envelopes, transport faults and decode failures
are all translated into these types by :mod:`tradestation_sdk.core.errors`.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the TradeStation SDK."""

    # Token errors (1xxx)
    INVALID_TOKEN = "TOKEN_1001"
    TOKEN_CONFIG = "TOKEN_1002"

    # Local faults (2xxx)
    TRANSPORT = "LOCAL_2001"
    JSON_DECODE = "LOCAL_2002"
    MISSING_FIELD = "LOCAL_2003"
    BUILDER_STEP = "LOCAL_2004"

    # Stream control (3xxx)
    STREAM_STOPPED = "STREAM_3001"

    # Remote errors (4xxx)
    BAD_REQUEST = "REMOTE_4001"
    UNAUTHORIZED = "REMOTE_4002"
    FORBIDDEN = "REMOTE_4003"
    TOO_MANY_REQUESTS = "REMOTE_4004"
    INTERNAL_SERVER_ERROR = "REMOTE_4005"
    GATEWAY_TIMEOUT = "REMOTE_4006"
    UNKNOWN_REMOTE = "REMOTE_4099"

    # Lookups (5xxx)
    ACCOUNT_NOT_FOUND = "NOTFOUND_5001"
    POSITION_NOT_FOUND = "NOTFOUND_5002"
    ORDER_NOT_FOUND = "NOTFOUND_5003"


class TradeStationError(Exception):
    """Base error for the TradeStation SDK with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class InvalidTokenError(TradeStationError):
    """No usable token is held by the client."""

    def __init__(self, message: str = "Token is missing, expired or invalid") -> None:
        super().__init__(message, ErrorCode.INVALID_TOKEN, status_code=401)


class TokenConfigError(TradeStationError):
    """Token could not be obtained or assembled from the given inputs."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TOKEN_CONFIG,
            status_code=status_code,
            details=details,
        )


class TransportError(TradeStationError):
    """The HTTP exchange itself failed (DNS, connection reset, protocol)."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TRANSPORT,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class JsonDecodeError(TradeStationError):
    """A body or stream line is not valid JSON or not of the expected shape."""

    def __init__(
        self,
        message: str,
        *,
        text: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.JSON_DECODE,
            status_code=status_code,
            details={"text": text} if text is not None else None,
        )
        self.text = text


class StreamStopped(TradeStationError):
    """Control signal raised by a stream callback to end the stream cleanly.

    This is not a fault: the push surface catches it and returns normally.
    """

    def __init__(self, message: str = "Stream stopped by caller") -> None:
        super().__init__(message, ErrorCode.STREAM_STOPPED)


class MissingFieldError(TradeStationError):
    """A request builder was finished without a required field."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Required field {field!r} is not set",
            ErrorCode.MISSING_FIELD,
            details={"field": field},
        )
        self.field = field


class BuilderStepError(TradeStationError):
    """A client builder method was called out of order."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.BUILDER_STEP)


class RemoteError(TradeStationError):
    """Error reported by the API in an ``{error, message}`` envelope."""

    default_code: ErrorCode = ErrorCode.UNKNOWN_REMOTE
    default_status: int | None = None

    def __init__(
        self,
        message: str,
        *,
        remote_error: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message,
            self.default_code,
            status_code=status_code if status_code is not None else self.default_status,
            details={"remote_error": remote_error} if remote_error else None,
        )
        self.remote_error = remote_error


class BadRequestError(RemoteError):
    """The API rejected the request as malformed."""

    default_code = ErrorCode.BAD_REQUEST
    default_status = 400


class UnauthorizedError(RemoteError):
    """The API did not accept the bearer token."""

    default_code = ErrorCode.UNAUTHORIZED
    default_status = 401


class ForbiddenError(RemoteError):
    default_code = ErrorCode.FORBIDDEN
    default_status = 403


class TooManyRequestsError(RemoteError):
    """Rate limit or concurrent stream cap exceeded."""

    default_code = ErrorCode.TOO_MANY_REQUESTS
    default_status = 429


class InternalServerError(RemoteError):
    default_code = ErrorCode.INTERNAL_SERVER_ERROR
    default_status = 500


class GatewayTimeoutError(RemoteError):
    default_code = ErrorCode.GATEWAY_TIMEOUT
    default_status = 504


class UnknownRemoteError(RemoteError):
    """Remote error string outside the known table; kept verbatim."""

    default_code = ErrorCode.UNKNOWN_REMOTE


class NotFoundError(TradeStationError):
    """A looked-up resource does not exist for this user."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: ErrorCode,
    ) -> None:
        super().__init__(
            f"No {resource} found with id {identifier!r}",
            code,
            status_code=404,
            details={"resource": resource, "id": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id: str) -> None:
        super().__init__("account", account_id, ErrorCode.ACCOUNT_NOT_FOUND)


class PositionNotFoundError(NotFoundError):
    def __init__(self, position_id: str) -> None:
        super().__init__("position", position_id, ErrorCode.POSITION_NOT_FOUND)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__("order", order_id, ErrorCode.ORDER_NOT_FOUND)
