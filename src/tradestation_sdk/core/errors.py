"""Centralized error factory for the TradeStation SDK.

Provides consistent error creation and transformation across all SDK components.
"""

from __future__ import annotations

import json

import httpx
import pydantic

from ..errors import (
    BadRequestError,
    ForbiddenError,
    GatewayTimeoutError,
    InternalServerError,
    JsonDecodeError,
    RemoteError,
    TooManyRequestsError,
    TradeStationError,
    TransportError,
    UnauthorizedError,
    UnknownRemoteError,
)

# Exact, case-sensitive remote error strings.
REMOTE_ERRORS: dict[str, type[RemoteError]] = {
    "BadRequest": BadRequestError,
    "Unauthorized": UnauthorizedError,
    "Forbidden": ForbiddenError,
    "TooManyRequests": TooManyRequestsError,
    "InternalServerError": InternalServerError,
    "GatewayTimeout": GatewayTimeoutError,
}

STATUS_ERRORS: dict[int, type[RemoteError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    429: TooManyRequestsError,
    500: InternalServerError,
    504: GatewayTimeoutError,
}


class ErrorFactory:
    """Centralized error creation with consistent structure."""

    @staticmethod
    def from_remote(
        error: str,
        message: str,
        *,
        status_code: int | None = None,
    ) -> RemoteError:
        """Create SDK error from a remote ``{error, message}`` envelope.

        Args:
            error: Remote error string.
            message: Remote error message, carried verbatim.
            status_code: HTTP status the envelope arrived with, if known.

        Returns:
            Matching RemoteError subclass, UnknownRemoteError otherwise.
        """
        error_cls = REMOTE_ERRORS.get(error, UnknownRemoteError)
        return error_cls(message, remote_error=error, status_code=status_code)

    @staticmethod
    def from_status(status_code: int, message: str | None = None) -> RemoteError:
        """Create SDK error from a non-2xx status without a usable envelope.

        Args:
            status_code: HTTP status code.
            message: Optional body text to carry along.

        Returns:
            RemoteError subclass matching the status.
        """
        error_cls = STATUS_ERRORS.get(status_code, UnknownRemoteError)
        return error_cls(
            message or f"Request failed with status {status_code}",
            status_code=status_code,
        )

    @staticmethod
    def from_exception(exc: Exception) -> TradeStationError:
        """Create SDK error from exception.

        Args:
            exc: Original exception.

        Returns:
            Appropriate TradeStationError subclass.
        """
        if isinstance(exc, TradeStationError):
            return exc

        if isinstance(exc, httpx.ConnectError):
            return TransportError(f"Connection failed: {exc}", cause=exc)

        if isinstance(exc, httpx.HTTPError):
            return TransportError(f"HTTP error: {exc}", cause=exc)

        if isinstance(exc, (json.JSONDecodeError, UnicodeDecodeError)):
            return JsonDecodeError(f"Invalid JSON: {exc}")

        if isinstance(exc, pydantic.ValidationError):
            return JsonDecodeError(
                f"Unexpected response shape: {exc.error_count()} validation error(s)"
            )

        return TransportError(f"Unexpected error: {exc}", cause=exc)
