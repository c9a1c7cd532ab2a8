"""Response envelope decoding.

The API answers many business failures with HTTP 200, so a body is
classified by key presence: a JSON object carrying both string keys
``error`` and ``message`` is a remote error, anything else is a payload.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .core.errors import ErrorFactory
from .errors import JsonDecodeError, RemoteError
from .telemetry import get_logger

if TYPE_CHECKING:
    import httpx

T = TypeVar("T")


class EnvelopeKind(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Envelope:
    """Parsed body, tagged as success or remote error."""

    kind: EnvelopeKind
    value: Any
    error: str | None = None
    message: str | None = None

    @property
    def is_error(self) -> bool:
        return self.kind is EnvelopeKind.ERROR

    def to_error(self, *, status_code: int | None = None) -> RemoteError:
        """Typed error for an error envelope."""
        if not self.is_error:
            msg = "Envelope is not an error"
            raise ValueError(msg)
        return ErrorFactory.from_remote(
            self.error or "",
            self.message or "",
            status_code=status_code,
        )


def is_error_object(value: Any) -> bool:
    """True if ``value`` is an object with string ``error`` and ``message`` keys."""
    return (
        isinstance(value, dict)
        and isinstance(value.get("error"), str)
        and isinstance(value.get("message"), str)
    )


def load_json(body: bytes | str) -> Any:
    """Parse JSON text, raising JsonDecodeError for empty or invalid input.

    Bytes must be valid UTF-8; undecodable input is rejected, never repaired.
    """
    if isinstance(body, bytes):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise JsonDecodeError(
                f"Body is not valid UTF-8: {e.reason}",
                text=body.decode("utf-8", errors="replace"),
            ) from e
    else:
        text = body
    if not text.strip():
        msg = "Empty response body"
        raise JsonDecodeError(msg, text=text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise JsonDecodeError(f"Invalid JSON: {e.msg}", text=text) from e


def parse_envelope(body: bytes | str) -> Envelope:
    """Parse a body and tag it as success or remote error.

    Raises:
        JsonDecodeError: If the body is empty or not JSON.
    """
    value = load_json(body)
    if is_error_object(value):
        return Envelope(
            EnvelopeKind.ERROR,
            value,
            error=value["error"],
            message=value["message"],
        )
    return Envelope(EnvelopeKind.SUCCESS, value)


@lru_cache(maxsize=256)
def type_adapter(shape: Any) -> TypeAdapter[Any]:
    """Cached pydantic adapter for a response shape."""
    return TypeAdapter(shape)


def validate_shape(value: Any, shape: Any) -> Any:
    """Validate an already-parsed JSON value against ``shape``.

    Raises:
        JsonDecodeError: If the value does not fit the shape.
    """
    try:
        return type_adapter(shape).validate_python(value)
    except ValidationError as e:
        raise JsonDecodeError(
            f"Unexpected response shape: {e.error_count()} validation error(s)",
            text=json.dumps(value, default=str)[:2000],
        ) from e


def decode(body: bytes | str, shape: type[T] | Any, *, status_code: int | None = None) -> T:
    """Decode a response body into ``shape`` or raise the typed error.

    The HTTP status never selects the error kind: a body that is neither an
    error envelope nor a valid ``shape`` is a json-decode failure whatever
    status it arrived with. The status is only carried on the raised error.

    Args:
        body: Raw response body.
        shape: Anything a pydantic ``TypeAdapter`` accepts.
        status_code: HTTP status the body arrived with.

    Raises:
        RemoteError: For an error envelope.
        JsonDecodeError: If the body does not decode into ``shape``.
    """
    try:
        envelope = parse_envelope(body)
        if not envelope.is_error:
            return validate_shape(envelope.value, shape)
    except JsonDecodeError as e:
        if status_code is not None:
            e.status_code = status_code
        raise

    get_logger().debug(
        "Remote error envelope",
        remote_error=envelope.error,
        status_code=status_code,
    )
    raise envelope.to_error(status_code=status_code)


def decode_response(response: httpx.Response, shape: type[T] | Any) -> T:
    """Decode an ``httpx.Response`` body; see :func:`decode`."""
    return decode(response.content, shape, status_code=response.status_code)


class ItemError(BaseModel):
    """Per-item error returned next to successful items in list responses."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    error: str = Field(alias="Error")
    message: str = Field(alias="Message")
    account_id: str | None = Field(default=None, alias="AccountID")

    def to_exception(self) -> RemoteError:
        return ErrorFactory.from_remote(self.error, self.message)


@dataclass(frozen=True)
class PartialResult(Generic[T]):
    """Successful items and per-item errors from the same response."""

    items: list[T] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def decode_partial(
    body: bytes | str,
    item_shape: type[T] | Any,
    items_key: str,
    *,
    errors_key: str = "Errors",
    status_code: int | None = None,
) -> PartialResult[T]:
    """Decode a list response that may carry per-item errors.

    Example body: ``{"Balances": [...], "Errors": [{"AccountID": ..., ...}]}``.
    """
    root = decode(body, dict[str, Any], status_code=status_code)
    items = validate_shape(root.get(items_key) or [], list[item_shape])
    errors = validate_shape(root.get(errors_key) or [], list[ItemError])
    return PartialResult(items=items, errors=errors)
