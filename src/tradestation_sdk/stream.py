"""Newline-delimited JSON stream engine.

A stream is one long-lived GET whose body carries one JSON object per
line. Each complete line is classified into a :data:`StreamEvent`:

* a domain payload, recognised by an endpoint-supplied key predicate,
* ``{"Heartbeat": n, "Timestamp": ...}`` after ~5 s of inactivity,
* ``{"StreamStatus": "opened" | "paused" | "resumed" | "closed"}``,
* anything else is read as an ``{"Error", "Message", "AccountID"}`` event.

:class:`EventStream` is the pull surface (an async iterator) and
:func:`run_stream` the push surface (a callback driven by that iterator).
"""

from __future__ import annotations

import inspect
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeAlias, TypeVar

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .core.errors import ErrorFactory
from .envelope import parse_envelope, validate_shape
from .errors import JsonDecodeError, RemoteError, StreamStopped, TradeStationError
from .telemetry import get_logger

P = TypeVar("P")


class StreamPhase(StrEnum):
    """Lifecycle of a single stream connection."""

    OPENING = "opening"
    RUNNING = "running"
    TERMINATED = "terminated"


class StreamState(StrEnum):
    OPENED = "opened"
    PAUSED = "paused"
    RESUMED = "resumed"
    CLOSED = "closed"


class Heartbeat(BaseModel):
    """Liveness ping."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    heartbeat: int = Field(alias="Heartbeat")
    timestamp: str = Field(default="", alias="Timestamp")


class StreamStatus(BaseModel):
    """Lifecycle notification. Unknown states are kept as raw strings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    state: StreamState | str = Field(alias="StreamStatus", union_mode="left_to_right")


class StreamErrorEvent(BaseModel):
    """Remote error reported in-band; the stream stays open."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    error: str = Field(validation_alias=AliasChoices("Error", "error"))
    message: str = Field(default="", validation_alias=AliasChoices("Message", "message"))
    account_id: str | None = Field(
        default=None, validation_alias=AliasChoices("AccountID", "account_id")
    )

    def to_exception(self) -> RemoteError:
        return ErrorFactory.from_remote(self.error, self.message)


@dataclass(frozen=True, slots=True)
class Payload(Generic[P]):
    """Domain event (bar, quote, order, position...)."""

    value: P


StreamEvent: TypeAlias = Payload[Any] | Heartbeat | StreamStatus | StreamErrorEvent
# Malformed lines are delivered in place as JsonDecodeError values
StreamItem: TypeAlias = StreamEvent | JsonDecodeError


def has_key(*keys: str) -> Callable[[Any], bool]:
    """Payload predicate: true if the object has any of ``keys``."""

    def predicate(value: Any) -> bool:
        return isinstance(value, dict) and any(key in value for key in keys)

    return predicate


@dataclass(frozen=True)
class StreamDescriptor(Generic[P]):
    """What endpoint glue hands the engine to open a stream."""

    path: str
    is_payload: Callable[[Any], bool]
    shape: Any = dict[str, Any]

    @classmethod
    def keyed(cls, path: str, key: str, shape: Any = dict[str, Any]) -> StreamDescriptor[Any]:
        return cls(path=path, is_payload=has_key(key), shape=shape)


def classify(value: Any, is_payload: Callable[[Any], bool], shape: Any) -> StreamEvent:
    """Classify one parsed line.

    Raises:
        JsonDecodeError: If the value fits none of the event shapes.
    """
    if not isinstance(value, dict):
        msg = f"Stream line is not a JSON object: {type(value).__name__}"
        raise JsonDecodeError(msg, text=json.dumps(value))
    if is_payload(value):
        return Payload(validate_shape(value, shape))
    if "Heartbeat" in value:
        return validate_shape(value, Heartbeat)
    if "StreamStatus" in value:
        return validate_shape(value, StreamStatus)
    return validate_shape(value, StreamErrorEvent)


def is_undecodable(line: str) -> bool:
    """True if ``line`` carries bytes that were not valid UTF-8."""
    try:
        line.encode("utf-8")
    except UnicodeEncodeError:
        return True
    return False


class LineBuffer:
    """Newline framing over raw bytes.

    Lines are split on ``\\n`` before decoding, which is safe for UTF-8 since
    that byte never occurs inside a multibyte sequence. A line holding
    invalid UTF-8 keeps its bad bytes as surrogate escapes; see
    :func:`is_undecodable`.
    """

    def __init__(self) -> None:
        self._pending = bytearray()

    @property
    def pending(self) -> str:
        return self._pending.decode("utf-8", errors="replace")

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return the complete, non-blank lines it finished."""
        self._pending += chunk
        if b"\n" not in chunk:
            return []
        *lines, rest = self._pending.split(b"\n")
        self._pending = bytearray(rest)
        return [text for text in map(_decode_line, lines) if text]

    def flush(self) -> str | None:
        """Return an unterminated trailing line at end of body, if any."""
        rest = _decode_line(self._pending)
        self._pending = bytearray()
        return rest or None


def _decode_line(raw: bytes | bytearray) -> str:
    return bytes(raw).decode("utf-8", errors="surrogateescape").strip()


def opening_error(status_code: int, body: bytes) -> TradeStationError:
    """Typed error for a stream whose response status is not 2xx."""
    try:
        envelope = parse_envelope(body)
    except JsonDecodeError:
        envelope = None
    if envelope is not None and envelope.is_error:
        return envelope.to_error(status_code=status_code)
    text = body.decode("utf-8", errors="replace").strip()
    return ErrorFactory.from_status(status_code, text or None)


class EventStream(Generic[P]):
    """Pull surface over one stream connection.

    Iterate with ``async for``; leaving the loop early, ``aclose()`` or
    exiting ``async with`` releases the connection. Not restartable.
    """

    def __init__(
        self,
        opener: Callable[[], AbstractAsyncContextManager[httpx.Response]],
        descriptor: StreamDescriptor[P],
    ) -> None:
        self._opener = opener
        self.descriptor = descriptor
        self.phase = StreamPhase.OPENING
        self.lines_parsed = 0
        self.events_delivered = 0
        self._logger = get_logger().bind(stream=descriptor.path)
        self._events = self._iterate()

    def __aiter__(self) -> EventStream[P]:
        return self

    async def __anext__(self) -> StreamItem:
        if self.phase is StreamPhase.TERMINATED:
            raise StopAsyncIteration
        try:
            item = await self._events.__anext__()
        except BaseException:
            self.phase = StreamPhase.TERMINATED
            raise
        self.events_delivered += 1
        return item

    async def aclose(self) -> None:
        """Cancel the stream and release its connection."""
        self.phase = StreamPhase.TERMINATED
        await self._events.aclose()

    async def __aenter__(self) -> EventStream[P]:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _iterate(self) -> AsyncIterator[StreamItem]:
        async with self._opener() as response:
            if not response.is_success:
                body = await response.aread()
                raise opening_error(response.status_code, body)

            self.phase = StreamPhase.RUNNING
            self._logger.info("Stream opened", status_code=response.status_code)
            buffer = LineBuffer()
            try:
                async for chunk in response.aiter_bytes():
                    for line in buffer.feed(chunk):
                        yield self._parse(line)
                tail = buffer.flush()
                if tail is not None:
                    yield self._parse(tail)
            finally:
                self._logger.info(
                    "Stream closed",
                    lines_parsed=self.lines_parsed,
                    events_delivered=self.events_delivered,
                )

    def _parse(self, line: str) -> StreamItem:
        self.lines_parsed += 1
        if is_undecodable(line):
            self._logger.warning("Stream line is not valid UTF-8")
            return JsonDecodeError(
                "Stream line is not valid UTF-8",
                text=line.encode("utf-8", errors="surrogateescape").decode(
                    "utf-8", errors="replace"
                ),
            )
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            self._logger.warning("Malformed stream line", error=e.msg)
            return JsonDecodeError(f"Invalid JSON in stream line: {e.msg}", text=line)
        try:
            return classify(value, self.descriptor.is_payload, self.descriptor.shape)
        except JsonDecodeError as e:
            self._logger.warning("Unrecognised stream line", error=e.message)
            return e


StreamCallback: TypeAlias = Callable[[StreamItem], "Awaitable[Any] | Any"]


async def run_stream(events: EventStream[P], callback: StreamCallback) -> list[P]:
    """Push surface: call ``callback`` once per item, in wire order.

    The callback may be sync or async. Raising (or returning)
    :class:`StreamStopped` ends the stream and this function returns
    normally; any other exception, raised or returned, is propagated after
    the connection is released.

    Returns:
        The payload values handed to the callback.
    """
    logger = get_logger()
    delivered: list[P] = []
    async with events:
        async for item in events:
            if isinstance(item, Payload):
                delivered.append(item.value)
            try:
                result = callback(item)
                if inspect.isawaitable(result):
                    result = await result
            except StreamStopped:
                logger.info("Stream stopped by callback", stream=events.descriptor.path)
                return delivered
            if isinstance(result, StreamStopped):
                logger.info("Stream stopped by callback", stream=events.descriptor.path)
                return delivered
            if isinstance(result, BaseException):
                raise result
    return delivered
