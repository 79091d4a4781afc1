"""Response transport abstraction.

Handlers write their output through a ResponseTransport without knowing how it
reaches the client. Two mutually exclusive output modes exist:

- Buffered: one call to write_buffered() sends the complete response.
- Streaming: send_event() opens the stream on first use and emits one event per
  call; end_stream() emits the terminal event.

The base class owns the state machine; implementations only provide the
emission primitives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from ..errors import AlreadyStartedError, NotStartedError, TransportUnsupportedError
from ..protocol.events import ResponseEnvelope, StreamEvent, StreamEventType


class TransportState(str, Enum):
    """Lifecycle of a single response."""

    IDLE = "idle"
    STARTED_BUFFERED = "started_buffered"
    STARTED_STREAMING = "started_streaming"
    ENDED = "ended"


class ResponseTransport(ABC):
    """Per-request sink with buffered and streaming output modes.

    Invariants:
    - write_buffered() and streaming are mutually exclusive, each at most once
    - end_stream() only after streaming has started
    - nothing may be written once ENDED
    """

    def __init__(self) -> None:
        self._state = TransportState.IDLE

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def started(self) -> bool:
        """True once any output has been committed."""
        return self._state is not TransportState.IDLE

    @property
    @abstractmethod
    def supports_streaming(self) -> bool:
        """Whether the connection can flush events incrementally."""
        ...

    async def write_buffered(
        self,
        status_code: int,
        headers: dict[str, list[str]],
        body: Any,
    ) -> None:
        """Send the whole response as a single envelope."""
        if self._state is not TransportState.IDLE:
            raise AlreadyStartedError(f"response already started ({self._state.value})")

        # Serialize before committing so a bad payload leaves the transport IDLE.
        envelope = ResponseEnvelope(statuscode=status_code, headers=headers, body=body)
        payload = envelope.encode()

        self._state = TransportState.STARTED_BUFFERED
        await self._emit_buffered(envelope, payload)
        self._state = TransportState.ENDED

    async def write_error(self, status_code: int, message: str) -> None:
        """Send a buffered error envelope with body {"error": message}."""
        envelope = ResponseEnvelope.error(status_code, message)
        await self.write_buffered(envelope.statuscode, envelope.headers, envelope.body)

    async def send_event(self, event_type: str | StreamEventType, data: Any) -> None:
        """Emit one stream event, opening the stream on first call."""
        if self._state is TransportState.IDLE:
            if not self.supports_streaming:
                raise TransportUnsupportedError("streaming not supported by this connection")
        elif self._state is not TransportState.STARTED_STREAMING:
            raise AlreadyStartedError(f"cannot stream in state {self._state.value}")

        event = StreamEvent.create(event_type, data)
        payload = event.encode_sse()

        if self._state is TransportState.IDLE:
            self._state = TransportState.STARTED_STREAMING
            await self._open_stream()
        await self._emit_event(event, payload)

    async def end_stream(self) -> None:
        """Emit the terminal event and finish the stream."""
        if self._state is TransportState.IDLE:
            raise NotStartedError("response not started")
        if self._state is not TransportState.STARTED_STREAMING:
            raise AlreadyStartedError(f"cannot end stream in state {self._state.value}")

        event = StreamEvent.end()
        await self._emit_event(event, event.encode_sse())
        self._state = TransportState.ENDED

    # =========================================================================
    # Emission primitives
    # =========================================================================

    @abstractmethod
    async def _emit_buffered(self, envelope: ResponseEnvelope, payload: bytes) -> None:
        """Send the encoded envelope as the complete response."""
        ...

    @abstractmethod
    async def _open_stream(self) -> None:
        """Send stream-open framing (status line, headers)."""
        ...

    @abstractmethod
    async def _emit_event(self, event: StreamEvent, payload: bytes) -> None:
        """Send and flush one SSE-framed event."""
        ...
