"""In-memory transport that records what a handler wrote.

Useful for driving commands without an HTTP connection (tests, embedding).
"""

from __future__ import annotations

from ..protocol.events import ResponseEnvelope, StreamEvent
from .base import ResponseTransport


class CollectingTransport(ResponseTransport):
    """Collects the buffered envelope or the stream events.

    Args:
        streaming: Set False to simulate a connection that cannot flush
    """

    def __init__(self, streaming: bool = True) -> None:
        super().__init__()
        self._streaming = streaming
        self.envelope: ResponseEnvelope | None = None
        self.events: list[StreamEvent] = []
        self.stream_opened = False

    @property
    def supports_streaming(self) -> bool:
        return self._streaming

    @property
    def event_types(self) -> list[str]:
        return [event.type for event in self.events]

    async def _emit_buffered(self, envelope: ResponseEnvelope, payload: bytes) -> None:
        self.envelope = envelope

    async def _open_stream(self) -> None:
        self.stream_opened = True

    async def _emit_event(self, event: StreamEvent, payload: bytes) -> None:
        self.events.append(event)
