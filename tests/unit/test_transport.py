"""Unit tests for the response transport state machine.

Uses CollectingTransport for the state rules and a recorded ASGI `send` for
the HTTP binding.
"""

from __future__ import annotations

from typing import Any

import pytest

from command_server.errors import (
    AlreadyStartedError,
    NotStartedError,
    TransportUnsupportedError,
)
from command_server.transport import (
    ASGIResponseTransport,
    CollectingTransport,
    TransportState,
)

# =============================================================================
# State machine
# =============================================================================


class TestBufferedMode:
    """write_buffered() sends everything at once."""

    @pytest.mark.asyncio
    async def test_write_buffered_ends_response(self, transport: CollectingTransport) -> None:
        """A buffered write goes from IDLE straight to ENDED."""
        assert transport.state is TransportState.IDLE
        assert transport.started is False

        await transport.write_buffered(201, {"X-Test": ["1"]}, {"ok": True})

        assert transport.state is TransportState.ENDED
        assert transport.envelope is not None
        assert transport.envelope.statuscode == 201
        assert transport.envelope.headers == {"X-Test": ["1"]}
        assert transport.envelope.body == {"ok": True}

    @pytest.mark.asyncio
    async def test_second_buffered_write_rejected(self, transport: CollectingTransport) -> None:
        """Only one buffered write per response."""
        await transport.write_buffered(200, {}, "first")

        with pytest.raises(AlreadyStartedError):
            await transport.write_buffered(200, {}, "second")

        assert transport.envelope is not None
        assert transport.envelope.body == "first"

    @pytest.mark.asyncio
    async def test_stream_after_buffered_rejected(self, transport: CollectingTransport) -> None:
        """Streaming is not allowed once a buffered response was sent."""
        await transport.write_buffered(200, {}, None)

        with pytest.raises(AlreadyStartedError):
            await transport.send_event("data", "x")
        with pytest.raises(AlreadyStartedError):
            await transport.end_stream()

        assert transport.events == []

    @pytest.mark.asyncio
    async def test_write_error(self, transport: CollectingTransport) -> None:
        """write_error() produces the standard error envelope."""
        await transport.write_error(404, "Command not found")

        assert transport.envelope is not None
        assert transport.envelope.statuscode == 404
        assert transport.envelope.headers == {"Content-Type": ["application/json"]}
        assert transport.envelope.body == {"error": "Command not found"}


class TestStreamingMode:
    """send_event() / end_stream() produce an event stream."""

    @pytest.mark.asyncio
    async def test_first_event_opens_stream(self, transport: CollectingTransport) -> None:
        """The first event opens the stream exactly once."""
        await transport.send_event("start", {"statuscode": 200, "headers": {}})
        await transport.send_event("data", "chunk")

        assert transport.stream_opened is True
        assert transport.state is TransportState.STARTED_STREAMING
        assert transport.event_types == ["start", "data"]

    @pytest.mark.asyncio
    async def test_end_stream_emits_terminal_event(self, transport: CollectingTransport) -> None:
        """end_stream() appends an empty `end` event and finishes."""
        await transport.send_event("start", {})
        await transport.end_stream()

        assert transport.state is TransportState.ENDED
        assert transport.events[-1].type == "end"
        assert transport.events[-1].data == {}

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, transport: CollectingTransport) -> None:
        """end_stream() from IDLE is a contract violation."""
        with pytest.raises(NotStartedError):
            await transport.end_stream()

        assert transport.state is TransportState.IDLE

    @pytest.mark.asyncio
    async def test_no_events_after_end(self, transport: CollectingTransport) -> None:
        """Nothing can be written once the stream has ended."""
        await transport.send_event("start", {})
        await transport.end_stream()

        with pytest.raises(AlreadyStartedError):
            await transport.send_event("data", "late")
        with pytest.raises(AlreadyStartedError):
            await transport.end_stream()

        assert transport.event_types == ["start", "end"]

    @pytest.mark.asyncio
    async def test_buffered_after_stream_rejected(self, transport: CollectingTransport) -> None:
        """A buffered write is not allowed once streaming has started."""
        await transport.send_event("start", {})

        with pytest.raises(AlreadyStartedError):
            await transport.write_buffered(500, {}, {"error": "boom"})

        assert transport.envelope is None

    @pytest.mark.asyncio
    async def test_unsupported_connection_stays_idle(self) -> None:
        """A connection without incremental flushing refuses to stream."""
        transport = CollectingTransport(streaming=False)

        with pytest.raises(TransportUnsupportedError):
            await transport.send_event("start", {})

        assert transport.state is TransportState.IDLE
        assert transport.stream_opened is False

        # A buffered response is still possible
        await transport.write_error(500, "streaming not supported")
        assert transport.envelope is not None


class TestUnserializablePayload:
    """A payload that cannot be encoded commits nothing."""

    @pytest.mark.asyncio
    async def test_buffered_write_stays_idle(self, transport: CollectingTransport) -> None:
        with pytest.raises(ValueError):
            await transport.write_buffered(200, {}, object())

        assert transport.state is TransportState.IDLE
        assert transport.envelope is None

        await transport.write_error(500, "bad payload")
        assert transport.envelope is not None
        assert transport.envelope.statuscode == 500

    @pytest.mark.asyncio
    async def test_first_event_does_not_open_stream(self, transport: CollectingTransport) -> None:
        with pytest.raises(TypeError):
            await transport.send_event("start", object())

        assert transport.state is TransportState.IDLE
        assert transport.stream_opened is False
        assert transport.events == []

    @pytest.mark.asyncio
    async def test_later_event_keeps_stream_open(self, transport: CollectingTransport) -> None:
        """A bad event mid-stream is not emitted; the stream can still end."""
        await transport.send_event("start", {})

        with pytest.raises(TypeError):
            await transport.send_event("data", object())

        await transport.end_stream()
        assert transport.event_types == ["start", "end"]


# =============================================================================
# ASGI binding
# =============================================================================


class RecordingSend:
    """Collects ASGI messages."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def start(self) -> dict[str, Any]:
        return self.messages[0]

    @property
    def headers(self) -> dict[bytes, bytes]:
        return dict(self.start["headers"])

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages[1:])


def make_asgi_transport(http_version: str = "1.1") -> tuple[ASGIResponseTransport, RecordingSend]:
    send = RecordingSend()
    scope = {"type": "http", "http_version": http_version}
    return ASGIResponseTransport(scope, send), send


class TestASGIResponseTransport:
    """Tests for the HTTP binding."""

    @pytest.mark.asyncio
    async def test_buffered_response(self) -> None:
        """Buffered envelope is sent as JSON with the envelope's status."""
        transport, send = make_asgi_transport()

        await transport.write_buffered(404, {"X-Upstream": ["a", "b"]}, {"missing": True})

        assert send.start["type"] == "http.response.start"
        assert send.start["status"] == 404
        assert send.headers[b"content-type"] == b"application/json"
        assert (b"x-upstream", b"a") in send.start["headers"]
        assert (b"x-upstream", b"b") in send.start["headers"]
        assert send.messages[-1]["more_body"] is False
        assert b'"statuscode":404' in send.body
        assert b'"missing":true' in send.body

    @pytest.mark.asyncio
    async def test_buffered_response_drops_framing_headers(self) -> None:
        """Upstream length/encoding headers never reach the client."""
        transport, send = make_asgi_transport()

        await transport.write_buffered(
            200,
            {
                "Content-Length": ["5"],
                "Content-Encoding": ["gzip"],
                "Transfer-Encoding": ["chunked"],
                "Content-Type": ["text/plain"],
            },
            "hello",
        )

        headers = send.headers
        assert headers[b"content-type"] == b"application/json"
        assert headers[b"content-length"] == str(len(send.body)).encode()
        assert b"content-encoding" not in headers
        assert b"transfer-encoding" not in headers
        # The envelope still reports them
        assert b'"Content-Encoding":["gzip"]' in send.body

    @pytest.mark.asyncio
    async def test_bodyless_status_sent_as_200(self) -> None:
        """A 204 upstream is wrapped in a 200 so the envelope can be sent."""
        transport, send = make_asgi_transport()

        await transport.write_buffered(204, {}, "")

        assert send.start["status"] == 200
        assert b'"statuscode":204' in send.body

    @pytest.mark.asyncio
    async def test_stream_framing(self) -> None:
        """Events are SSE-framed and each is sent as its own body message."""
        transport, send = make_asgi_transport()

        await transport.send_event("start", {"statuscode": 200, "headers": {}})
        await transport.send_event("data", "hi")
        await transport.end_stream()
        await transport.close()

        assert send.start["status"] == 200
        assert send.headers[b"content-type"] == b"text/event-stream; charset=utf-8"
        assert send.headers[b"cache-control"] == b"no-cache"

        bodies = [m["body"] for m in send.messages[1:]]
        assert bodies[0] == b'event: start\ndata: {"statuscode":200,"headers":{}}\n\n'
        assert bodies[1] == b'event: data\ndata: "hi"\n\n'
        assert bodies[2] == b"event: end\ndata: {}\n\n"
        assert all(m["more_body"] for m in send.messages[1:4])
        assert send.messages[-1] == {"type": "http.response.body", "body": b"", "more_body": False}

    @pytest.mark.asyncio
    async def test_http10_cannot_stream(self) -> None:
        """HTTP/1.0 has no chunked encoding, so streaming is refused."""
        transport, send = make_asgi_transport(http_version="1.0")

        assert transport.supports_streaming is False
        with pytest.raises(TransportUnsupportedError):
            await transport.send_event("start", {})
        assert send.messages == []

    @pytest.mark.asyncio
    async def test_close_without_output(self) -> None:
        """close() on an untouched transport sends an empty 200."""
        transport, send = make_asgi_transport()

        await transport.close()

        assert send.start["status"] == 200
        assert send.messages[-1]["more_body"] is False
        assert send.body == b""

    @pytest.mark.asyncio
    async def test_close_is_idempotent_after_buffered(self) -> None:
        """close() after a buffered write sends nothing more."""
        transport, send = make_asgi_transport()

        await transport.write_buffered(200, {}, "done")
        count = len(send.messages)
        await transport.close()

        assert len(send.messages) == count
