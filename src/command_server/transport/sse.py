"""ASGI binding of the response transport.

Writes straight to the ASGI `send` callable so every event is handed to the
server before the handler reads its next upstream chunk. Streaming output is
framed as Server-Sent Events:

    event: <type>\n
    data: <json>\n\n
"""

from __future__ import annotations

import logging

from starlette.types import Scope, Send

from ..protocol.events import ResponseEnvelope, StreamEvent
from .base import ResponseTransport

logger = logging.getLogger(__name__)

# Upstream headers that describe the upstream connection or body framing;
# never copied onto our own HTTP response.
EXCLUDED_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-connection",
        "transfer-encoding",
        "te",
        "trailer",
        "upgrade",
        "content-length",
        "content-encoding",
        "content-type",
    }
)

SSE_HEADERS = [
    (b"content-type", b"text/event-stream; charset=utf-8"),
    (b"cache-control", b"no-cache"),
    (b"connection", b"keep-alive"),
    (b"x-accel-buffering", b"no"),  # Disable nginx buffering
]


def _http_status(status_code: int) -> int:
    """Status for the HTTP status line of a buffered envelope.

    1xx, 204 and 304 responses cannot carry a body, so the envelope goes out
    as 200; the envelope itself still reports the upstream status.
    """
    if status_code < 200 or status_code in (204, 304) or status_code > 599:
        return 200
    return status_code


class ASGIResponseTransport(ResponseTransport):
    """Response transport bound to one ASGI HTTP connection."""

    def __init__(self, scope: Scope, send: Send) -> None:
        super().__init__()
        self._scope = scope
        self._send = send
        self._response_started = False
        self._response_finished = False

    @property
    def supports_streaming(self) -> bool:
        # HTTP/1.0 has no chunked transfer encoding.
        return self._scope.get("http_version", "1.1") != "1.0"

    async def _emit_buffered(self, envelope: ResponseEnvelope, payload: bytes) -> None:
        headers: list[tuple[bytes, bytes]] = [
            (name.lower().encode("latin-1"), value.encode("latin-1", errors="replace"))
            for name, values in envelope.headers.items()
            if name.lower() not in EXCLUDED_RESPONSE_HEADERS
            for value in values
        ]
        headers.append((b"content-type", b"application/json"))
        headers.append((b"content-length", str(len(payload)).encode()))

        await self._start_response(_http_status(envelope.statuscode), headers)
        await self._finish_response(payload)

    async def _open_stream(self) -> None:
        await self._start_response(200, list(SSE_HEADERS))

    async def _emit_event(self, event: StreamEvent, payload: bytes) -> None:
        await self._send({"type": "http.response.body", "body": payload, "more_body": True})

    async def close(self) -> None:
        """Complete the HTTP response, whatever state the handler left it in."""
        if self._response_finished:
            return
        if not self._response_started:
            logger.debug("Handler produced no output, sending empty response")
            await self._start_response(200, [(b"content-length", b"0")])
        await self._finish_response(b"")

    async def _start_response(self, status: int, headers: list[tuple[bytes, bytes]]) -> None:
        await self._send({"type": "http.response.start", "status": status, "headers": headers})
        self._response_started = True

    async def _finish_response(self, body: bytes) -> None:
        await self._send({"type": "http.response.body", "body": body, "more_body": False})
        self._response_finished = True
