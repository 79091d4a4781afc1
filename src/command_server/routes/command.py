"""Command endpoint.

POST / with {"cmd": ..., "args": {...}}. The response is produced by the
dispatcher writing through an ASGIResponseTransport, so the handler decides
at runtime between a JSON envelope and an SSE stream.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from ..transport import ASGIResponseTransport

if TYPE_CHECKING:
    from ..dispatcher import Dispatcher


class CommandResponse(Response):
    """Response whose body is written by the dispatched command."""

    def __init__(self, dispatcher: Dispatcher, raw_body: bytes) -> None:
        self.dispatcher = dispatcher
        self.raw_body = raw_body
        self.background = None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = ASGIResponseTransport(scope, send)
        await self.dispatcher.dispatch(self.raw_body, transport)
        await transport.close()


async def run_command(request: Request) -> Response:
    """POST / - Execute a command."""
    raw_body = await request.body()
    return CommandResponse(request.app.state.dispatcher, raw_body)


command_routes = [
    Route("/", run_command, methods=["POST"]),
]
