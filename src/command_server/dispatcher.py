"""Dispatcher - turns one inbound envelope into exactly one response.

    Received -> Decoded -> Resolved -> HandlerInvoked -> Responded | Errored

Failures are converted to buffered error envelopes only while the transport
is still idle; once output has started nothing can be retracted.
"""

from __future__ import annotations

import logging

from .commands import Command, CommandRegistry
from .errors import CommandNotFoundError, CommandServerError, RequestError
from .protocol import CommandRequest
from .transport import ResponseTransport, TransportState

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes command requests to registered handlers.

    Usage:
        dispatcher = Dispatcher(build_registry())
        await dispatcher.dispatch(raw_body, transport)
    """

    def __init__(self, registry: CommandRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    async def dispatch(self, raw_body: bytes | str, transport: ResponseTransport) -> None:
        """Decode, resolve and run one command."""
        try:
            request = CommandRequest.decode(raw_body)
            command = self._resolve(request.cmd)
        except RequestError as e:
            logger.debug(f"Rejected request ({e.status_code}): {e}")
            await transport.write_error(e.status_code, str(e))
            return

        await self.invoke(command, request, transport)

    async def invoke(
        self,
        command: Command,
        request: CommandRequest,
        transport: ResponseTransport,
    ) -> None:
        """Run a resolved command, converting failures while nothing was sent."""
        logger.debug(f"Handling command: {request.cmd}")

        try:
            await command.execute(request.args, transport)
        except Exception as e:
            if transport.state is not TransportState.IDLE:
                # Bytes are already on the wire; the handler owns in-band errors.
                logger.warning(
                    f"Command {request.cmd} failed after output started "
                    f"({transport.state.value}): {e}"
                )
                return

            if isinstance(e, CommandServerError):
                logger.warning(f"Command {request.cmd} failed: {e}")
            else:
                logger.exception(f"Unexpected error in command {request.cmd}: {e}")
            await transport.write_error(500, str(e) or type(e).__name__)

    def _resolve(self, name: str) -> Command:
        command = self._registry.resolve(name)
        if command is None:
            logger.debug(f"No handler registered for {name!r}")
            raise CommandNotFoundError(name)
        return command
