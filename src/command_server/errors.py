"""Error taxonomy for the command server.

Two families matter to the dispatcher:
- RequestError: the inbound envelope itself is unusable (carries its own status)
- CommandError: a handler failed; converted to a 500 envelope while nothing
  has been written yet

TransportError covers misuse of the response transport state machine.
"""

from __future__ import annotations


class CommandServerError(Exception):
    """Base class for all command server errors."""


# =============================================================================
# Request errors (raised by the dispatcher before any handler runs)
# =============================================================================


class RequestError(CommandServerError):
    """The inbound request cannot be dispatched."""

    status_code: int = 400


class DecodeError(RequestError):
    """Malformed inbound envelope."""

    status_code = 400


class CommandNotFoundError(RequestError):
    """No handler is registered under the requested name."""

    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__("Command not found")
        self.name = name


# =============================================================================
# Command errors (raised by handlers)
# =============================================================================


class CommandError(CommandServerError):
    """A handler failed before producing its response."""


class InvalidArgumentError(CommandError):
    """A command argument is missing or has the wrong type."""


class UpstreamUnreachableError(CommandError):
    """The outbound request failed at the network level."""


class UpstreamBodyMalformedError(CommandError):
    """The upstream declared a structured body that does not decode."""


# =============================================================================
# Transport errors
# =============================================================================


class TransportError(CommandServerError):
    """Violation of the response transport contract."""


class TransportUnsupportedError(TransportError):
    """The underlying connection cannot flush events incrementally."""


class AlreadyStartedError(TransportError):
    """Output was already started (or finished) on this transport."""


class NotStartedError(TransportError):
    """The stream was ended before it was started."""
