"""Command handler interface and registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..transport import ResponseTransport


class Command(ABC):
    """A unit of logic invoked by name.

    A command writes its whole output through the transport. Exceptions raised
    before any output is written become error envelopes; once output has
    started the command must report problems in-band.
    """

    @abstractmethod
    async def execute(self, args: dict[str, Any], transport: ResponseTransport) -> None:
        """Run the command with the caller's arguments."""
        ...


class CommandRegistry:
    """Maps command names to handlers.

    Filled once at startup, then only read. Lookups need no locking because
    nothing registers while requests are being served.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, name: str, command: Command) -> None:
        """Bind a handler to a name, replacing any previous binding."""
        self._commands[name] = command

    def resolve(self, name: str) -> Command | None:
        return self._commands.get(name)

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)
