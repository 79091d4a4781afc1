"""Inbound request envelope.

Clients POST a single JSON object naming a command and its arguments:

    {
        "cmd": "fetch",
        "args": {"method": "GET", "url": "https://example.com", "stream": true}
    }

`args` is free-form; each command validates the subset it understands.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, StrictStr, ValidationError, field_validator

from ..errors import DecodeError


class CommandRequest(BaseModel):
    """A command invocation from client to server."""

    cmd: StrictStr
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def null_args_are_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def decode(cls, raw: bytes | str) -> CommandRequest:
        """Parse a raw request body, raising DecodeError when malformed."""
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise DecodeError("Invalid request format") from e

    @classmethod
    def create(cls, cmd: str, args: dict[str, Any] | None = None) -> CommandRequest:
        """Factory method for building requests client-side."""
        return cls(cmd=cmd, args=args or {})
