"""Response payloads for both output modes.

Buffered mode sends one ResponseEnvelope as the whole HTTP body.
Streaming mode sends a sequence of StreamEvents, framed as Server-Sent Events:

    event: start
    data: {"statuscode": 200, "headers": {"Content-Type": ["text/plain"]}}

    event: data
    data: "hello"

    event: end
    data: {}

`start` is always first and `end` always last.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

JSON_HEADERS: dict[str, list[str]] = {"Content-Type": ["application/json"]}


class StreamEventType(str, Enum):
    """Event tags used in streaming responses."""

    START = "start"
    DATA = "data"
    ERROR = "error"
    END = "end"


class ResponseEnvelope(BaseModel):
    """Self-describing buffered response."""

    statuscode: int
    headers: dict[str, list[str]] = Field(default_factory=dict)
    body: Any = None

    def encode(self) -> bytes:
        """Serialize to UTF-8 JSON bytes."""
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def error(cls, status_code: int, message: str) -> ResponseEnvelope:
        """Create an error envelope with body {"error": message}."""
        return cls(
            statuscode=status_code,
            headers={k: list(v) for k, v in JSON_HEADERS.items()},
            body={"error": message},
        )


class StreamEvent(BaseModel):
    """One discrete event of a streaming response."""

    type: str
    data: Any = None

    def encode_sse(self) -> bytes:
        """Frame as an SSE event (UTF-8 encoded).

        json.dumps escapes line breaks, so the payload always fits one data line.
        """
        payload = json.dumps(self.data, ensure_ascii=False, separators=(",", ":"))
        return f"event: {self.type}\ndata: {payload}\n\n".encode()

    @classmethod
    def create(cls, event_type: str | StreamEventType, data: Any = None) -> StreamEvent:
        """Factory method for creating events."""
        return cls(
            type=event_type.value if isinstance(event_type, StreamEventType) else event_type,
            data=data,
        )

    @classmethod
    def end(cls) -> StreamEvent:
        """Terminal marker event with an empty payload."""
        return cls.create(StreamEventType.END, {})
