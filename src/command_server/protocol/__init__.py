"""Wire protocol models.

- CommandRequest: inbound envelope {"cmd": ..., "args": {...}}
- ResponseEnvelope: buffered response {"statuscode", "headers", "body"}
- StreamEvent: one framed event of a streaming response
"""

from .commands import CommandRequest
from .events import ResponseEnvelope, StreamEvent, StreamEventType

__all__ = [
    "CommandRequest",
    "ResponseEnvelope",
    "StreamEvent",
    "StreamEventType",
]
