"""Response transport layer.

Handlers write through a ResponseTransport; the implementation decides how
output reaches the client:
- ASGIResponseTransport - HTTP connection, JSON envelope or SSE stream
- CollectingTransport - in-memory, for embedding and tests
"""

from .base import ResponseTransport, TransportState
from .memory import CollectingTransport
from .sse import ASGIResponseTransport

__all__ = [
    # Base abstractions
    "ResponseTransport",
    "TransportState",
    # Implementations
    "ASGIResponseTransport",
    "CollectingTransport",
]
