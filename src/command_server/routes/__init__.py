"""HTTP routes."""

from .command import command_routes
from .health import health_routes

__all__ = [
    "command_routes",
    "health_routes",
]
