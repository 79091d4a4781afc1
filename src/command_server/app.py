"""Command Server Application.

Creates the Starlette ASGI application:
- POST /    - Execute a command (JSON envelope or SSE stream)
- GET /health - Health check, lists registered commands
"""

from __future__ import annotations

import logging

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from .commands import CommandRegistry, build_registry
from .config import CORS_ALLOW_HEADERS, CORS_ALLOW_METHODS, CORS_MAX_AGE, ServerConfig
from .dispatcher import Dispatcher
from .routes import command_routes, health_routes

logger = logging.getLogger(__name__)


def create_app(
    config: ServerConfig | None = None,
    registry: CommandRegistry | None = None,
) -> Starlette:
    """Create the command server application.

    Args:
        config: Server configuration; read from the environment when omitted
        registry: Command registry; built-in commands when omitted

    Returns:
        Configured Starlette application
    """
    if config is None:
        config = ServerConfig.from_env()
    if registry is None:
        registry = build_registry(chunk_size=config.chunk_size)

    routes: list[Route] = []
    routes.extend(health_routes)
    routes.extend(command_routes)

    middleware: list[Middleware] = []
    if config.cors_enabled:
        logger.info(f"CORS enabled for origin {config.cors}")
        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=[config.cors],
                allow_methods=CORS_ALLOW_METHODS,
                allow_headers=CORS_ALLOW_HEADERS,
                max_age=CORS_MAX_AGE,
            )
        )

    app = Starlette(routes=routes, middleware=middleware)
    app.state.config = config
    app.state.dispatcher = Dispatcher(registry)
    return app
