"""Command Server CLI.

Usage:
    command-server                       # Serve on 127.0.0.1:8080
    command-server --port 9000 --cors '*'
    command-server --health              # Check a running server and exit

Every option can also be set through its COMMAND_SERVER_* environment variable.
"""

from __future__ import annotations

import logging
import os
import sys

import click
import httpx

from .config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    ServerConfig,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.command()
@click.option("--host", default=DEFAULT_HOST, envvar="COMMAND_SERVER_HOST", help="Host to bind to")
@click.option(
    "--port",
    default=DEFAULT_PORT,
    type=click.IntRange(1, 65535),
    envvar="COMMAND_SERVER_PORT",
    help="Port to listen on",
)
@click.option(
    "--cors",
    default="",
    envvar="COMMAND_SERVER_CORS",
    help="Allowed CORS origin (* for allow all); disabled when empty",
)
@click.option(
    "--chunk-size",
    default=DEFAULT_CHUNK_SIZE,
    type=click.IntRange(min=1),
    envvar="COMMAND_SERVER_CHUNK_SIZE",
    help="Largest upstream slice per streamed data event",
)
@click.option(
    "--log-level",
    default=DEFAULT_LOG_LEVEL,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    envvar="COMMAND_SERVER_LOG_LEVEL",
    help="Logging level",
)
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--health", "health_check", is_flag=True, help="Check server health and exit")
@click.option("--health-url", default="http://localhost:8080", help="Server URL for health check")
def main(
    host: str,
    port: int,
    cors: str,
    chunk_size: int,
    log_level: str,
    reload: bool,
    health_check: bool,
    health_url: str,
) -> None:
    """Command Server - execute named commands over HTTP."""
    if health_check:
        _do_health_check(health_url)
        return

    config = ServerConfig(
        host=host,
        port=port,
        cors=cors,
        chunk_size=chunk_size,
        log_level=log_level,
    )
    _configure_logging(config.log_level)
    _run_http_server(config, reload)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _do_health_check(url: str) -> None:
    """Query /health and list the registered commands; exit 1 when unhealthy."""
    try:
        response = httpx.get(f"{url.rstrip('/')}/health", timeout=5.0)
    except httpx.HTTPError as e:
        click.echo(f"Cannot reach command server at {url}: {e}", err=True)
        sys.exit(1)

    if response.status_code != 200:
        click.echo(f"Command server returned {response.status_code}", err=True)
        sys.exit(1)

    commands = response.json().get("commands", [])
    click.echo(f"Command server is healthy, commands: {', '.join(commands) or '(none)'}")


def _run_http_server(config: ServerConfig, reload: bool) -> None:
    """Run the HTTP server."""
    import uvicorn

    # The app factory reads its configuration from the environment
    os.environ.update(config.to_env())

    click.echo(f"Starting command server on http://{config.host}:{config.port}", err=True)
    if config.cors_enabled:
        click.echo(f"  CORS origin: {config.cors}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "command_server.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
