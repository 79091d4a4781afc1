"""Server configuration.

Values come from CLI options or COMMAND_SERVER_* environment variables. The
uvicorn app factory only sees the environment, so the CLI exports its options
there before starting the server.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_PREFIX = "COMMAND_SERVER_"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_CHUNK_SIZE = 1024
DEFAULT_LOG_LEVEL = "INFO"

# Request headers accepted from browsers when CORS is enabled
CORS_ALLOW_HEADERS = ["Content-Type", "Accept", "sentry-trace", "traceparent", "baggage"]
CORS_ALLOW_METHODS = ["POST", "OPTIONS"]
CORS_MAX_AGE = 86400  # 24 hours


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = env.get(ENV_PREFIX + key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {value!r}") from None


@dataclass
class ServerConfig:
    """Command server configuration."""

    # Listening socket
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Allowed CORS origin ("*" for any); empty disables CORS
    cors: str = ""

    # Largest upstream slice per streamed data event
    chunk_size: int = DEFAULT_CHUNK_SIZE

    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        self.log_level = self.log_level.upper()

    @property
    def cors_enabled(self) -> bool:
        return bool(self.cors)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        """Build configuration from COMMAND_SERVER_* variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get(ENV_PREFIX + "HOST") or DEFAULT_HOST,
            port=_env_int(env, "PORT", DEFAULT_PORT),
            cors=env.get(ENV_PREFIX + "CORS", ""),
            chunk_size=_env_int(env, "CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL") or DEFAULT_LOG_LEVEL,
        )

    def to_env(self) -> dict[str, str]:
        """Inverse of from_env()."""
        return {
            ENV_PREFIX + "HOST": self.host,
            ENV_PREFIX + "PORT": str(self.port),
            ENV_PREFIX + "CORS": self.cors,
            ENV_PREFIX + "CHUNK_SIZE": str(self.chunk_size),
            ENV_PREFIX + "LOG_LEVEL": self.log_level,
        }
