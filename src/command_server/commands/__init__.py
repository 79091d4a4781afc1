"""Built-in commands.

Every module in this package may define a module-level hook

    def register(registry: CommandRegistry, **options) -> None

which build_registry() calls at startup. Adding a command means adding a
module; nothing else needs to change.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Any

from .registry import Command, CommandRegistry

logger = logging.getLogger(__name__)


def build_registry(**options: Any) -> CommandRegistry:
    """Create a registry holding every built-in command.

    Args:
        **options: Shared resources passed to each module's register hook
                   (e.g. client, chunk_size)
    """
    registry = CommandRegistry()

    for module_info in pkgutil.iter_modules(__path__):
        module = importlib.import_module(f"{__name__}.{module_info.name}")
        hook = getattr(module, "register", None)
        if callable(hook):
            hook(registry, **options)

    logger.info(f"Loaded {len(registry)} command(s): {', '.join(registry.names())}")
    return registry


__all__ = [
    "Command",
    "CommandRegistry",
    "build_registry",
]
