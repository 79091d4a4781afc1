"""Pytest configuration and shared fixtures."""

import pytest

from command_server.transport import CollectingTransport


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def transport() -> CollectingTransport:
    """In-memory transport that supports streaming."""
    return CollectingTransport()
