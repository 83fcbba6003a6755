"""HTTP session utilities for extension-manager.

This module provides utilities for creating configured HTTP sessions
with proper timeout and connection settings.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp

from extension_manager.config import NetworkSettings


def build_timeout(network: NetworkSettings) -> aiohttp.ClientTimeout:
    """Build the request timeout from network settings."""
    return aiohttp.ClientTimeout(
        total=network.timeout_seconds * 60,
        sock_read=network.timeout_seconds * 3,
        sock_connect=network.timeout_seconds,
    )


def build_session(network: NetworkSettings) -> aiohttp.ClientSession:
    """Create a configured session the caller must close.

    Must be called from a running event loop.
    """
    connector = aiohttp.TCPConnector(
        limit=10,
        limit_per_host=network.max_concurrent_downloads,
    )
    return aiohttp.ClientSession(
        timeout=build_timeout(network),
        connector=connector,
    )


@asynccontextmanager
async def create_http_session(
    network: NetworkSettings,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Create configured HTTP session.

    Args:
        network: Network section of the settings

    Yields:
        Configured aiohttp.ClientSession

    """
    async with build_session(network) as session:
        yield session
