"""Pytest configuration and fixtures for core module tests.

This module provides shared fixtures for the core tests:
- An aiohttp session whose requests aioresponses can intercept
- A mocked aioresponses context
"""

from collections.abc import AsyncGenerator, Iterator

import aiohttp
import pytest
import pytest_asyncio
from aioresponses import aioresponses


@pytest_asyncio.fixture
async def http_session() -> AsyncGenerator[aiohttp.ClientSession, None]:
    """Provide an aiohttp session closed after the test."""
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def mocked_http() -> Iterator[aioresponses]:
    """Intercept every request made through aiohttp."""
    with aioresponses() as m:
        yield m
