"""Catalog document fetching.

Every call performs a fresh GET and parses the result; nothing is cached
and nothing is retried. Retry policy belongs to the caller.
"""

from __future__ import annotations

from urllib.parse import urlparse

import aiohttp
import orjson

from extension_manager.constants import CONTENT_PREVIEW_MAX
from extension_manager.domain.catalog import Catalog
from extension_manager.exceptions import (
    InvalidArgumentError,
    MalformedCatalogError,
    NetworkError,
)
from extension_manager.logger import get_logger

logger = get_logger(__name__)

_FETCHABLE_SCHEMES = ("http", "https")


class CatalogFetcher:
    """Fetches and validates catalog documents.

    The fetcher holds no mutable state, so concurrent fetches of different
    URIs are independent.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: aiohttp.ClientTimeout | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            session: aiohttp session for making requests
            timeout: Optional per-request timeout overriding the session's

        """
        self.session = session
        self.timeout = timeout

    async def fetch(self, uri: str) -> Catalog:
        """Fetch, parse and validate the catalog at the provided URI.

        Raises:
            InvalidArgumentError: If the URI cannot be fetched over HTTP
            NetworkError: If the request fails or returns an error status
            MalformedCatalogError: If the body is not a JSON document
            ValidationError: If the document breaks a catalog invariant

        """
        if not uri or urlparse(uri).scheme.lower() not in _FETCHABLE_SCHEMES:
            msg = f"Cannot fetch a catalog from '{uri}'"
            raise InvalidArgumentError(msg)

        logger.debug("Fetching catalog from %s", uri)
        body = await self._get(uri)

        try:
            data = orjson.loads(body)
        except orjson.JSONDecodeError as e:
            preview = body[:CONTENT_PREVIEW_MAX].decode("utf-8", "replace")
            logger.debug("Unparseable catalog content: %s", preview)
            msg = f"Content is not valid JSON: {e}"
            raise MalformedCatalogError(msg, target=uri) from e

        if not isinstance(data, dict):
            msg = f"Expected a JSON object, got {type(data).__name__}"
            raise MalformedCatalogError(msg, target=uri)

        catalog = Catalog.from_dict(data)
        logger.debug(
            "Catalog '%s' fetched with %d extension(s)",
            catalog.name,
            len(catalog.extensions),
        )
        return catalog

    async def _get(self, uri: str) -> bytes:
        kwargs = {} if self.timeout is None else {"timeout": self.timeout}
        try:
            async with self.session.get(uri, **kwargs) as response:
                response.raise_for_status()
                return await response.read()
        except aiohttp.ClientResponseError as e:
            msg = f"HTTP {e.status} {e.message}"
            raise NetworkError(msg, target=uri) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            msg = str(e) or type(e).__name__
            raise NetworkError(msg, target=uri) from e
