"""Tests for CatalogFetcher."""

import aiohttp
import orjson
import pytest
from aioresponses import aioresponses

from extension_manager.core.fetcher import CatalogFetcher
from extension_manager.exceptions import (
    InvalidArgumentError,
    MalformedCatalogError,
    NetworkError,
    ValidationError,
)

CATALOG_URL = "https://raw.githubusercontent.com/org/catalog/main/catalog.json"


@pytest.mark.asyncio
class TestCatalogFetcher:
    """Test cases for CatalogFetcher."""

    async def test_fetch_valid_catalog(
        self,
        http_session: aiohttp.ClientSession,
        mocked_http: aioresponses,
        catalog_dict,
    ) -> None:
        """Test a valid document is parsed into a catalog."""
        mocked_http.get(CATALOG_URL, body=orjson.dumps(catalog_dict()))

        catalog = await CatalogFetcher(http_session).fetch(CATALOG_URL)

        assert catalog.name == "Test catalog"
        assert catalog.extensions[0].name == "Test extension"
        assert catalog.extensions[0].releases[0].name == "v0.1.0"

    async def test_http_error_status(
        self, http_session: aiohttp.ClientSession, mocked_http: aioresponses
    ) -> None:
        """Test an error status is reported as a network error."""
        mocked_http.get(CATALOG_URL, status=404)

        with pytest.raises(NetworkError) as exc_info:
            await CatalogFetcher(http_session).fetch(CATALOG_URL)

        assert "404" in str(exc_info.value)
        assert exc_info.value.target == CATALOG_URL

    async def test_connection_error(
        self, http_session: aiohttp.ClientSession, mocked_http: aioresponses
    ) -> None:
        """Test a transport failure is reported as a network error."""
        mocked_http.get(
            CATALOG_URL, exception=aiohttp.ClientConnectionError("refused")
        )

        with pytest.raises(NetworkError):
            await CatalogFetcher(http_session).fetch(CATALOG_URL)

    async def test_invalid_json(
        self, http_session: aiohttp.ClientSession, mocked_http: aioresponses
    ) -> None:
        """Test a body that is not JSON is malformed."""
        mocked_http.get(CATALOG_URL, body=b"<html>Not found</html>")

        with pytest.raises(MalformedCatalogError):
            await CatalogFetcher(http_session).fetch(CATALOG_URL)

    async def test_top_level_list(
        self, http_session: aiohttp.ClientSession, mocked_http: aioresponses
    ) -> None:
        """Test a JSON document that is not an object is malformed."""
        mocked_http.get(CATALOG_URL, body=b"[]")

        with pytest.raises(MalformedCatalogError, match="list"):
            await CatalogFetcher(http_session).fetch(CATALOG_URL)

    async def test_invalid_catalog(
        self,
        http_session: aiohttp.ClientSession,
        mocked_http: aioresponses,
        catalog_dict,
    ) -> None:
        """Test a document breaking a catalog invariant is rejected."""
        document = catalog_dict()
        del document["extensions"][0]["author"]
        mocked_http.get(CATALOG_URL, body=orjson.dumps(document))

        with pytest.raises(ValidationError) as exc_info:
            await CatalogFetcher(http_session).fetch(CATALOG_URL)

        assert exc_info.value.field == "author"

    @pytest.mark.parametrize(
        "uri", ["", "file:///tmp/catalog.json", "ftp://host/catalog.json"]
    )
    async def test_unsupported_uri(
        self, http_session: aiohttp.ClientSession, uri: str
    ) -> None:
        """Test URIs that cannot be fetched over HTTP are rejected."""
        with pytest.raises(InvalidArgumentError):
            await CatalogFetcher(http_session).fetch(uri)

    async def test_every_fetch_hits_the_network(
        self,
        http_session: aiohttp.ClientSession,
        mocked_http: aioresponses,
        catalog_dict,
    ) -> None:
        """Test results are not cached between fetches."""
        mocked_http.get(CATALOG_URL, body=orjson.dumps(catalog_dict()))
        mocked_http.get(
            CATALOG_URL, body=orjson.dumps(catalog_dict(name="Renamed"))
        )
        fetcher = CatalogFetcher(http_session)

        first = await fetcher.fetch(CATALOG_URL)
        second = await fetcher.fetch(CATALOG_URL)

        assert first.name == "Test catalog"
        assert second.name == "Renamed"
