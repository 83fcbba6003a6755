"""Resolution of GitHub repository links to raw catalog links.

A catalog source may be entered as a link to a GitHub repository, to a
directory within it, or to the catalog file itself. The GitHub contents API
lists the matching entries, and the ``download_url`` of the entry named
``catalog.json`` is the link the catalog is fetched from.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

import aiohttp
import orjson

from extension_manager.constants import (
    CATALOG_FILE_NAME,
    GITHUB_API_CONTENTS_URL,
    SOURCE_HOST,
)
from extension_manager.exceptions import (
    InvalidArgumentError,
    MalformedCatalogError,
    NetworkError,
)
from extension_manager.logger import get_logger

logger = get_logger(__name__)

# /owner/repo, optionally followed by /tree/<branch>/<path> or /blob/...
_REPOSITORY_PATH_RE = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)(?:/[^/]+/[^/]+/(?P<path>.*))?"
)


def parse_repository_url(url: str) -> tuple[str, str, str]:
    """Split a GitHub link into owner, repository and path within it.

    Example:
        >>> parse_repository_url("https://github.com/o/r/tree/main/docs")
        ('o', 'r', 'docs')

    Raises:
        InvalidArgumentError: If the link does not point into a GitHub
            repository

    """
    parsed = urlparse(url)
    if parsed.hostname != SOURCE_HOST:
        msg = f"The URL {url} is not coming from {SOURCE_HOST}"
        raise InvalidArgumentError(msg)

    match = _REPOSITORY_PATH_RE.match(parsed.path)
    if not match:
        msg = f"The URL {url} does not point to a GitHub repository"
        raise InvalidArgumentError(msg)

    repo = match.group("repo")
    repo = repo.removesuffix(".git")
    return match.group("owner"), repo, match.group("path") or ""


def _entries(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []
    return [entry for entry in data if isinstance(entry, dict)]


async def find_raw_catalog_uri(
    url: str,
    session: aiohttp.ClientSession,
    file_name: str = CATALOG_FILE_NAME,
) -> str:
    """Find the raw download link of the catalog file of a repository.

    Args:
        url: Link to a repository, a directory in it or the file itself
        session: aiohttp session for making requests
        file_name: Name of the file to look for

    Returns:
        Raw link of the file

    Raises:
        InvalidArgumentError: If the link does not point into a GitHub
            repository
        NetworkError: If the contents API request fails
        MalformedCatalogError: If no file with that name is listed

    """
    owner, repo, path = parse_repository_url(url)
    api_url = GITHUB_API_CONTENTS_URL.format(owner=owner, repo=repo, path=path)
    logger.debug("Listing repository contents: %s", api_url)

    try:
        async with session.get(
            api_url, headers={"Accept": "application/vnd.github+json"}
        ) as response:
            response.raise_for_status()
            body = await response.read()
    except aiohttp.ClientResponseError as e:
        msg = f"HTTP {e.status} {e.message}"
        raise NetworkError(msg, target=api_url) from e
    except (aiohttp.ClientError, TimeoutError) as e:
        msg = str(e) or type(e).__name__
        raise NetworkError(msg, target=api_url) from e

    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        msg = f"Repository listing is not valid JSON: {e}"
        raise MalformedCatalogError(msg, target=api_url) from e

    for entry in _entries(data):
        if entry.get("name") == file_name and entry.get("download_url"):
            logger.debug("Found %s at %s", file_name, entry["download_url"])
            return str(entry["download_url"])

    msg = f"No file named {file_name} in the repository listing"
    raise MalformedCatalogError(msg, target=url)
