"""Artifact download service.

Artifacts are streamed to disk in chunks with aiofiles. Byte progress of
each file is reported through a plain callback receiving a fraction in
[0, 1]; when the server sends no Content-Length the fraction jumps from 0
to 1 once the file is complete.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import aiofiles
import aiohttp

from extension_manager.constants import CHUNK_SIZE
from extension_manager.exceptions import ExtensionIOError, NetworkError
from extension_manager.logger import get_logger

logger = get_logger(__name__)

FileProgressCallback = Callable[[float], None]


class Downloader(Protocol):
    """Anything able to download one URL to one file."""

    async def download_file(
        self,
        url: str,
        dest: Path,
        on_progress: FileProgressCallback | None = None,
    ) -> Path:
        """Download url to dest, reporting the downloaded fraction."""
        ...


class ArtifactDownloader:
    """Service for downloading extension artifacts."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: aiohttp.ClientTimeout | None = None,
    ) -> None:
        """Initialize download service with HTTP session.

        Args:
            session: aiohttp session for downloads
            timeout: Optional per-request timeout overriding the session's

        """
        self.session = session
        self.timeout = timeout

    async def download_file(
        self,
        url: str,
        dest: Path,
        on_progress: FileProgressCallback | None = None,
    ) -> Path:
        """Download a file from URL to destination.

        A partially written file is removed on failure and on cancellation.

        Args:
            url: URL to download from
            dest: Destination path
            on_progress: Optional callback receiving the downloaded fraction

        Returns:
            The destination path

        Raises:
            NetworkError: If the request fails
            ExtensionIOError: If the file cannot be written

        """

        def cleanup() -> None:
            if dest.exists():
                logger.debug("Removing partial download: %s", dest)
                with contextlib.suppress(OSError):
                    dest.unlink()

        kwargs = {} if self.timeout is None else {"timeout": self.timeout}
        try:
            async with self.session.get(url, **kwargs) as response:
                response.raise_for_status()
                await self._write_response(response, dest, on_progress)
        except aiohttp.ClientResponseError as e:
            cleanup()
            msg = f"HTTP {e.status} {e.message}"
            raise NetworkError(msg, target=url) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            cleanup()
            msg = str(e) or type(e).__name__
            raise NetworkError(msg, target=url) from e
        except OSError as e:
            cleanup()
            msg = f"Cannot write {dest}: {e}"
            raise ExtensionIOError(msg, target=url) from e
        except asyncio.CancelledError:
            cleanup()
            raise

        logger.debug("Download completed: %s", dest)
        return dest

    async def _write_response(
        self,
        response: aiohttp.ClientResponse,
        dest: Path,
        on_progress: FileProgressCallback | None,
    ) -> None:
        total = int(response.headers.get("Content-Length", 0))
        dest.parent.mkdir(parents=True, exist_ok=True)

        logger.debug("Downloading file: %s", dest.name)
        logger.debug("   URL: %s", response.url)
        if total > 0:
            logger.debug("   Size: %s bytes", f"{total:,}")
        else:
            logger.debug("   Size: Unknown")

        if on_progress:
            on_progress(0.0)

        downloaded_bytes = 0
        async with aiofiles.open(dest, mode="wb") as f:
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                if not chunk:
                    continue
                await f.write(chunk)
                downloaded_bytes += len(chunk)
                if on_progress and total > 0:
                    on_progress(min(downloaded_bytes / total, 1.0))

        if on_progress:
            on_progress(1.0)
