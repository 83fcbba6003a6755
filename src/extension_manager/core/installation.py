"""Installation task handle, progress aggregation and artifact planning."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Coroutine
from typing import Any

from extension_manager.domain.catalog import Release
from extension_manager.domain.installation import Artifact, ArtifactType
from extension_manager.exceptions import InstallationCancelledError
from extension_manager.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]
CompletionCallback = Callable[[BaseException | None], None]


def plan_artifacts(
    release: Release,
    *,
    include_optional: bool,
    only_optional: bool = False,
) -> list[Artifact]:
    """List the artifacts to download to install a release.

    Args:
        release: Release to install
        include_optional: Whether optional dependencies are included
        only_optional: Return the optional dependencies alone

    """
    optional = [
        Artifact(url, ArtifactType.OPTIONAL_DEPENDENCIES)
        for url in release.optional_dependency_urls
    ]
    if only_optional:
        return optional

    artifacts = [Artifact(release.main_url, ArtifactType.MAIN_JAR)]
    artifacts.extend(
        Artifact(url, ArtifactType.REQUIRED_DEPENDENCIES)
        for url in release.required_dependency_urls
    )
    if include_optional:
        artifacts.extend(optional)
    artifacts.extend(
        Artifact(url, ArtifactType.JAVADOCS_DEPENDENCIES)
        for url in release.javadoc_urls
    )
    return artifacts


class ProgressAggregator:
    """Combines per-artifact fractions into one monotonic overall fraction.

    The overall value is the mean of every artifact's fraction, so three of
    five finished files give 0.6. Reported values never decrease.
    """

    def __init__(self, total: int, callback: ProgressCallback | None) -> None:
        """Initialize for a number of artifacts."""
        self.total = total
        self.callback = callback
        self._fractions: dict[int, float] = {}
        self._reported = 0.0

    @property
    def value(self) -> float:
        """Last reported overall progress."""
        return self._reported

    def file_callback(self, index: int) -> ProgressCallback:
        """Return the callback feeding the progress of one artifact."""

        def on_file_progress(fraction: float) -> None:
            self._fractions[index] = min(max(fraction, 0.0), 1.0)
            self._emit(sum(self._fractions.values()) / max(self.total, 1))

        return on_file_progress

    def finish(self) -> None:
        """Report completion."""
        self._emit(1.0)

    def _emit(self, value: float) -> None:
        value = min(value, 1.0)
        if value < self._reported:
            return
        self._reported = value
        if self.callback is None:
            return
        try:
            self.callback(value)
        except Exception:
            logger.exception("Progress callback failed")


class InstallationTask:
    """Handle of a running install or update.

    The completion callback is called exactly once, after the operation
    guard has been released, with None on success or the error otherwise.
    A cancelled installation completes with InstallationCancelledError.
    """

    def __init__(
        self,
        description: str,
        on_completion: CompletionCallback | None = None,
        on_finished: Callable[[], None] | None = None,
    ) -> None:
        """Initialize an unstarted handle.

        Args:
            description: Name used in log messages
            on_completion: Called once with the outcome
            on_finished: Called before on_completion, e.g. to release a guard

        """
        self.description = description
        self._on_completion = on_completion
        self._on_finished = on_finished
        self._task: asyncio.Task[None] | None = None
        self._lock = threading.Lock()
        self._completed = False
        self._error: BaseException | None = None

    def start(
        self, coroutine: Callable[[], Coroutine[Any, Any, None]]
    ) -> InstallationTask:
        """Schedule the operation on the running event loop."""
        self._task = asyncio.get_running_loop().create_task(
            coroutine(), name=self.description
        )
        self._task.add_done_callback(self._on_task_done)
        return self

    @property
    def error(self) -> BaseException | None:
        """Outcome of a finished operation, None on success."""
        return self._error

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            False if the operation already finished

        """
        if self._task is None or self._task.done():
            return False
        logger.debug("Cancelling %s", self.description)
        return self._task.cancel()

    def done(self) -> bool:
        """Tell whether the completion callback has run."""
        return self._completed

    async def wait(self) -> BaseException | None:
        """Wait for the operation to finish and return its error, if any."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self._error

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            error: BaseException | None = InstallationCancelledError(
                "Installation was cancelled", target=self.description
            )
        else:
            error = task.exception()
        self._complete(error)

    def _complete(self, error: BaseException | None) -> None:
        with self._lock:
            if self._completed:
                return
            self._completed = True
            self._error = error

        if self._on_finished is not None:
            self._on_finished()

        if error is None:
            logger.debug("%s finished", self.description)
        else:
            logger.debug("%s failed: %s", self.description, error)

        if self._on_completion is None:
            return
        try:
            self._on_completion(error)
        except Exception:
            logger.exception(
                "Completion callback of %s failed", self.description
            )
