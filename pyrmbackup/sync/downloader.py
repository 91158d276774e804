"""Retrieve the content of planned documents."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..api import RemarkableClient
from ..exceptions import DownloadError, NetworkError
from ..models import DownloadPlanEntry, FetchedFile
from .policy import ErrorAction, ErrorScope, FailurePolicy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[DownloadPlanEntry, bool], None]
"""Called after each attempt with the entry and whether it succeeded"""


@dataclass
class DownloadResult:
    """Outcome of a download batch."""

    files: list[FetchedFile] = field(default_factory=list)
    """Successfully retrieved files"""

    failed_ids: list[str] = field(default_factory=list)
    """Identifiers whose retrieval failed"""

    @property
    def success_count(self) -> int:
        return len(self.files)

    @property
    def failure_count(self) -> int:
        return len(self.failed_ids)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


class Downloader:
    """Downloads planned documents sequentially or with bounded concurrency.

    Sequential mode is the default and the only safe one: the tablet does not
    reliably serve overlapping requests, so with ``concurrency > 1`` responses
    may be lost or corrupted. The final tally is always reported so such
    problems stay visible.
    """

    def __init__(
        self,
        client: RemarkableClient,
        policy: FailurePolicy = FailurePolicy.STRICT,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize the downloader.

        Args:
            client: Client used for content requests
            policy: Partial-failure policy
            progress_callback: Optional callback invoked after each entry
        """
        self.client = client
        self.policy = policy
        self.progress_callback = progress_callback

    async def download(
        self, plan: list[DownloadPlanEntry], concurrency: int = 1
    ) -> DownloadResult:
        """Download every entry of ``plan``.

        Args:
            plan: Entries to download
            concurrency: Maximum number of overlapping requests (1 = sequential)

        Returns:
            DownloadResult with the retrieved files and the failures

        Raises:
            DownloadError: If a download failed under the strict policy. The
                partial result is attached to the exception.
        """
        start = time.time()
        if concurrency > 1 and len(plan) > 1:
            logger.debug(
                "Downloading %d document(s) with %d concurrent requests",
                len(plan),
                concurrency,
            )
            result = await self._download_concurrent(plan, concurrency)
        else:
            result = await self._download_sequential(plan)

        logger.debug(
            "Downloaded %d/%d document(s) in %.2fs",
            result.success_count,
            len(plan),
            time.time() - start,
        )

        if result.failure_count and self.policy.action_for(
            ErrorScope.DOWNLOAD
        ) == ErrorAction.ABORT:
            raise DownloadError(
                f"{result.failure_count} of {len(plan)} download(s) failed",
                result=result,
            )
        return result

    def _notify(self, entry: DownloadPlanEntry, success: bool) -> None:
        if self.progress_callback is not None:
            self.progress_callback(entry, success)

    async def _download_sequential(
        self, plan: list[DownloadPlanEntry]
    ) -> DownloadResult:
        result = DownloadResult()

        for entry in plan:
            logger.debug("Downloading %s (%s)", entry.filename, entry.id)
            try:
                content = await self.client.download_document(entry.id)
            except NetworkError as e:
                result.failed_ids.append(entry.id)
                self._notify(entry, False)
                if self.policy.action_for(ErrorScope.DOWNLOAD) == ErrorAction.ABORT:
                    raise DownloadError(
                        f"Failed to download {entry.filename}: {e}", result=result
                    ) from e
                logger.warning(f"Skipping {entry.filename}: {e}")
                continue

            result.files.append(
                FetchedFile(id=entry.id, filename=entry.filename, content=content)
            )
            self._notify(entry, True)

        return result

    async def _download_concurrent(
        self, plan: list[DownloadPlanEntry], concurrency: int
    ) -> DownloadResult:
        """Download with at most ``concurrency`` requests in flight.

        Results are consumed in completion order, not plan order.
        """
        semaphore = asyncio.Semaphore(concurrency)

        async def fetch_one(
            entry: DownloadPlanEntry,
        ) -> tuple[DownloadPlanEntry, Optional[bytes], Optional[Exception]]:
            async with semaphore:
                try:
                    return entry, await self.client.download_document(entry.id), None
                except NetworkError as e:
                    return entry, None, e

        result = DownloadResult()
        for future in asyncio.as_completed([fetch_one(entry) for entry in plan]):
            entry, content, error = await future
            if error is not None or content is None:
                logger.warning(f"Failed to download {entry.filename}: {error}")
                result.failed_ids.append(entry.id)
                self._notify(entry, False)
                continue
            result.files.append(
                FetchedFile(id=entry.id, filename=entry.filename, content=content)
            )
            self._notify(entry, True)

        return result
