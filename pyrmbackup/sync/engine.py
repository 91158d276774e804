"""Backup engine: fetch, plan, download and write in one run."""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..api import RemarkableClient
from ..config import config
from ..exceptions import DownloadError
from ..models import DownloadPlanEntry, FolderNode, Hierarchy
from ..output import OutputFormatter
from ..utils import check_output_path, format_size
from .downloader import DownloadResult, Downloader
from .fetcher import HierarchyFetcher
from .planner import SyncPlanner
from .policy import FailurePolicy
from .writer import LocalMirrorWriter, WriteResult

logger = logging.getLogger(__name__)


class BackupEngine:
    """Orchestrates a backup of the device into a local mirror."""

    def __init__(
        self,
        client: RemarkableClient,
        output: Optional[OutputFormatter] = None,
        policy: FailurePolicy = FailurePolicy.STRICT,
        override: bool = False,
        concurrency: int = 1,
        file_extension: Optional[str] = None,
    ):
        """Initialize backup engine.

        Args:
            client: Device client
            output: Output formatter for displaying progress/status
            policy: Partial-failure policy for downloads and writes
            override: Overwrite files already present in the mirror
            concurrency: Concurrent download requests (1 = sequential, safe)
            file_extension: Extension of mirrored documents (uses config if not
                provided)
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.policy = policy
        self.override = override
        self.concurrency = max(1, concurrency)
        self.fetcher = HierarchyFetcher(client)
        self.planner = SyncPlanner(file_extension or config.file_extension)
        self.writer = LocalMirrorWriter(policy, callback=self._on_write_event)

    async def fetch_hierarchy(self) -> Hierarchy:
        """Fetch the whole document hierarchy of the device."""
        if not self.output.quiet:
            self.output.info("Fetching documents structure...")
        hierarchy = await self.fetcher.fetch()
        logger.debug(
            "Hierarchy has %d record(s), %d document(s)",
            len(hierarchy.documents),
            sum(1 for _ in hierarchy.iter_documents()),
        )
        return hierarchy

    async def backup(
        self,
        output_path: Union[str, Path],
        smart: bool = False,
        allow_creation: bool = True,
        hierarchy: Optional[Hierarchy] = None,
    ) -> dict:
        """Back up the device into ``output_path``.

        Args:
            output_path: Directory the mirror is written to
            smart: Only download documents changed since the last backup
            allow_creation: Create ``output_path`` if it does not exist
            hierarchy: Previously fetched hierarchy (fetched if not provided)

        Returns:
            Dictionary with backup statistics

        Raises:
            OutputPathError: If the output path is unusable
            NetworkError: If fetching fails, or a download fails under the
                strict policy
            ParseError: If a listing cannot be decoded
            FilesystemError: If writing fails under the strict policy
        """
        output_root = check_output_path(output_path, allow_creation)
        if hierarchy is None:
            hierarchy = await self.fetch_hierarchy()

        plan_start = time.time()
        plan = self.planner.plan(hierarchy, output_root, smart)
        logger.debug("Planning took %.2fs", time.time() - plan_start)

        stats = self._create_empty_stats()
        stats["planned"] = len(plan)

        if not plan:
            if not self.output.quiet:
                self.output.success("Nothing to download, backup is up to date")
            return stats

        result = await self._download(plan)
        write_result = self._write(hierarchy.root, result, output_root)

        self._update_stats(stats, result, write_result)
        if not self.output.quiet:
            self.output.success(f"Finished copying files, go see: '{output_root}'")
        return stats

    async def download_ids(
        self,
        doc_ids: list[str],
        output_path: Union[str, Path],
        allow_creation: bool = True,
        hierarchy: Optional[Hierarchy] = None,
    ) -> dict:
        """Download the given documents flat into ``output_path``.

        Unknown identifiers and collections are reported and counted in
        ``not_found``.

        Returns:
            Dictionary with download statistics
        """
        output_root = check_output_path(output_path, allow_creation)
        if hierarchy is None:
            hierarchy = await self.fetch_hierarchy()

        stats = self._create_empty_stats()
        plan: list[DownloadPlanEntry] = []
        for doc_id in dict.fromkeys(doc_ids):
            document = hierarchy.get(doc_id)
            if document is None or not document.is_document:
                self.output.warning(f"No document with id {doc_id}")
                stats["not_found"] += 1
                continue
            plan.append(
                DownloadPlanEntry(
                    id=doc_id, filename=self.planner.filename_for(document)
                )
            )

        stats["planned"] = len(plan)
        if not plan:
            return stats

        result = await self._download(plan)
        # Nameless node: files land directly in output_root
        flat = FolderNode(name="", file_ids={entry.id for entry in plan})
        write_result = self._write(flat, result, output_root)

        self._update_stats(stats, result, write_result)
        return stats

    def _create_empty_stats(self) -> dict:
        """Create an empty statistics dictionary.

        Returns:
            Dictionary with zero counts for all stat categories
        """
        return {
            "planned": 0,
            "downloads": 0,
            "failures": 0,
            "written": 0,
            "write_failures": 0,
            "skipped_dirs": 0,
            "not_found": 0,
        }

    def _update_stats(
        self, stats: dict, result: DownloadResult, write_result: WriteResult
    ) -> None:
        stats["downloads"] = result.success_count
        stats["failures"] = result.failure_count
        stats["written"] = len(write_result.written)
        stats["write_failures"] = len(write_result.failed)
        stats["skipped_dirs"] = len(write_result.skipped_dirs)

    async def _download(self, plan: list[DownloadPlanEntry]) -> DownloadResult:
        """Download ``plan`` with a progress bar and report the tally."""
        total = len(plan)
        if not self.output.quiet:
            if self.concurrency > 1:
                self.output.warning(
                    f"Downloading with async mode and {self.concurrency} "
                    "concurrent requests. File integrity is not guaranteed."
                )
            self.output.info(f"Downloading {total} file(s)...")

        try:
            if self.output.quiet:
                result = await Downloader(self.client, self.policy).download(
                    plan, self.concurrency
                )
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TextColumn("{task.completed}/{task.total}"),
                    transient=True,
                ) as progress:
                    task = progress.add_task("Downloading...", total=total)

                    def on_progress(entry: DownloadPlanEntry, success: bool) -> None:
                        progress.update(
                            task, advance=1, description=f"Downloading {entry.filename}"
                        )

                    downloader = Downloader(self.client, self.policy, on_progress)
                    result = await downloader.download(plan, self.concurrency)
        except DownloadError as e:
            if isinstance(e.result, DownloadResult):
                self._display_tally(e.result, total)
            raise

        self._display_tally(result, total)
        logger.debug(
            "Retrieved %s in %d file(s)",
            format_size(sum(fetched.size for fetched in result.files)),
            result.success_count,
        )
        return result

    def _write(
        self, node: FolderNode, result: DownloadResult, output_root: Path
    ) -> WriteResult:
        if not self.output.quiet:
            self.output.info("Copying downloaded files to local file system...")
        write_start = time.time()
        write_result = self.writer.write(node, result.files, output_root, self.override)
        logger.debug("Writing took %.2fs", time.time() - write_start)
        return write_result

    def _display_tally(self, result: DownloadResult, total: int) -> None:
        if self.output.quiet:
            return
        self.output.print(f"Successful download: {result.success_count}/{total}")
        if result.failure_count:
            self.output.warning(f"Failed download: {result.failure_count}/{total}")
        else:
            self.output.print(f"Failed download: 0/{total}")

    def _on_write_event(self, event: str, path: Path) -> None:
        if self.output.quiet:
            return
        if event == "mkdir":
            self.output.print(f"Created folder {path}")
        elif event == "write":
            self.output.print(f"Wrote {path}")
        elif event == "skip_file":
            self.output.warning(f"Skipped {path} due to an error")
        elif event == "skip_dir":
            self.output.warning(f"Skipped folder {path} and its content")
