"""Decide which documents need to be downloaded."""

import logging
from pathlib import Path
from typing import Optional

from ..models import Document, DownloadPlanEntry, FolderNode, Hierarchy
from ..utils import (
    DEFAULT_FILE_EXTENSION,
    ensure_file_extension,
    parse_iso_timestamp,
    seconds_since,
    seconds_since_mtime,
)

logger = logging.getLogger(__name__)


class SyncPlanner:
    """Computes the download plan for a hierarchy.

    In full mode every document is planned. In smart mode the folder tree is
    compared against the local mirror and only documents modified on the
    device since they were last written locally are planned.

    Examples:
        >>> planner = SyncPlanner()
        >>> plan = planner.plan(hierarchy, Path("/backups"), smart=True)
        >>> [entry.filename for entry in plan]
        ['Notes.pdf']
    """

    def __init__(self, file_extension: str = DEFAULT_FILE_EXTENSION):
        """Initialize the planner.

        Args:
            file_extension: Extension every mirrored document carries
        """
        self.file_extension = file_extension

    def filename_for(self, document: Document) -> str:
        """Local filename of a document."""
        return ensure_file_extension(document.visible_name, self.file_extension)

    def plan(
        self, hierarchy: Hierarchy, local_root: Path, smart: bool
    ) -> list[DownloadPlanEntry]:
        """Compute the documents to download.

        Args:
            hierarchy: Fetched hierarchy
            local_root: Directory the mirror lives in
            smart: Only plan documents that changed since the last backup

        Returns:
            Plan entries; an empty list in smart mode means nothing changed
        """
        if not smart:
            plan = [
                DownloadPlanEntry(id=doc.id, filename=self.filename_for(doc))
                for doc in hierarchy.iter_documents()
            ]
            logger.debug("Full plan: %d document(s)", len(plan))
            return plan

        by_id = {doc.id: doc for doc in hierarchy.iter_documents()}
        plan = self._plan_folder(hierarchy.root, Path(local_root), by_id, False)
        logger.debug("Smart plan: %d of %d document(s)", len(plan), len(by_id))
        return plan

    def _plan_folder(
        self,
        node: FolderNode,
        parent_path: Path,
        by_id: dict[str, Document],
        force_all: bool,
    ) -> list[DownloadPlanEntry]:
        """Plan one folder and its descendants.

        Once a folder has no local directory its whole subtree is stale, so
        ``force_all`` is propagated to every descendant.
        """
        folder_path = parent_path / node.name
        documents = [
            by_id[doc_id] for doc_id in sorted(node.file_ids) if doc_id in by_id
        ]
        plan: list[DownloadPlanEntry] = []

        if force_all or not folder_path.is_dir():
            logger.debug("Local folder %s missing, planning whole subtree", folder_path)
            for doc in documents:
                plan.append(
                    DownloadPlanEntry(id=doc.id, filename=self.filename_for(doc))
                )
            for child in node.children:
                plan.extend(self._plan_folder(child, folder_path, by_id, True))
            return plan

        for doc in documents:
            filename = self.filename_for(doc)
            needed, reason = self._needs_download(doc, folder_path / filename)
            logger.debug("%s: %s", folder_path / filename, reason)
            if needed:
                plan.append(DownloadPlanEntry(id=doc.id, filename=filename))

        for child in node.children:
            plan.extend(self._plan_folder(child, folder_path, by_id, False))

        return plan

    def _needs_download(self, document: Document, local_file: Path) -> tuple[bool, str]:
        """Compare a remote document with its local copy.

        Elapsed times since modification are compared, each measured against
        its own sample of the current instant.

        Returns:
            Tuple of (needs download, human-readable reason)
        """
        remote_modified = parse_iso_timestamp(document.modified_client)
        if remote_modified is None:
            return True, f"unparsable remote timestamp {document.modified_client!r}"
        remote_elapsed = seconds_since(remote_modified)

        local_elapsed = self._local_elapsed(local_file)
        if local_elapsed is None:
            return True, "local copy missing or unreadable"

        if remote_elapsed <= local_elapsed:
            return True, "remote modified since local copy"
        return False, "local copy is up to date"

    def _local_elapsed(self, local_file: Path) -> Optional[float]:
        try:
            if not local_file.is_file():
                return None
            return seconds_since_mtime(local_file)
        except OSError as e:
            logger.debug(f"Cannot stat {local_file}: {e}")
            return None
