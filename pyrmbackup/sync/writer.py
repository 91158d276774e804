"""Write downloaded documents into the local mirror tree."""

import errno
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from ..exceptions import FileConflictError, FilesystemError
from ..models import FetchedFile, FolderNode
from .policy import ErrorAction, ErrorScope, FailurePolicy

logger = logging.getLogger(__name__)

WriteCallback = Callable[[str, Path], None]
"""Called with an event name ("mkdir", "write", "skip_file", "skip_dir") and a path"""


@dataclass
class WriteResult:
    """Outcome of writing a folder tree."""

    written: list[Path] = field(default_factory=list)
    """Files created or overwritten"""

    failed: list[Path] = field(default_factory=list)
    """Files skipped after a conflict or write failure"""

    skipped_dirs: list[Path] = field(default_factory=list)
    """Directories that could not be created (their subtree was skipped)"""

    created_dirs: list[Path] = field(default_factory=list)
    """Directories created by this run"""


class LocalMirrorWriter:
    """Re-creates the folder tree on disk and writes fetched files into it.

    The writer is a pure sink: fetched files are never modified, and every
    file is written from a single in-memory buffer.
    """

    def __init__(
        self,
        policy: FailurePolicy = FailurePolicy.STRICT,
        callback: Optional[WriteCallback] = None,
    ):
        """Initialize the writer.

        Args:
            policy: Partial-failure policy
            callback: Optional callback for per-file/per-directory events
        """
        self.policy = policy
        self.callback = callback

    def write(
        self,
        node: FolderNode,
        files: list[FetchedFile],
        output_root: Union[str, Path],
        override: bool = False,
    ) -> WriteResult:
        """Write ``files`` under ``output_root`` following the tree of ``node``.

        Args:
            node: Root of the folder tree to mirror
            files: Downloaded files; each is written in the folder listing its id
            output_root: Directory the mirror is created in
            override: Overwrite existing files instead of failing on them

        Returns:
            WriteResult describing what was written and skipped

        Raises:
            FilesystemError: Under the strict policy, on the first directory
                creation failure, write failure or existing-file conflict
        """
        files_by_id = {fetched.id: fetched for fetched in files}
        result = WriteResult()
        self._write_folder(node, files_by_id, Path(output_root), override, result)
        logger.debug(
            "Wrote %d file(s), %d failed, %d folder(s) skipped",
            len(result.written),
            len(result.failed),
            len(result.skipped_dirs),
        )
        return result

    def _emit(self, event: str, path: Path) -> None:
        if self.callback is not None:
            self.callback(event, path)

    def _write_folder(
        self,
        node: FolderNode,
        files_by_id: dict[str, FetchedFile],
        parent_path: Path,
        override: bool,
        result: WriteResult,
    ) -> None:
        folder = parent_path / node.name

        if not folder.is_dir():
            try:
                folder.mkdir()
            except OSError as e:
                if self.policy.action_for(ErrorScope.DIRECTORY) == ErrorAction.ABORT:
                    raise FilesystemError(
                        f"Failed to create directory {folder}: {e}", path=folder
                    ) from e
                logger.warning(f"Skipping folder {folder} and its content: {e}")
                result.skipped_dirs.append(folder)
                self._emit("skip_dir", folder)
                return
            result.created_dirs.append(folder)
            self._emit("mkdir", folder)

        for file_id in sorted(node.file_ids):
            fetched = files_by_id.get(file_id)
            if fetched is None:
                continue

            target = folder / fetched.filename
            try:
                self._write_file(target, fetched.content, override)
            except FilesystemError as e:
                if self.policy.action_for(ErrorScope.FILE) == ErrorAction.ABORT:
                    raise
                logger.warning(f"Skipping {target}: {e}")
                result.failed.append(target)
                self._emit("skip_file", target)
                continue

            result.written.append(target)
            self._emit("write", target)

        for child in node.children:
            self._write_folder(child, files_by_id, folder, override, result)

    def _write_file(self, target: Path, content: bytes, override: bool) -> None:
        """Write ``content`` to ``target`` without leaving a partial file.

        The buffer goes to a temporary file in the same directory, which is
        then moved into place. A failed write leaves ``target`` as it was.

        Raises:
            FileConflictError: If ``target`` exists and ``override`` is False
            FilesystemError: If the file cannot be written
        """
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".part",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(content)
            if override:
                os.replace(tmp_path, target)
            else:
                _publish_exclusive(tmp_path, target)
        except FileExistsError as e:
            raise FileConflictError(
                f"File already exists: {target}", path=target
            ) from e
        except OSError as e:
            raise FilesystemError(f"Failed to write {target}: {e}", path=target) from e
        finally:
            if tmp_path is not None:
                _remove_quietly(tmp_path)


# Filesystems without hard links (FAT, exFAT) answer os.link with these
_NO_HARDLINK_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EXDEV}


def _publish_exclusive(tmp_path: Path, target: Path) -> None:
    """Move ``tmp_path`` to ``target``, failing if ``target`` already exists.

    Raises:
        FileExistsError: If ``target`` exists
    """
    try:
        os.link(tmp_path, target)
    except FileExistsError:
        raise
    except OSError as e:
        if e.errno not in _NO_HARDLINK_ERRNOS:
            raise
        if target.exists():
            raise FileExistsError(errno.EEXIST, "File exists", str(target)) from e
        os.replace(tmp_path, target)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")
