"""Tests for the LocalMirrorWriter class."""

import errno
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from pyrmbackup.exceptions import FileConflictError, FilesystemError
from pyrmbackup.models import DocType, Document, FetchedFile, FolderNode, Hierarchy
from pyrmbackup.sync.policy import FailurePolicy
from pyrmbackup.sync.planner import SyncPlanner
from pyrmbackup.sync.writer import LocalMirrorWriter

_real_named_temporary_file = tempfile.NamedTemporaryFile


@pytest.fixture
def tree():
    """root{a1} -> Work{b1} -> Archive{d1}, root -> Other{e1}."""
    archive = FolderNode(name="Archive", id="c2", file_ids={"d1"})
    work = FolderNode(name="Work", id="c1", file_ids={"b1"}, children=[archive])
    other = FolderNode(name="Other", id="c3", file_ids={"e1"})
    return FolderNode(name="root", file_ids={"a1"}, children=[work, other])


@pytest.fixture
def files():
    return [
        FetchedFile(id="a1", filename="Essay.pdf", content=b"essay"),
        FetchedFile(id="b1", filename="Report.pdf", content=b"report"),
        FetchedFile(id="d1", filename="Old.pdf", content=b"old"),
        FetchedFile(id="e1", filename="Other.pdf", content=b"other"),
    ]


def _failing_mkdir(name):
    """Path.mkdir replacement failing only for directories called ``name``."""
    original = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):
        if self.name == name:
            raise PermissionError(f"cannot create {self}")
        return original(self, *args, **kwargs)

    return fake_mkdir


def _disk_full_after_half_write(*args, **kwargs):
    """NamedTemporaryFile whose write stores half the buffer, then fails."""
    handle = _real_named_temporary_file(*args, **kwargs)
    original_write = handle.write

    def write(data):
        original_write(data[: len(data) // 2])
        raise OSError(errno.ENOSPC, "No space left on device")

    handle.write = write
    return handle


class TestWriteTree:
    """Tests for mirroring the folder tree."""

    def test_writes_whole_tree(self, tree, files, tmp_path):
        result = LocalMirrorWriter().write(tree, files, tmp_path)

        assert (tmp_path / "root" / "Essay.pdf").read_bytes() == b"essay"
        assert (tmp_path / "root" / "Work" / "Report.pdf").read_bytes() == b"report"
        archive = tmp_path / "root" / "Work" / "Archive"
        assert (archive / "Old.pdf").read_bytes() == b"old"
        assert (tmp_path / "root" / "Other" / "Other.pdf").read_bytes() == b"other"
        assert len(result.written) == 4
        assert result.failed == []
        assert result.skipped_dirs == []
        assert len(result.created_dirs) == 4

    def test_only_given_files_are_written(self, tree, files, tmp_path):
        LocalMirrorWriter().write(tree, files[:1], tmp_path)

        assert (tmp_path / "root" / "Essay.pdf").exists()
        assert (tmp_path / "root" / "Work").is_dir()
        assert list((tmp_path / "root" / "Work").glob("*.pdf")) == []

    def test_files_without_slot_are_ignored(self, tree, tmp_path):
        stray = [FetchedFile(id="zz", filename="Stray.pdf", content=b"x")]

        result = LocalMirrorWriter().write(tree, stray, tmp_path)

        assert result.written == []
        assert not list(tmp_path.rglob("Stray.pdf"))

    def test_existing_directories_are_reused(self, tree, files, tmp_path):
        (tmp_path / "root" / "Work").mkdir(parents=True)

        result = LocalMirrorWriter().write(tree, files, tmp_path)

        assert tmp_path / "root" / "Work" not in result.created_dirs
        assert len(result.written) == 4

    def test_callback_events(self, tree, files, tmp_path):
        events = []
        writer = LocalMirrorWriter(callback=lambda e, p: events.append((e, p.name)))

        writer.write(tree, files[:1], tmp_path)

        assert events[0] == ("mkdir", "root")
        assert ("write", "Essay.pdf") in events


class TestConflicts:
    """Tests for existing files in the mirror."""

    def test_strict_conflict_keeps_existing_bytes(self, tree, files, tmp_path):
        target = tmp_path / "root" / "Essay.pdf"
        target.parent.mkdir()
        target.write_bytes(b"precious")

        with pytest.raises(FileConflictError, match="already exists"):
            LocalMirrorWriter(FailurePolicy.STRICT).write(tree, files, tmp_path)

        assert target.read_bytes() == b"precious"

    def test_permissive_conflict_skips_only_that_file(self, tree, files, tmp_path):
        target = tmp_path / "root" / "Essay.pdf"
        target.parent.mkdir()
        target.write_bytes(b"precious")

        result = LocalMirrorWriter(FailurePolicy.PERMISSIVE).write(
            tree, files, tmp_path
        )

        assert target.read_bytes() == b"precious"
        assert result.failed == [target]
        assert len(result.written) == 3
        assert (tmp_path / "root" / "Work" / "Report.pdf").exists()

    def test_override_replaces_existing(self, tree, files, tmp_path):
        target = tmp_path / "root" / "Essay.pdf"
        target.parent.mkdir()
        target.write_bytes(b"precious")

        result = LocalMirrorWriter().write(tree, files, tmp_path, override=True)

        assert target.read_bytes() == b"essay"
        assert len(result.written) == 4

    def test_write_failure_permissive(self, tree, files, tmp_path):
        # A directory where the file should go makes the write fail
        (tmp_path / "root" / "Essay.pdf").mkdir(parents=True)

        result = LocalMirrorWriter(FailurePolicy.PERMISSIVE).write(
            tree, files, tmp_path, override=True
        )

        assert result.failed == [tmp_path / "root" / "Essay.pdf"]
        assert len(result.written) == 3

    def test_write_failure_strict(self, tree, files, tmp_path):
        (tmp_path / "root" / "Essay.pdf").mkdir(parents=True)

        with pytest.raises(FilesystemError, match="Failed to write"):
            LocalMirrorWriter().write(tree, files, tmp_path, override=True)


class TestDirectoryFailures:
    """Tests for directory creation failures."""

    def test_strict_aborts(self, tree, files, tmp_path):
        with patch.object(
            Path, "mkdir", autospec=True, side_effect=_failing_mkdir("Work")
        ):
            with pytest.raises(FilesystemError, match="Failed to create directory"):
                LocalMirrorWriter(FailurePolicy.STRICT).write(tree, files, tmp_path)

        # Files of the parent were written before the failure
        assert (tmp_path / "root" / "Essay.pdf").exists()
        assert not (tmp_path / "root" / "Other").exists()

    def test_permissive_skips_subtree_only(self, tree, files, tmp_path):
        with patch.object(
            Path, "mkdir", autospec=True, side_effect=_failing_mkdir("Work")
        ):
            result = LocalMirrorWriter(FailurePolicy.PERMISSIVE).write(
                tree, files, tmp_path
            )

        assert result.skipped_dirs == [tmp_path / "root" / "Work"]
        assert not (tmp_path / "root" / "Work").exists()
        assert (tmp_path / "root" / "Essay.pdf").exists()
        assert (tmp_path / "root" / "Other" / "Other.pdf").exists()
        assert {p.name for p in result.written} == {"Essay.pdf", "Other.pdf"}

    def test_regular_file_in_place_of_folder_skips_subtree(
        self, tree, files, tmp_path
    ):
        (tmp_path / "root").mkdir()
        (tmp_path / "root" / "Work").write_bytes(b"not a folder")

        result = LocalMirrorWriter(FailurePolicy.PERMISSIVE).write(
            tree, files, tmp_path
        )

        assert result.skipped_dirs == [tmp_path / "root" / "Work"]
        assert result.failed == []
        assert (tmp_path / "root" / "Work").read_bytes() == b"not a folder"
        assert {p.name for p in result.written} == {"Essay.pdf", "Other.pdf"}

    def test_regular_file_in_place_of_folder_strict(self, tree, files, tmp_path):
        (tmp_path / "root").mkdir()
        (tmp_path / "root" / "Work").write_bytes(b"not a folder")

        with pytest.raises(FilesystemError, match="Failed to create directory"):
            LocalMirrorWriter(FailurePolicy.STRICT).write(tree, files, tmp_path)


class TestInterruptedWrites:
    """A write failing midway never leaves a partial file behind."""

    @pytest.fixture
    def essay_only(self):
        return FolderNode(name="root", file_ids={"a1"})

    @pytest.fixture
    def essay(self):
        return [FetchedFile(id="a1", filename="Essay.pdf", content=b"0123456789")]

    def _write(self, node, files, output_root, override=False):
        with patch(
            "pyrmbackup.sync.writer.tempfile.NamedTemporaryFile",
            side_effect=_disk_full_after_half_write,
        ):
            return LocalMirrorWriter(FailurePolicy.PERMISSIVE).write(
                node, files, output_root, override=override
            )

    def test_new_file_is_not_created(self, essay_only, essay, tmp_path):
        result = self._write(essay_only, essay, tmp_path)

        target = tmp_path / "root" / "Essay.pdf"
        assert result.failed == [target]
        assert not target.exists()
        assert list((tmp_path / "root").iterdir()) == []

    def test_override_keeps_previous_copy(self, essay_only, essay, tmp_path):
        target = tmp_path / "root" / "Essay.pdf"
        target.parent.mkdir()
        target.write_bytes(b"GOOD OLD COPY")

        result = self._write(essay_only, essay, tmp_path, override=True)

        assert result.failed == [target]
        assert target.read_bytes() == b"GOOD OLD COPY"
        assert [p.name for p in target.parent.iterdir()] == ["Essay.pdf"]

    def test_failed_document_is_planned_again(self, essay_only, essay, tmp_path):
        document = Document(
            id="a1",
            visible_name="Essay",
            doc_type=DocType.DOCUMENT,
            modified_client="2024-01-01T00:00:00Z",
        )
        hierarchy = Hierarchy(documents=[document], root=essay_only)

        self._write(essay_only, essay, tmp_path)

        plan = SyncPlanner().plan(hierarchy, tmp_path, smart=True)
        assert [entry.id for entry in plan] == ["a1"]

    def test_successful_write_leaves_no_temporary_file(
        self, essay_only, essay, tmp_path
    ):
        LocalMirrorWriter().write(essay_only, essay, tmp_path)

        assert [p.name for p in (tmp_path / "root").iterdir()] == ["Essay.pdf"]
        assert (tmp_path / "root" / "Essay.pdf").read_bytes() == b"0123456789"
