"""Backup pipeline for pyrmbackup - fetch, plan, download and write."""

from .downloader import DownloadResult, Downloader
from .engine import BackupEngine
from .fetcher import HierarchyFetcher
from .planner import SyncPlanner
from .policy import ErrorAction, ErrorScope, FailurePolicy
from .writer import LocalMirrorWriter, WriteResult

__all__ = [
    "BackupEngine",
    "HierarchyFetcher",
    "SyncPlanner",
    "Downloader",
    "DownloadResult",
    "LocalMirrorWriter",
    "WriteResult",
    "FailurePolicy",
    "ErrorAction",
    "ErrorScope",
]
