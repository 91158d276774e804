"""pyrmbackup - Back up the documents of a reMarkable tablet over USB."""

from .api import RemarkableClient
from .exceptions import (
    ConfigError,
    DeviceUnavailableError,
    DownloadError,
    FileConflictError,
    FilesystemError,
    NetworkError,
    OutputPathError,
    ParseError,
    RemarkableError,
)
from .models import (
    DocType,
    Document,
    DownloadPlanEntry,
    FetchedFile,
    FolderNode,
    Hierarchy,
)
from .utils import ensure_file_extension, parse_iso_timestamp

__all__ = [
    "RemarkableClient",
    "RemarkableError",
    "ConfigError",
    "DeviceUnavailableError",
    "DownloadError",
    "FileConflictError",
    "FilesystemError",
    "NetworkError",
    "OutputPathError",
    "ParseError",
    "DocType",
    "Document",
    "DownloadPlanEntry",
    "FetchedFile",
    "FolderNode",
    "Hierarchy",
    "ensure_file_extension",
    "parse_iso_timestamp",
]
