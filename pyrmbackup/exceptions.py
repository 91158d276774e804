"""Exceptions raised by pyrmbackup."""

from typing import Any, Optional


class RemarkableError(Exception):
    """Base exception for all pyrmbackup errors."""


class ConfigError(RemarkableError):
    """Invalid configuration value."""


class NetworkError(RemarkableError):
    """A request against the device failed or timed out."""


class DeviceUnavailableError(NetworkError):
    """The device did not answer the liveness probe."""


class DownloadError(NetworkError):
    """At least one download failed while running with the strict policy.

    The documents that were retrieved before the failure are kept in
    ``result`` so callers can still report them.
    """

    def __init__(self, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.result = result


class ParseError(RemarkableError):
    """A listing or timestamp could not be decoded."""


class FilesystemError(RemarkableError):
    """A local directory or file could not be created or written."""

    def __init__(self, message: str, path: Optional[Any] = None):
        super().__init__(message)
        self.path = path


class FileConflictError(FilesystemError):
    """The destination file already exists and overriding is disabled."""


class OutputPathError(FilesystemError):
    """The output root is missing and may not (or could not) be created."""
