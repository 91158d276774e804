"""Partial-failure policy shared by the downloader and the writer."""

from enum import Enum


class ErrorScope(str, Enum):
    """Where a failure happened."""

    FETCH = "fetch"
    """Listing the document hierarchy"""

    DOWNLOAD = "download"
    """Retrieving the content of one document"""

    FILE = "file"
    """Writing one file into the mirror"""

    DIRECTORY = "directory"
    """Creating one mirror directory"""


class ErrorAction(str, Enum):
    """What to do after a failure."""

    ABORT = "abort"
    """Stop the whole backup"""

    SKIP_ITEM = "skip_item"
    """Skip the failed document or file and continue"""

    SKIP_SUBTREE = "skip_subtree"
    """Abandon the failed directory and everything below it"""


class FailurePolicy(str, Enum):
    """Partial-failure toggle for a backup run."""

    STRICT = "strict"
    """Any failure aborts the backup (default)"""

    PERMISSIVE = "permissive"
    """Downloads and writes skip what failed, fetch failures still abort"""

    @classmethod
    def from_flag(cls, permissive: bool) -> "FailurePolicy":
        return cls.PERMISSIVE if permissive else cls.STRICT

    @property
    def is_permissive(self) -> bool:
        return self == FailurePolicy.PERMISSIVE

    def action_for(self, scope: ErrorScope) -> ErrorAction:
        """Resolve the action to take for a failure in ``scope``.

        A partially known hierarchy cannot be planned against, so fetch
        failures abort regardless of the policy.
        """
        if self == FailurePolicy.STRICT or scope == ErrorScope.FETCH:
            return ErrorAction.ABORT
        if scope == ErrorScope.DIRECTORY:
            return ErrorAction.SKIP_SUBTREE
        return ErrorAction.SKIP_ITEM
