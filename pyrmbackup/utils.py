"""Utility functions for pyrmbackup."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .exceptions import OutputPathError

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

DEFAULT_HOST: str = "http://10.11.99.1"

# Extension every document carries once mirrored locally
DEFAULT_FILE_EXTENSION: str = ".pdf"

# Listing endpoint is expected to answer quickly
DEFAULT_LISTING_TIMEOUT: float = 1.0
DEFAULT_PROBE_TIMEOUT: float = 5.0

# The tablet copes with about two or three parallel requests
DEFAULT_CONCURRENT_REQUESTS: int = 2


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp coming from the device.

    Naive timestamps are assumed to be UTC.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2024-01-01T10:30:00.123Z")

    Returns:
        Timezone-aware datetime or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        try:
            dt = datetime.fromisoformat(timestamp_str)
        except ValueError:
            # The device sometimes sends nanosecond precision, which
            # fromisoformat rejects on older interpreters
            if "." not in timestamp_str:
                raise
            head, tail = timestamp_str.split(".", 1)
            offset = ""
            for sign in ("+", "-"):
                if sign in tail:
                    offset = sign + tail.split(sign, 1)[1]
                    break
            dt = datetime.fromisoformat(head + offset)
    except (ValueError, AttributeError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def seconds_since(moment: datetime) -> float:
    """Seconds elapsed between ``moment`` and the current instant."""
    return (datetime.now(timezone.utc) - moment).total_seconds()


def seconds_since_mtime(path: Path) -> float:
    """Seconds elapsed since ``path`` was last modified.

    Raises:
        OSError: If the file is missing or cannot be stat'ed
    """
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    return seconds_since(mtime)


# =============================================================================
# Filename utilities
# =============================================================================


def ensure_file_extension(
    name: str, extension: str = DEFAULT_FILE_EXTENSION
) -> str:
    """Append ``extension`` to ``name`` unless it already ends with it.

    Examples:
        >>> ensure_file_extension("Notes")
        'Notes.pdf'
        >>> ensure_file_extension("Report.pdf")
        'Report.pdf'
    """
    if name.endswith(extension):
        return name
    return f"{name}{extension}"


# =============================================================================
# Output path utilities
# =============================================================================


def check_output_path(path: Union[str, Path], allow_creation: bool) -> Path:
    """Make sure the output root exists and is a directory.

    Args:
        path: Output directory
        allow_creation: Create the directory (and its parents) if missing

    Returns:
        The output directory as a Path

    Raises:
        OutputPathError: If the directory is missing and may not be created,
            or if creating it failed
    """
    output = Path(path)
    if output.is_dir():
        return output

    if not allow_creation:
        raise OutputPathError(
            f"Output path does not exist or is not a directory: {output}",
            path=output,
        )

    try:
        output.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputPathError(
            f"Failed to create output path {output}: {e}", path=output
        ) from e

    logger.debug(f"Created output directory {output}")
    return output


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
