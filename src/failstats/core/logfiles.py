"""
Log set resolution.

Finds every rotated file belonging to one fail2ban log stream and orders
them most-recent-content-first, for both rotation conventions:

- sequential suffix (Debian/Ubuntu): fail2ban.log, fail2ban.log.1, fail2ban.log.2.gz
- date suffix (CentOS/RHEL): fail2ban.log, fail2ban.log-20200531, fail2ban.log-20200517
"""

import re
from enum import Enum
from pathlib import Path
from typing import List, Tuple, Union

import structlog

from .exceptions import InvalidTargetError, LogNotFoundError

logger = structlog.get_logger(__name__)

_NUMERIC_SUFFIX = re.compile(r"\.(\d+)(?:\.gz)?$")


class RotationConvention(str, Enum):
    """File naming scheme used when the log is rolled over."""

    SEQUENTIAL = "sequential"
    DATE = "date"


def detect_convention(names: List[str]) -> RotationConvention:
    """Date rotation is assumed as soon as any matching name contains '-'."""
    if any("-" in name for name in names):
        return RotationConvention.DATE
    return RotationConvention.SEQUENTIAL


def _sequential_key(name: str) -> Tuple[int, str]:
    match = _NUMERIC_SUFFIX.search(name)
    if match is None:
        return (0, name)
    return (int(match.group(1)), name)


def order_log_files(names: List[str]) -> List[str]:
    """
    Order matched file names newest content first.

    Args:
        names: Matching file names in any order

    Returns:
        A new list, base file first
    """
    ordered = sorted(names)
    if detect_convention(ordered) is RotationConvention.SEQUENTIAL:
        # Base file has no numeric suffix, so it sorts first
        return sorted(ordered, key=_sequential_key)

    # The live file carries no date suffix, so it is the shortest name
    base = ordered.pop(ordered.index(min(ordered, key=len)))

    # Date suffixes sort oldest-to-newest
    return [base] + list(reversed(ordered))


def resolve_log_files(log_dir: Union[str, Path], log_name: str) -> List[str]:
    """
    Resolve the ordered log file set for one stream.

    Args:
        log_dir: Directory holding the logs
        log_name: Regular expression searched in each file name

    Returns:
        File names (relative to log_dir), most recent content first

    Raises:
        InvalidTargetError: log_dir exists but is not a directory
        LogNotFoundError: log_dir is missing, unreadable or has no matching files
    """
    directory = Path(log_dir)

    if directory.exists() and not directory.is_dir():
        raise InvalidTargetError(f"{directory} is not a directory", path=str(directory))

    pattern = re.compile(log_name)
    try:
        names = [
            entry.name
            for entry in directory.iterdir()
            if pattern.search(entry.name) and entry.is_file()
        ]
    except OSError as e:
        logger.error("Failed to find log directory", log_dir=str(directory), error=str(e))
        raise LogNotFoundError(
            f"Failed to find log directory: {directory}",
            details={"log_dir": str(directory), "error": str(e)},
        ) from e

    if not names:
        logger.error("No fail2ban logs found", log_dir=str(directory), log_name=log_name)
        raise LogNotFoundError(
            "Check fail2ban log path - no log files found",
            details={"log_dir": str(directory), "log_name": log_name},
        )

    ordered = order_log_files(names)
    logger.debug(
        "Resolved log files",
        log_dir=str(directory),
        convention=detect_convention(ordered).value,
        files=ordered,
    )
    return ordered
