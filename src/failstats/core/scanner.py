"""
Incremental ban scanner.

Reads the resolved log files newest first and yields BanRecords for bans
logged after the watermark. Once a file contains a ban at or before the
watermark, that file is finished but no older file is opened.

Log lines carry local wall-clock time, so they are compared against the
wall-clock part of the watermark, whatever offset it was stored with. The
offset captured for the current cycle only affects the UTC rendering.
"""

import gzip
import re
import zlib
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Union

import structlog

from ..models import BanRecord
from .exceptions import FileAccessError, TimestampParseError
from .normalizer import EventNormalizer

logger = structlog.get_logger(__name__)

# Groups: timestamp, jail, address. "Unban" lines must not match.
BAN_PATTERN = re.compile(
    r"(\d+-\d+-\d+ \d+:\d+:\d+,\d+)\sfail2ban\.actions\W+.*\WNOTICE\W+.*\[(.*)\].*\bBan\s+(\S+)",
    re.IGNORECASE,
)

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S,%f"

COMPRESSED_SUFFIX = ".gz"


def parse_log_timestamp(value: str) -> datetime:
    """Parse a fail2ban timestamp such as '2020-05-31 10:15:02,345'."""
    try:
        return datetime.strptime(value, LOG_TIMESTAMP_FORMAT)
    except ValueError as e:
        logger.error("Failed to parse date", value=value)
        raise TimestampParseError(
            f"Failed to parse log timestamp: {value}",
            details={"value": value},
        ) from e


class IncrementalScanner:
    """
    One-shot scanner over an ordered log file set.

    After scan() is exhausted:
    - latest holds the newest timestamp among yielded records (or None)
    - files_scanned counts the files opened
    - terminal_file names the file where the watermark was reached
    """

    def __init__(
        self,
        log_dir: Union[str, Path],
        log_files: List[str],
        watermark: Optional[datetime],
        normalizer: EventNormalizer,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.log_files = list(log_files)
        self.watermark = watermark
        self._watermark_wall = watermark.replace(tzinfo=None, microsecond=0) if watermark is not None else None
        self.normalizer = normalizer

        self.latest: Optional[datetime] = None
        self.files_scanned = 0
        self.terminal_file: Optional[str] = None
        self._consumed = False

    def scan(self) -> Iterator[BanRecord]:
        """Yield new BanRecords in file order."""
        if self._consumed:
            raise RuntimeError("IncrementalScanner.scan() can only run once")
        self._consumed = True

        for name in self.log_files:
            reached_watermark = False
            self.files_scanned += 1
            logger.debug("Scanning log file", file=name)

            for line in self._read_lines(self.log_dir / name):
                match = BAN_PATTERN.search(line)
                if match is None:
                    continue

                wall_time = parse_log_timestamp(match.group(1))

                if self._watermark_wall is not None:
                    # Already reported at the previous cycle boundary
                    if wall_time.replace(microsecond=0) == self._watermark_wall:
                        continue
                    if wall_time <= self._watermark_wall:
                        reached_watermark = True
                        continue

                local_time = self.normalizer.localize(wall_time)
                if self.latest is None or local_time > self.latest:
                    self.latest = local_time

                yield self.normalizer.normalize(local_time, match.group(2), match.group(3))

            if reached_watermark:
                self.terminal_file = name
                logger.debug("Reached previously reported bans", file=name)
                break

    def _read_lines(self, path: Path) -> Iterator[str]:
        """Yield lines from a plain or gzip compressed log file."""
        try:
            if path.name.endswith(COMPRESSED_SUFFIX):
                with gzip.open(path, "rt", encoding="utf-8", errors="replace") as f:
                    yield from f
            else:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    yield from f
        except (OSError, EOFError, zlib.error) as e:
            logger.error("Failed to read log file", file=str(path), error=str(e))
            raise FileAccessError(
                f"Failed to read log file: {path}",
                details={"file": str(path), "error": str(e)},
            ) from e
