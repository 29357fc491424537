"""
Watermark store.

Persists the instant of the newest ban already delivered to the collector.
The file holds one ISO-8601 timestamp with offset. A missing file means no
run has completed yet and is reported as None, not as an error.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import structlog
from aiofiles import open as aio_open

from .exceptions import FileAccessError, InvalidTargetError, TimestampParseError

logger = structlog.get_logger(__name__)


def format_watermark(instant: datetime) -> str:
    """Render an aware instant with second precision and its offset."""
    if instant.tzinfo is None:
        raise ValueError("watermark must be timezone-aware")
    return instant.replace(microsecond=0).isoformat()


def parse_watermark(value: str) -> datetime:
    """Parse a stored watermark, rejecting timestamps without an offset."""
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError as e:
        raise TimestampParseError(
            "Unable to parse last run time",
            details={"value": text},
        ) from e

    if parsed.tzinfo is None:
        raise TimestampParseError(
            "Last run time has no UTC offset",
            details={"value": text},
        )
    return parsed


class WatermarkStore:
    """
    File-backed watermark.

    The store only reads and writes; deciding when to advance belongs to
    the batch reporter.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    async def load(self) -> Optional[datetime]:
        """
        Load the stored watermark.

        Returns:
            The stored instant, or None on first run

        Raises:
            InvalidTargetError: path is a directory
            TimestampParseError: file content is not a timestamp
            FileAccessError: file exists but cannot be read
        """
        if self.path.is_dir():
            raise InvalidTargetError(f"{self.path} is a directory", path=str(self.path))

        if not self.path.exists():
            logger.info("No lastrun file exists, reporting all bans", path=str(self.path))
            return None

        try:
            async with aio_open(self.path, 'r') as f:
                first_line = await f.readline()
        except OSError as e:
            logger.error("Unable to access lastrun file", path=str(self.path), error=str(e))
            raise FileAccessError(
                f"Unable to access {self.path}",
                details={"path": str(self.path), "error": str(e)},
            ) from e

        watermark = parse_watermark(first_line)
        logger.debug("Loaded watermark", watermark=watermark.isoformat())
        return watermark

    async def save(self, instant: datetime) -> None:
        """
        Overwrite the stored watermark.

        Writes a sibling temp file and renames it over the old one so a
        crash never leaves a truncated watermark behind.
        """
        content = format_watermark(instant)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            async with aio_open(tmp_path, 'w') as f:
                await f.write(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            logger.error("Failed to save last runtime", path=str(self.path), error=str(e))
            raise FileAccessError(
                f"Failed to save last runtime to {self.path}",
                details={"path": str(self.path), "error": str(e)},
            ) from e

        logger.info("Saved watermark", watermark=content)
