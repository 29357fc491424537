"""
Ban event normalization.

Converts raw matches from the log into BanRecords: local wall-clock
timestamps become UTC instants and service names pass through the
disclosure policy before anything leaves the host.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

import structlog

from ..models import UNDISCLOSED_SERVICE, BanRecord, DisclosurePolicy

logger = structlog.get_logger(__name__)


def capture_local_timezone(now: Optional[datetime] = None) -> timezone:
    """
    Capture the host's current UTC offset as a fixed timezone.

    Called once per cycle so every record in the cycle is shifted by the
    same offset.
    """
    current = now if now is not None else datetime.now()
    if current.tzinfo is None:
        current = current.astimezone()
    offset = current.utcoffset() or timedelta(0)
    return timezone(offset)


class EventNormalizer:
    """
    Turns raw ban matches into reportable records.

    Handles:
    - Local timestamp to UTC conversion with a per-cycle offset
    - Service name redaction (all services, or a suppressed list)
    """

    def __init__(self, policy: DisclosurePolicy, local_tz: tzinfo) -> None:
        self.policy = policy
        self.local_tz = local_tz

    def localize(self, naive: datetime) -> datetime:
        """Attach the cycle's local offset to a wall-clock timestamp."""
        return naive.replace(tzinfo=self.local_tz)

    def disclose_service(self, service: str) -> str:
        """Return the service name as it may be reported."""
        if not self.policy.report_services:
            return UNDISCLOSED_SERVICE

        if service in self.policy.suppressed_services:
            logger.debug("Suppressed service name", service=service)
            return UNDISCLOSED_SERVICE

        return service

    def normalize(self, local_time: datetime, service: str, address: str) -> BanRecord:
        """
        Build a BanRecord from a raw match.

        Args:
            local_time: Timestamp from the log, naive or already localized
            service: Jail name captured from the log line
            address: Banned address captured from the log line

        Returns:
            Immutable BanRecord with a UTC timestamp
        """
        if local_time.tzinfo is None:
            local_time = self.localize(local_time)

        return BanRecord(
            occurred_at=local_time.astimezone(timezone.utc),
            source_address=address,
            service=self.disclose_service(service),
        )
