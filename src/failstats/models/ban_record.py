"""
Ban event data models.

- BanRecord: one extracted ban, timestamp already converted to UTC
- DisclosurePolicy: which service names may leave the host
"""

from datetime import datetime, timezone
from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNDISCLOSED_SERVICE = "undisclosed"

# Wire format expected by the collector
UTC_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC+0000"


class BanRecord(BaseModel):
    """
    A single ban event extracted from the fail2ban log.

    Immutable once produced; consumed by the batch reporter.
    """

    model_config = ConfigDict(frozen=True)

    occurred_at: datetime = Field(
        description="UTC instant at which the ban was logged"
    )
    source_address: str = Field(
        min_length=1,
        description="Banned address as written by fail2ban"
    )
    service: str = Field(
        min_length=1,
        description="Jail name, or 'undisclosed' when redacted"
    )

    @field_validator("occurred_at")
    def validate_occurred_at(cls, v: datetime) -> datetime:
        """Require an aware timestamp and pin it to UTC."""
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("occurred_at must be timezone-aware")
        return v.astimezone(timezone.utc)

    @property
    def timestamp_utc(self) -> str:
        """Second precision rendering with the fixed +0000 designator."""
        return self.occurred_at.strftime(UTC_TIMESTAMP_FORMAT)

    def to_row(self) -> List[str]:
        """Serialize as the [timestampUTC, sourceAddress, service] tuple."""
        return [self.timestamp_utc, self.source_address, self.service]


class DisclosurePolicy(BaseModel):
    """Service-name disclosure configuration consumed by the normalizer."""

    model_config = ConfigDict(frozen=True)

    report_services: bool = Field(
        default=True,
        description="Whether service names are reported at all"
    )
    suppressed_services: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Service names always reported as 'undisclosed'"
    )

