"""
Pydantic data models package.

Contains the data models shared across the reporting pipeline:
- Ban records produced by the scanner
- Service disclosure policy
"""

from .ban_record import (
    UNDISCLOSED_SERVICE,
    UTC_TIMESTAMP_FORMAT,
    BanRecord,
    DisclosurePolicy,
)

__all__ = [
    # Ban event models
    "BanRecord",
    "DisclosurePolicy",

    # Constants
    "UNDISCLOSED_SERVICE",
    "UTC_TIMESTAMP_FORMAT",
]
