"""
Batch reporting to the failstats collector.

Features:
- Serializes a cycle's bans as gzip-compressed JSON
- Multipart upload through an aiohttp transport
- Advances the watermark only after the collector acknowledges with "1"
"""

import asyncio
import gzip
import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence

import aiohttp
import structlog

from .. import __version__
from ..config import CollectorSettings
from ..models import BanRecord
from .exceptions import TransportError
from .metrics import MetricsCollector
from .watermark import WatermarkStore

logger = structlog.get_logger(__name__)

SUCCESS_ACK = "1"

PAYLOAD_FILENAME = "data.json.gz"


class ReportStatus(str, Enum):
    """Outcome of handing one cycle's batch to the collector."""

    NO_NEW_EVENTS = "no_new_events"
    REPORTED = "reported"
    FAILED = "failed"


@dataclass
class ReportOutcome:
    """Result of a report operation."""
    status: ReportStatus
    bans_reported: int = 0
    watermark: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is ReportStatus.FAILED


def encode_batch(records: Sequence[BanRecord]) -> bytes:
    """Gzip the JSON array of [timestampUTC, sourceAddress, service] rows."""
    rows = [record.to_row() for record in records]
    return gzip.compress(json.dumps(rows).encode('utf-8'))


class CollectorTransport:
    """
    aiohttp client for the collector endpoint.

    Handles:
    - Session lifecycle
    - Multipart encoding of id, version and the data file
    - Reading the single-line acknowledgment
    """

    def __init__(self, settings: CollectorSettings) -> None:
        self.settings = settings
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info("Collector transport initialized", collector_url=settings.url)

    async def start(self) -> None:
        """Open the HTTP session."""
        if self.session:
            return

        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
        )

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> "CollectorTransport":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def upload(self, client_id: str, version: str, payload: bytes) -> str:
        """
        POST one batch to the collector.

        Returns:
            First line of the response body

        Raises:
            TransportError: connection failure, timeout or error status
        """
        if not self.session:
            raise TransportError("Transport not started")

        form = aiohttp.FormData()
        form.add_field("id", client_id)
        form.add_field("version", version)
        form.add_field(
            "data",
            payload,
            filename=PAYLOAD_FILENAME,
            content_type="application/gzip",
        )

        headers = {"User-Agent": f"failstats/{version}"}

        try:
            async with self.session.post(self.settings.url, data=form, headers=headers) as response:
                body = await response.text(errors="replace")
                if response.status >= 400:
                    logger.error("Collector returned error", status=response.status)
                    raise TransportError(
                        "Collector returned error",
                        status=response.status,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to connect to server", error=str(e))
            raise TransportError(f"Failed to connect to server: {e}") from e

        lines = body.splitlines()
        return lines[0] if lines else ""


class BatchReporter:
    """
    Delivers a cycle's bans and advances the watermark on success.

    This is the only place the watermark is written.
    """

    def __init__(
        self,
        transport: CollectorTransport,
        store: WatermarkStore,
        client_id: str,
        version: str = __version__,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.client_id = client_id
        self.version = version
        self.metrics = metrics

    async def report(
        self,
        records: Sequence[BanRecord],
        latest: Optional[datetime] = None,
    ) -> ReportOutcome:
        """
        Report a batch of bans.

        Args:
            records: Every new ban from this cycle, in scan order
            latest: Newest ban timestamp seen by the scanner; defaults to the
                newest record in the batch

        Returns:
            ReportOutcome; FAILED leaves the watermark untouched
        """
        if not records:
            logger.info("0 bans processed")
            return ReportOutcome(status=ReportStatus.NO_NEW_EVENTS)

        payload = encode_batch(records)
        logger.debug(
            "Uploading batch",
            bans=len(records),
            payload_bytes=len(payload),
            client_id=self.client_id[:8] + "...",
        )

        try:
            acknowledgment = await self.transport.upload(self.client_id, self.version, payload)
        except TransportError as e:
            self._record_upload(False)
            return ReportOutcome(status=ReportStatus.FAILED, reason=str(e))

        if acknowledgment != SUCCESS_ACK:
            logger.error("Failed to transfer data", code=acknowledgment)
            self._record_upload(False)
            return ReportOutcome(
                status=ReportStatus.FAILED,
                reason=f"Failed to transfer data - code: {acknowledgment}",
            )

        self._record_upload(True, len(records))

        watermark = latest if latest is not None else max(r.occurred_at for r in records)
        await self.store.save(watermark)
        if self.metrics:
            self.metrics.record_watermark(watermark)

        logger.info("Bans processed", bans=len(records))
        return ReportOutcome(
            status=ReportStatus.REPORTED,
            bans_reported=len(records),
            watermark=watermark,
        )

    def _record_upload(self, success: bool, bans: int = 0) -> None:
        if self.metrics:
            self.metrics.record_upload(success, bans)
