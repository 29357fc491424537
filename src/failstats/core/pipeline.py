"""
Reporting cycle orchestration.

One cycle runs, in order:
1. Log set resolution
2. Watermark snapshot
3. Incremental scan with inline normalization
4. Batch report and, on acknowledgment, watermark advance
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from ..config import Settings
from .exceptions import FailstatsException
from .logfiles import resolve_log_files
from .metrics import MetricsCollector
from .normalizer import EventNormalizer, capture_local_timezone
from .reporter import BatchReporter, ReportStatus
from .scanner import IncrementalScanner
from .watermark import WatermarkStore

logger = structlog.get_logger(__name__)


@dataclass
class CycleResult:
    """Result of one reporting cycle."""
    outcome: ReportStatus
    bans: int
    files_scanned: int
    watermark: Optional[datetime]
    duration_ms: float
    reason: Optional[str] = None


class ProcessingPipeline:
    """
    Runs reporting cycles end to end.

    Errors from resolution, scanning or state access propagate to the
    caller; a rejected upload is returned as a FAILED outcome.
    """

    def __init__(
        self,
        settings: Settings,
        reporter: BatchReporter,
        store: WatermarkStore,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.settings = settings
        self.reporter = reporter
        self.store = store
        self.metrics = metrics
        logger.info(
            "Processing pipeline initialized",
            log_dir=str(settings.log_dir),
            log_name=settings.log_name,
        )

    async def run_cycle(self) -> CycleResult:
        """Run one resolve, scan, report cycle."""
        started = time.monotonic()
        files_scanned = 0

        try:
            local_tz = capture_local_timezone()
            log_files = resolve_log_files(self.settings.log_dir, self.settings.log_name)
            watermark = await self.store.load()

            normalizer = EventNormalizer(self.settings.disclosure_policy, local_tz)
            scanner = IncrementalScanner(self.settings.log_dir, log_files, watermark, normalizer)
            records = list(scanner.scan())
            files_scanned = scanner.files_scanned

            logger.info(
                "Scan completed",
                files_scanned=scanner.files_scanned,
                terminal_file=scanner.terminal_file,
                new_bans=len(records),
            )

            outcome = await self.reporter.report(records, scanner.latest)
        except FailstatsException:
            self._record(ReportStatus.FAILED.value, started, files_scanned)
            raise

        duration = self._record(outcome.status.value, started, files_scanned)

        return CycleResult(
            outcome=outcome.status,
            bans=outcome.bans_reported,
            files_scanned=files_scanned,
            watermark=outcome.watermark if outcome.watermark is not None else watermark,
            duration_ms=duration * 1000,
            reason=outcome.reason,
        )

    def _record(self, outcome: str, started: float, files_scanned: int) -> float:
        duration = time.monotonic() - started
        if self.metrics:
            self.metrics.record_cycle(outcome, duration, files_scanned)
        return duration
