"""
Periodic agent service.

Runs reporting cycles on a single asyncio task. Cycles never overlap and
any failure stops the service instead of retrying with stale state.
"""

import asyncio

import structlog

from .exceptions import TransportError
from .pipeline import CycleResult, ProcessingPipeline
from .reporter import ReportStatus

logger = structlog.get_logger(__name__)


class AgentService:
    """
    Drives the processing pipeline at a fixed interval.

    Features:
    - Immediate first cycle at startup
    - Sequential cycles separated by the reporting interval
    - Fatal handling of failed cycles
    """

    def __init__(self, pipeline: ProcessingPipeline, interval_seconds: int) -> None:
        self.pipeline = pipeline
        self.interval = interval_seconds
        self.cycles_completed = 0

        logger.info("Agent service initialized", interval_seconds=interval_seconds)

    async def run_once(self) -> CycleResult:
        """
        Run a single cycle.

        Raises:
            TransportError: the collector did not acknowledge the batch
        """
        result = await self.pipeline.run_cycle()

        if result.outcome is ReportStatus.FAILED:
            raise TransportError(result.reason or "Failed to transfer data")

        self.cycles_completed += 1
        logger.info(
            "Cycle completed",
            outcome=result.outcome.value,
            bans=result.bans,
            files_scanned=result.files_scanned,
            duration_ms=round(result.duration_ms, 2),
        )
        return result

    async def run_forever(self) -> None:
        """Run cycles until one fails or the task is cancelled."""
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)
