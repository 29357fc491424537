"""
Agent entry point.

Loads settings, bootstraps the client identity and runs reporting cycles
until one fails.
"""

import asyncio
import logging
import sys
from argparse import ArgumentParser
from typing import List, Optional

import structlog

from . import __version__
from .config import Settings, get_settings
from .core.exceptions import FailstatsException
from .core.identity import load_or_create_identity
from .core.metrics import MetricsCollector, start_metrics_server
from .core.pipeline import ProcessingPipeline
from .core.reporter import BatchReporter, CollectorTransport
from .core.service import AgentService
from .core.watermark import WatermarkStore


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the agent."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # Silence the verbose aiohttp logger
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="failstats",
        description="Report new fail2ban bans to the failstats collector.",
    )
    parser.add_argument(
        "--config",
        help="Configuration file (default: /etc/failstats.conf)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reporting cycle and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override the configured log level",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


async def run_agent(settings: Settings, once: bool = False) -> None:
    """Bootstrap state and run the agent service."""
    logger = structlog.get_logger(__name__)
    logger.info("Version " + __version__)

    client_id = await load_or_create_identity(settings.state.identity_path)
    logger.info("Loaded settings", log_dir=str(settings.log_dir), interval=settings.report_interval_seconds)

    metrics = MetricsCollector()
    if settings.metrics_port:
        start_metrics_server(settings.metrics_port)

    store = WatermarkStore(settings.state.watermark_path)

    async with CollectorTransport(settings.collector) as transport:
        reporter = BatchReporter(transport, store, client_id, metrics=metrics)
        pipeline = ProcessingPipeline(settings, reporter, store, metrics=metrics)
        service = AgentService(pipeline, settings.report_interval_seconds)

        if once:
            await service.run_once()
        else:
            await service.run_forever()


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(args.config)
    except FailstatsException as e:
        configure_logging()
        structlog.get_logger(__name__).error(str(e), error_code=e.error_code, details=e.details)
        return 1

    configure_logging(args.log_level or settings.log_level)
    logger = structlog.get_logger(__name__)

    try:
        asyncio.run(run_agent(settings, once=args.once))
    except FailstatsException as e:
        logger.error(
            "Quitting due to error",
            error=str(e),
            error_code=e.error_code,
            details=e.details,
        )
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
