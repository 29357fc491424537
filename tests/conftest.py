"""
Pytest configuration and shared fixtures.

Contains log file builders, a fake collector transport and isolated
settings for all test modules.
"""

import gzip
import json
import tempfile
from datetime import timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest
from prometheus_client import CollectorRegistry

from failstats.config import Settings, StateSettings
from failstats.core.metrics import MetricsCollector

# Fixed host offset used wherever a cycle would read the local timezone
LOCAL_TZ = timezone(timedelta(hours=2))


def ban_line(timestamp: str, service: str, address: str, action: str = "Ban") -> str:
    """Render a fail2ban.actions NOTICE line."""
    return f"{timestamp} fail2ban.actions        [1042]: NOTICE  [{service}] {action} {address}\n"


def noise_line(timestamp: str) -> str:
    return f"{timestamp} fail2ban.filter         [1042]: INFO    [sshd] Found 10.0.0.9 - {timestamp[:19]}\n"


def write_log(directory: Path, name: str, lines: List[str]) -> Path:
    """Write a log file, gzip compressed when the name ends in .gz."""
    path = directory / name
    content = "".join(lines).encode("utf-8")
    if name.endswith(".gz"):
        path.write_bytes(gzip.compress(content))
    else:
        path.write_bytes(content)
    return path


class FakeTransport:
    """Records uploads and answers with a fixed acknowledgment."""

    def __init__(self, acknowledgment: str = "1", error: Optional[Exception] = None) -> None:
        self.acknowledgment = acknowledgment
        self.error = error
        self.uploads: List[Dict[str, Any]] = []

    async def upload(self, client_id: str, version: str, payload: bytes) -> str:
        self.uploads.append({"client_id": client_id, "version": version, "payload": payload})
        if self.error is not None:
            raise self.error
        return self.acknowledgment

    def rows(self, index: int = -1) -> List[List[str]]:
        """Decode the JSON rows of an upload."""
        return json.loads(gzip.decompress(self.uploads[index]["payload"]))


@pytest.fixture
def temp_log_dir() -> Generator[Path, None, None]:
    """Create temporary log directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def temp_state_dir() -> Generator[Path, None, None]:
    """Create temporary state directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sequential_logs(temp_log_dir: Path) -> Path:
    """Debian style rotation: fail2ban.log, fail2ban.log.1, fail2ban.log.2.gz."""
    write_log(temp_log_dir, "fail2ban.log.2.gz", [
        ban_line("2020-05-01 08:00:00,100", "sshd", "192.0.2.1"),
        ban_line("2020-05-02 08:00:00,100", "sshd", "192.0.2.2"),
    ])
    write_log(temp_log_dir, "fail2ban.log.1", [
        ban_line("2020-05-10 09:30:00,250", "sshd", "192.0.2.3"),
        noise_line("2020-05-10 09:31:00,000"),
        ban_line("2020-05-11 12:00:00,500", "jupyter", "192.0.2.4"),
    ])
    write_log(temp_log_dir, "fail2ban.log", [
        ban_line("2020-05-20 10:15:02,345", "sshd", "198.51.100.7"),
        ban_line("2020-05-20 10:16:00,000", "nginx-http-auth", "198.51.100.8", action="Unban"),
        ban_line("2020-05-21 22:00:01,001", "nginx-http-auth", "198.51.100.9"),
    ])
    return temp_log_dir


@pytest.fixture
def date_logs(temp_log_dir: Path) -> Path:
    """CentOS style rotation: fail2ban.log, fail2ban.log-20200531, fail2ban.log-20200517."""
    write_log(temp_log_dir, "fail2ban.log-20200517", [
        ban_line("2020-05-16 07:00:00,000", "sshd", "203.0.113.1"),
    ])
    write_log(temp_log_dir, "fail2ban.log-20200531", [
        ban_line("2020-05-30 07:00:00,000", "sshd", "203.0.113.2"),
    ])
    write_log(temp_log_dir, "fail2ban.log", [
        ban_line("2020-06-02 07:00:00,000", "sshd", "203.0.113.3"),
    ])
    return temp_log_dir


@pytest.fixture
def registry() -> CollectorRegistry:
    """Prometheus registry isolated per test."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> MetricsCollector:
    return MetricsCollector(registry=registry)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def agent_settings(temp_log_dir: Path, temp_state_dir: Path) -> Settings:
    """Settings pointing at the temporary log and state directories."""
    return Settings(
        log_dir=temp_log_dir,
        log_name="fail2ban",
        report_interval_seconds=3600,
        report_services=True,
        dont_report=["jupyter"],
        state=StateSettings(state_dir=temp_state_dir),
    )
