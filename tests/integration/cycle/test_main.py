"""
Tests for the agent entry point.

Runs main() with --once against a temporary config, log and state
directory, with the collector transport replaced by a fake.
"""

import json
import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest
from prometheus_client import CollectorRegistry

from conftest import FakeTransport
from failstats.config import get_settings
from failstats.core.metrics import MetricsCollector
from failstats.main import main


class FakeCollectorTransport(FakeTransport):
    """FakeTransport usable where CollectorTransport is constructed."""

    async def __aenter__(self) -> "FakeCollectorTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


@pytest.fixture
def agent_env(sequential_logs: Path, temp_state_dir: Path) -> Generator[Path, None, None]:
    """Config file for a --once run; isolates env and global metrics."""
    config_path = temp_state_dir / "failstats.conf"
    config_path.write_text(json.dumps({
        "logDir": str(sequential_logs),
        "logName": "fail2ban",
        "repRateSeconds": 3600,
        "reportServices": 1,
        "dontReport": ["jupyter"],
        "stateDir": str(temp_state_dir),
    }))

    with patch.dict(os.environ):
        for key in list(os.environ):
            if key.startswith("FAILSTATS_"):
                del os.environ[key]
        get_settings.cache_clear()
        with patch("failstats.main.MetricsCollector", lambda: MetricsCollector(registry=CollectorRegistry())):
            yield config_path
    get_settings.cache_clear()


class TestMain:
    """Test process exit status and state bootstrap."""

    def test_once_reports_and_exits_zero(self, agent_env: Path, temp_state_dir: Path):
        transport = FakeCollectorTransport()
        with patch("failstats.main.CollectorTransport", lambda settings: transport):
            assert main(["--config", str(agent_env), "--once"]) == 0

        assert len(transport.uploads) == 1
        assert (temp_state_dir / "lastrun").exists()
        assert transport.uploads[0]["client_id"] == (temp_state_dir / "uuid").read_text()

    def test_rejected_report_exits_nonzero(self, agent_env: Path, temp_state_dir: Path):
        transport = FakeCollectorTransport(acknowledgment="0")
        with patch("failstats.main.CollectorTransport", lambda settings: transport):
            assert main(["--config", str(agent_env), "--once"]) == 1

        assert not (temp_state_dir / "lastrun").exists()

    def test_missing_config_exits_nonzero(self, agent_env: Path, temp_state_dir: Path):
        assert main(["--config", str(temp_state_dir / "missing.conf"), "--once"]) == 1

    def test_missing_log_directory_exits_nonzero(self, agent_env: Path, temp_state_dir: Path):
        os.environ["FAILSTATS_LOG_DIR"] = str(temp_state_dir / "nowhere")
        transport = FakeCollectorTransport()
        with patch("failstats.main.CollectorTransport", lambda settings: transport):
            assert main(["--config", str(agent_env), "--once"]) == 1

        assert transport.uploads == []
