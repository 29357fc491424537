"""
Tests for configuration loading.

Tests the flat config document, environment overrides and validation.
"""

import json
import os
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from failstats.config import get_settings, load_config_file, reload_settings
from failstats.core.exceptions import ConfigurationError


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Isolate FAILSTATS_* variables; restores the environment afterwards."""
    with patch.dict(os.environ):
        for key in list(os.environ):
            if key.startswith("FAILSTATS_"):
                del os.environ[key]
        yield
    get_settings.cache_clear()


@pytest.fixture
def legacy_config(temp_state_dir: Path) -> Path:
    """JSON config in the format of /etc/failstats.conf."""
    path = temp_state_dir / "failstats.conf"
    path.write_text(json.dumps({
        "logDir": "test_data/",
        "logName": "fail2ban",
        "repRateSeconds": 3600,
        "reportServices": 1,
        "dontReport": ["jupyter"],
    }))
    return path


class TestConfigFile:
    """Test reading the configuration document."""

    def test_legacy_json_config(self, clean_env, legacy_config: Path):
        settings = reload_settings(str(legacy_config))

        assert settings.log_dir == Path("test_data/")
        assert settings.log_name == "fail2ban"
        assert settings.report_interval_seconds == 3600
        assert settings.report_services is True
        assert settings.dont_report == ["jupyter"]

    def test_yaml_config(self, clean_env, temp_state_dir: Path):
        path = temp_state_dir / "failstats.yaml"
        path.write_text(
            "logDir: /var/log\n"
            "logName: fail2ban\n"
            "repRateSeconds: 600\n"
            "reportServices: 0\n"
            "stateDir: /tmp/failstats\n"
            "collectorUrl: http://collector.example/api/\n"
        )
        settings = reload_settings(str(path))

        assert settings.report_interval_seconds == 600
        assert settings.report_services is False
        assert settings.state.watermark_path == Path("/tmp/failstats/lastrun")
        assert settings.state.identity_path == Path("/tmp/failstats/uuid")
        assert settings.collector.url == "http://collector.example/api/"

    def test_env_overrides_file(self, clean_env, legacy_config: Path):
        os.environ["FAILSTATS_LOG_NAME"] = "f2b"
        settings = reload_settings(str(legacy_config))
        assert settings.log_name == "f2b"

    def test_missing_explicit_file(self, clean_env, temp_state_dir: Path):
        with pytest.raises(ConfigurationError):
            load_config_file(str(temp_state_dir / "t.conf"))

    def test_malformed_file(self, clean_env, temp_state_dir: Path):
        path = temp_state_dir / "malformed.conf"
        path.write_text('{"logDir": "test_data/", "logName": ')
        with pytest.raises(ConfigurationError):
            load_config_file(str(path))

    def test_non_mapping_document(self, clean_env, temp_state_dir: Path):
        path = temp_state_dir / "list.conf"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_config_file(str(path))

    def test_invalid_values(self, clean_env, temp_state_dir: Path):
        path = temp_state_dir / "bad.conf"
        path.write_text(json.dumps({"repRateSeconds": 0}))
        with pytest.raises(ConfigurationError):
            reload_settings(str(path))


class TestDisclosurePolicy:
    """Test the policy derived from settings."""

    def test_policy_from_settings(self, clean_env, legacy_config: Path):
        policy = reload_settings(str(legacy_config)).disclosure_policy
        assert policy.report_services is True
        assert policy.suppressed_services == frozenset({"jupyter"})
