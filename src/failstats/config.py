"""
Configuration management.

The agent reads one flat key/value document at startup (YAML, of which the
legacy JSON config format is a subset) and hands it to Pydantic Settings.
Environment variables always override values from the document.
"""

import json
import os
import yaml
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .core.exceptions import ConfigurationError
from .models import DisclosurePolicy

DEFAULT_CONFIG_PATH = "/etc/failstats.conf"


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the configuration document.

    A missing default document is not an error (environment variables may
    carry everything); a missing explicitly requested one is.
    """
    explicit = config_path is not None or "FAILSTATS_CONFIG" in os.environ
    if config_path is None:
        config_path = os.environ.get("FAILSTATS_CONFIG", DEFAULT_CONFIG_PATH)

    if not os.path.exists(config_path):
        if explicit:
            raise ConfigurationError(
                "Failed to access configuration file",
                details={"path": config_path},
            )
        return {}

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            "Failed to load configuration file",
            details={"path": config_path, "error": str(e)},
        ) from e

    if not isinstance(config_data, dict):
        raise ConfigurationError(
            "Configuration file must contain a key/value mapping",
            details={"path": config_path},
        )
    return config_data


class StateSettings(BaseSettings):
    """Location of the agent's persisted state files."""

    state_dir: Path = Field(default=Path("/var/lib/failstats"), description="State directory")
    watermark_file: str = Field(default="lastrun", description="Last successful run file name")
    identity_file: str = Field(default="uuid", description="Client identity file name")

    @property
    def watermark_path(self) -> Path:
        return self.state_dir / self.watermark_file

    @property
    def identity_path(self) -> Path:
        return self.state_dir / self.identity_file

    class Config:
        env_prefix = "FAILSTATS_STATE_"


class CollectorSettings(BaseSettings):
    """Remote collector configuration."""

    url: str = Field(default="https://failstats.net/api/", description="Collector endpoint")
    timeout_seconds: int = Field(default=30, gt=0, description="Request timeout")

    class Config:
        env_prefix = "FAILSTATS_COLLECTOR_"


class Settings(BaseSettings):
    """Main agent settings."""

    # Log source
    log_dir: Path = Field(default=Path("/var/log"), description="Directory holding fail2ban logs")
    log_name: str = Field(default="fail2ban", min_length=1, description="Pattern matched against log file names")

    # Reporting
    report_interval_seconds: int = Field(default=3600, gt=0, description="Seconds between reporting cycles")
    report_services: bool = Field(default=True, description="Report jail names with each ban")
    dont_report: List[str] = Field(default_factory=list, description="Jail names never reported")

    # Observability
    log_level: str = Field(default="INFO", description="Log level")
    metrics_port: Optional[int] = Field(default=None, description="Port for the Prometheus exporter")

    # Component settings
    state: StateSettings = Field(default_factory=StateSettings)
    collector: CollectorSettings = Field(default_factory=CollectorSettings)

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def disclosure_policy(self) -> DisclosurePolicy:
        """Service disclosure policy derived from the reporting settings."""
        return DisclosurePolicy(
            report_services=self.report_services,
            suppressed_services=frozenset(self.dont_report),
        )

    class Config:
        env_prefix = "FAILSTATS_"
        case_sensitive = False


@lru_cache()
def get_settings(config_path: Optional[str] = None) -> Settings:
    """Get cached settings instance with config file and env support."""

    config_data = load_config_file(config_path)

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            details={"errors": e.errors(include_url=False)},
        ) from e


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    mappings = {
        "logDir": "FAILSTATS_LOG_DIR",
        "logName": "FAILSTATS_LOG_NAME",
        "repRateSeconds": "FAILSTATS_REPORT_INTERVAL_SECONDS",
        "reportServices": "FAILSTATS_REPORT_SERVICES",
        "logLevel": "FAILSTATS_LOG_LEVEL",
        "metricsPort": "FAILSTATS_METRICS_PORT",
        "stateDir": "FAILSTATS_STATE_STATE_DIR",
        "collectorUrl": "FAILSTATS_COLLECTOR_URL",
        "timeoutSeconds": "FAILSTATS_COLLECTOR_TIMEOUT_SECONDS",
    }

    for key, env_var in mappings.items():
        if env_var not in os.environ:
            value = config_data.get(key)
            if value is not None:
                os.environ[env_var] = str(value)

    # Lists travel as JSON strings
    if "FAILSTATS_DONT_REPORT" not in os.environ:
        dont_report = config_data.get("dontReport")
        if dont_report is not None:
            os.environ["FAILSTATS_DONT_REPORT"] = json.dumps(dont_report)


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings(config_path)
