"""
Configuration management with Pydantic validation.

Loads settings from YAML config file and environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class MetricsConfig(BaseModel):
    """Inputs shared by position matching and metric aggregation."""

    initial_capital: float = Field(
        default=10_000.0,
        gt=0,
        description="Equity-curve seed and base for percentage-of-capital PnL",
    )
    price_tolerance_percent: float = Field(
        default=0.1,
        ge=0.0,
        le=100.0,
        description="Tolerance in percent (0.1 = 0.1%) for entry matching and TP/SL detection",
    )
    current_price: float | None = Field(
        default=None,
        ge=0.0,
        description="Market price used to value positions that are still open",
    )

    @property
    def tolerance(self) -> float:
        """Tolerance as a fraction (0.1% -> 0.001)."""
        return self.price_tolerance_percent / 100


class StorageConfig(BaseModel):
    """Storage paths configuration."""

    reports_path: str = "./reports"
    logs_path: str = "./logs"


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    error_log_enabled: bool = False
    error_log_max_bytes: int = Field(default=5_000_000, ge=100_000, le=50_000_000)
    error_log_backup_count: int = Field(default=3, ge=1, le=20)


class Settings(BaseSettings):
    """Main application settings."""

    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_nested_delimiter": "__",
        "populate_by_name": True,
    }


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings from YAML config file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (e.g. METRICS__INITIAL_CAPITAL)
    2. Config file values
    3. Default values
    """
    config_data = {}

    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            config_data = yaml.safe_load(f) or {}

    # Environment variables must beat the YAML values, but pydantic-settings gives
    # init kwargs priority. Drop YAML sections the environment overrides.
    for section in list(config_data):
        prefix = f"{section.upper()}__"
        overridden = {
            key[len(prefix) :].lower()
            for key in os.environ
            if key.upper().startswith(prefix)
        }
        if overridden and isinstance(config_data[section], dict):
            config_data[section] = {
                key: value
                for key, value in config_data[section].items()
                if key.lower() not in overridden
            }

    env_path = config_file.parent / ".env"
    return Settings(**config_data, _env_file=env_path)


def create_default_config(path: str | Path = "config.yaml") -> None:
    """Create a default configuration file."""
    default_config = {
        "metrics": {
            "initial_capital": 10000.0,
            "price_tolerance_percent": 0.1,
            "current_price": None,
        },
        "storage": {
            "reports_path": "./reports",
            "logs_path": "./logs",
        },
        "monitoring": {
            "log_level": "INFO",
            "error_log_enabled": False,
            "error_log_max_bytes": 5000000,
            "error_log_backup_count": 3,
        },
    }

    with open(path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
