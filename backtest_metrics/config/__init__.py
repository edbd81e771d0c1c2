"""Configuration management module."""

from backtest_metrics.config.settings import MetricsConfig, Settings, load_settings

__all__ = ["MetricsConfig", "Settings", "load_settings"]
