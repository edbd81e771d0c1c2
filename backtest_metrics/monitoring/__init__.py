"""Monitoring utilities."""

from backtest_metrics.monitoring.logging import configure_logging

__all__ = ["configure_logging"]
