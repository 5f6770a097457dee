"""Performance monitoring for parse attempts."""

from .performance_monitor import (
    Alert,
    AlertThresholds,
    ParserStats,
    PerformanceMonitor,
    PerformanceReport,
    StrategyStats,
    TrendSeries,
)

__all__ = [
    "Alert",
    "AlertThresholds",
    "ParserStats",
    "PerformanceMonitor",
    "PerformanceReport",
    "StrategyStats",
    "TrendSeries",
]
