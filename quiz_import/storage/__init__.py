"""Persistence collaborators: record store and local key/value storage."""

from .local_storage import (
    COST_TRACKER_KEY,
    PERFORMANCE_METRICS_KEY,
    STRATEGY_ADJUSTMENTS_KEY,
    LocalStorage,
)
from .record_store import DEFAULT_SCHEMA, Collections, RecordStore

__all__ = [
    "COST_TRACKER_KEY",
    "PERFORMANCE_METRICS_KEY",
    "STRATEGY_ADJUSTMENTS_KEY",
    "LocalStorage",
    "DEFAULT_SCHEMA",
    "Collections",
    "RecordStore",
]
