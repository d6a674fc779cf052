"""Event watcher service module."""

from orchestrator.services.event_listener.deduplicator import EventDeduplicator
from orchestrator.services.event_listener.watcher import (
    EventWatcher,
    WatcherConfig,
    WatcherState,
    WatcherStats,
)

__all__ = [
    # Deduplicator
    "EventDeduplicator",
    # Watcher
    "EventWatcher",
    "WatcherConfig",
    "WatcherState",
    "WatcherStats",
]
