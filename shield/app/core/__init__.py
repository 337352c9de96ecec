"""Core utilities for the request defense layer."""

from shield.app.core.config import settings
from shield.app.core.store import (
    CounterSnapshot,
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
    get_counter_store,
    read_and_count,
    reset_counter_store,
)

__all__ = [
    "settings",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "CounterSnapshot",
    "read_and_count",
    "get_counter_store",
    "reset_counter_store",
]
