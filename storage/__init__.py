"""
Durable state storage
"""

from .state_store import StateStore, JsonFileStateStore, MemoryStateStore, StateStoreError

__all__ = ["StateStore", "JsonFileStateStore", "MemoryStateStore", "StateStoreError"]
