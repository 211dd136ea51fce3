"""State Store capability."""

from .models import StateRecord
from .store import StateStore, InMemoryStateStore, JsonFileStateStore

__all__ = ["StateRecord", "StateStore", "InMemoryStateStore", "JsonFileStateStore"]
