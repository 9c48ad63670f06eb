"""SQLite-backed persistence for users, courses, progress, and the forum."""

from .store import LuminaStore, StoreError

__all__ = ["LuminaStore", "StoreError"]
