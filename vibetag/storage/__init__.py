# Path: vibetag/storage/__init__.py
# Purpose: Package initializer for tag and hub statistics storage.
# Layer: vibetag/storage.
# Details: Exposes storage protocols together with in-memory and SQLite implementations.

from .base import HubStatsStore, TagStore
from .memory import InMemoryHubStatsStore, InMemoryTagStore
from .sqlite_store import SqliteDatabase, SqliteHubStatsStore, SqliteTagStore

__all__ = [
    "HubStatsStore",
    "TagStore",
    "InMemoryHubStatsStore",
    "InMemoryTagStore",
    "SqliteDatabase",
    "SqliteHubStatsStore",
    "SqliteTagStore",
]
