"""Persistence backends for ltigate.

Usage:
    from ltigate.storage import create_database

    database = create_database("json:///var/lib/ltigate/db.json")
    await database.connect()
"""

from __future__ import annotations

from ltigate.storage.base import (
    CONTEXT_TOKEN_COLLECTION,
    PLATFORM_COLLECTION,
    STATE_COLLECTION,
    Database,
    matches,
)
from ltigate.storage.json_file import JsonFileDatabase
from ltigate.storage.memory import MemoryDatabase, StoredRecord
from ltigate.storage.state import StateRecord, StateReplayStore


def create_database(url: str) -> Database:
    """Create a backend from a URL.

    Supported schemes:
        memory://            in-process store
        json:///path/db.json JSON file store
    """
    if url == "memory://" or url == "memory":
        return MemoryDatabase()
    if url.startswith("json://"):
        path = url[len("json://"):]
        if not path:
            raise ValueError("json:// database URL requires a file path")
        return JsonFileDatabase(path)
    raise ValueError(f"Unsupported database URL: {url}")


__all__ = [
    "CONTEXT_TOKEN_COLLECTION",
    "PLATFORM_COLLECTION",
    "STATE_COLLECTION",
    "Database",
    "JsonFileDatabase",
    "MemoryDatabase",
    "StateRecord",
    "StateReplayStore",
    "StoredRecord",
    "create_database",
    "matches",
]
