"""In-memory document store with expiration cleanup.

Records are kept per collection in insertion order. Expired records are
dropped when accessed and by an optional background cleanup task.

All operations run under a single asyncio lock, which makes ``take``
linearizable: of several concurrent consumers only one receives the record.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from ltigate.storage.base import Database, matches

logger = structlog.get_logger()


@dataclass
class StoredRecord:
    """A record plus its absolute expiry time (epoch seconds)."""

    data: dict[str, Any]
    expires_at: float | None = None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.time() > self.expires_at


class MemoryDatabase(Database):
    """Process-local ``Database`` implementation.

    Suitable for development, tests and single-process deployments.
    """

    def __init__(self, cleanup_interval: float = 300.0) -> None:
        """Initialize the store.

        Args:
            cleanup_interval: How often to purge expired records in seconds (default 5 min)
        """
        self._collections: dict[str, list[StoredRecord]] = {}
        self._cleanup_interval = cleanup_interval
        self._cleanup_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def close(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _persist(self) -> None:
        """Hook for subclasses that write through to durable storage."""

    def _live(self, collection: str) -> list[StoredRecord]:
        records = self._collections.setdefault(collection, [])
        if any(record.is_expired for record in records):
            records[:] = [record for record in records if not record.is_expired]
        return records

    @staticmethod
    def _expiry(ttl: float | None) -> float | None:
        return time.time() + ttl if ttl is not None else None

    async def get(
        self, collection: str, query: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                dict(record.data)
                for record in self._live(collection)
                if matches(record.data, query)
            ]

    async def insert(
        self, collection: str, record: Mapping[str, Any], ttl: float | None = None
    ) -> dict[str, Any]:
        stored = StoredRecord(data=dict(record), expires_at=self._expiry(ttl))
        async with self._lock:
            self._live(collection).append(stored)
            await self._persist()
        return dict(stored.data)

    async def replace(
        self,
        collection: str,
        query: Mapping[str, Any],
        record: Mapping[str, Any],
        ttl: float | None = None,
    ) -> dict[str, Any]:
        stored = StoredRecord(data=dict(record), expires_at=self._expiry(ttl))
        async with self._lock:
            records = self._live(collection)
            records[:] = [r for r in records if not matches(r.data, query)]
            records.append(stored)
            await self._persist()
        return dict(stored.data)

    async def modify(
        self,
        collection: str,
        query: Mapping[str, Any],
        changes: Mapping[str, Any],
        upsert: bool = False,
    ) -> int:
        async with self._lock:
            records = self._live(collection)
            changed = 0
            for record in records:
                if matches(record.data, query):
                    record.data.update(changes)
                    changed += 1
            if not changed and upsert:
                records.append(StoredRecord(data={**query, **changes}))
                changed = 1
            if changed:
                await self._persist()
            return changed

    async def delete(self, collection: str, query: Mapping[str, Any]) -> int:
        async with self._lock:
            records = self._live(collection)
            before = len(records)
            records[:] = [r for r in records if not matches(r.data, query)]
            removed = before - len(records)
            if removed:
                await self._persist()
            return removed

    async def take(
        self, collection: str, query: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        async with self._lock:
            records = self._live(collection)
            for index, record in enumerate(records):
                if matches(record.data, query):
                    del records[index]
                    await self._persist()
                    return dict(record.data)
            return None

    async def count(self, collection: str) -> int:
        """Number of live records in a collection."""
        async with self._lock:
            return len(self._live(collection))

    async def _cleanup_loop(self) -> None:
        """Background task to remove expired records."""
        while True:
            try:
                await asyncio.sleep(self._cleanup_interval)
                removed = await self._cleanup_expired()
                if removed:
                    logger.debug("Expired records removed", count=removed)
            except asyncio.CancelledError:
                break

    async def _cleanup_expired(self) -> int:
        """Remove all expired records.

        Returns:
            Number of records removed
        """
        removed = 0
        async with self._lock:
            for records in self._collections.values():
                before = len(records)
                records[:] = [record for record in records if not record.is_expired]
                removed += before - len(records)
            if removed:
                await self._persist()
        return removed
