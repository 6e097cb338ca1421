"""Persistence contract used by the provider.

The provider only needs a handful of document operations on three
collections: ``state`` (pending logins), ``contexttoken`` (current resource
path per context/user) and ``platform`` (registered platforms). Any backend
implementing ``Database`` can be plugged into ``Provider.setup``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

STATE_COLLECTION = "state"
CONTEXT_TOKEN_COLLECTION = "contexttoken"
PLATFORM_COLLECTION = "platform"


def matches(record: Mapping[str, Any], query: Mapping[str, Any] | None) -> bool:
    """Return True if every query field equals the record's field."""
    if not query:
        return True
    return all(key in record and record[key] == value for key, value in query.items())


class Database(ABC):
    """Document store operations required by the provider.

    ``take`` must be linearizable per matching record: when several callers
    race on the same query, at most one of them receives the record.
    """

    async def connect(self) -> None:
        """Open connections or load persisted data."""

    async def close(self) -> None:
        """Release resources."""

    @abstractmethod
    async def get(
        self, collection: str, query: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Return copies of all live records matching ``query``."""
        ...

    @abstractmethod
    async def insert(
        self, collection: str, record: Mapping[str, Any], ttl: float | None = None
    ) -> dict[str, Any]:
        """Store a record, expiring after ``ttl`` seconds when given."""
        ...

    @abstractmethod
    async def replace(
        self,
        collection: str,
        query: Mapping[str, Any],
        record: Mapping[str, Any],
        ttl: float | None = None,
    ) -> dict[str, Any]:
        """Delete records matching ``query`` and insert ``record``."""
        ...

    @abstractmethod
    async def modify(
        self,
        collection: str,
        query: Mapping[str, Any],
        changes: Mapping[str, Any],
        upsert: bool = False,
    ) -> int:
        """Apply ``changes`` to matching records. Returns the number changed."""
        ...

    @abstractmethod
    async def delete(self, collection: str, query: Mapping[str, Any]) -> int:
        """Delete matching records. Returns the number removed."""
        ...

    @abstractmethod
    async def take(
        self, collection: str, query: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Atomically read and delete the first matching record."""
        ...
