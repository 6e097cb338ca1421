"""Single-use store for in-flight login attempts.

A state record is written when a platform starts the OIDC login flow and is
consumed exactly once when the platform posts the id token back. Consumption
delegates to ``Database.take`` so that two racing completions with the same
state never both receive the record.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from ltigate.core.config import STATE_COOKIE_MAX_AGE
from ltigate.storage.base import STATE_COLLECTION, Database

logger = structlog.get_logger()


@dataclass(frozen=True)
class StateRecord:
    """A pending login: state token, issuer and queued query parameters."""

    state: str
    issuer: str | None = None
    query: dict[str, str] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "issuer": self.issuer,
            "query": dict(self.query),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StateRecord:
        return cls(
            state=data["state"],
            issuer=data.get("issuer"),
            query={str(k): str(v) for k, v in (data.get("query") or {}).items()},
            created_at=data.get("created_at", time.time()),
        )


class StateReplayStore:
    """put/consume facade over the ``state`` collection."""

    def __init__(self, database: Database, ttl: float = STATE_COOKIE_MAX_AGE) -> None:
        self._database = database
        self._ttl = ttl

    async def put(
        self,
        state: str,
        issuer: str | None,
        queued_query: Mapping[str, str],
        ttl: float | None = None,
    ) -> StateRecord:
        """Record a login attempt, replacing any previous record for ``state``."""
        record = StateRecord(state=state, issuer=issuer, query=dict(queued_query))
        await self._database.replace(
            STATE_COLLECTION,
            {"state": state},
            record.to_dict(),
            ttl=self._ttl if ttl is None else ttl,
        )
        return record

    async def consume(self, state: str) -> StateRecord | None:
        """Read and delete the record for ``state``. None if absent, expired or already used."""
        data = await self._database.take(STATE_COLLECTION, {"state": state})
        if data is None:
            logger.debug("State record not found", state=state)
            return None
        return StateRecord.from_dict(data)
