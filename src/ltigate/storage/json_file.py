"""JSON file-backed document store.

Extends the in-memory store by writing every mutation through to a JSON file,
suitable for small self-hosted deployments.

Storage file format:
    {
        "collections": {
            "platform": [
                {"data": {"url": "https://lms.example.com", ...}, "expires_at": null}
            ],
            "state": [
                {"data": {"state": "...", "query": {...}}, "expires_at": 1700000060.0}
            ]
        }
    }
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from ltigate.storage.memory import MemoryDatabase, StoredRecord


class JsonFileDatabase(MemoryDatabase):
    """``MemoryDatabase`` persisted to a JSON file.

    Loading happens in ``connect()``; writes happen while the store lock is
    held, so the file always reflects a consistent snapshot.
    """

    def __init__(self, storage_path: str | Path, cleanup_interval: float = 300.0) -> None:
        super().__init__(cleanup_interval=cleanup_interval)
        self.storage_path = Path(storage_path)

    async def connect(self) -> None:
        async with self._lock:
            self._collections = await self._load()
        await super().connect()

    async def _load(self) -> dict[str, list[StoredRecord]]:
        if not self.storage_path.exists():
            return {}
        try:
            content = await asyncio.to_thread(self.storage_path.read_text, encoding="utf-8")
            data = json.loads(content)
            return {
                name: [
                    StoredRecord(data=item["data"], expires_at=item.get("expires_at"))
                    for item in items
                ]
                for name, items in data.get("collections", {}).items()
            }
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"Corrupt database file {self.storage_path}: {e}") from e

    async def _persist(self) -> None:
        data = {
            "collections": {
                name: [
                    {"data": record.data, "expires_at": record.expires_at}
                    for record in records
                ]
                for name, records in self._collections.items()
            }
        }
        content = json.dumps(data, indent=2, default=str)
        await asyncio.to_thread(self.storage_path.write_text, content, encoding="utf-8")
