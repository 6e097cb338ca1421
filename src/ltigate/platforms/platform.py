"""Registered LTI platforms.

A platform is identified by its issuer URL plus the client id it generated
for this tool. The registry reads and writes the ``platform`` collection of
the configured ``Database``; the gatekeeper only ever reads it.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

import structlog

from ltigate.storage.base import PLATFORM_COLLECTION, Database

logger = structlog.get_logger()


class AuthMethod(str, Enum):
    """How the platform's message signatures are verified."""

    RSA_KEY = "RSA_KEY"
    JWK_KEY = "JWK_KEY"
    JWK_SET = "JWK_SET"


@dataclass(frozen=True)
class AuthConfig:
    method: AuthMethod
    key: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthConfig:
        if not data.get("method") or not data.get("key"):
            raise ValueError("auth_config requires method and key")
        return cls(method=AuthMethod(data["method"]), key=data["key"])


@dataclass(frozen=True)
class Platform:
    """A platform registration."""

    url: str
    client_id: str
    name: str
    authentication_endpoint: str
    accesstoken_endpoint: str
    auth_config: AuthConfig
    active: bool = True
    id: str = field(default_factory=lambda: secrets.token_hex(16))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["auth_config"] = {
            "method": self.auth_config.method.value,
            "key": self.auth_config.key,
        }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Platform:
        auth_config = data.get("auth_config")
        if isinstance(auth_config, Mapping):
            auth_config = AuthConfig.from_dict(auth_config)
        missing = [
            key
            for key in ("url", "client_id", "name", "authentication_endpoint", "accesstoken_endpoint")
            if not data.get(key)
        ]
        if missing or auth_config is None:
            raise ValueError(f"MISSING_PLATFORM_PARAMETERS: {', '.join(missing) or 'auth_config'}")
        kwargs: dict[str, Any] = {
            "url": data["url"],
            "client_id": data["client_id"],
            "name": data["name"],
            "authentication_endpoint": data["authentication_endpoint"],
            "accesstoken_endpoint": data["accesstoken_endpoint"],
            "auth_config": auth_config,
            "active": data.get("active", True),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


class PlatformRegistry:
    """CRUD operations on registered platforms."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def register_platform(self, platform: Platform | Mapping[str, Any]) -> Platform:
        """Register a platform, updating the existing (url, client_id) entry if any.

        An update keeps the stored activation state unless the mapping names
        ``active``; a ``Platform`` instance always carries its own flag.
        """
        keep_active = not isinstance(platform, Platform) and "active" not in platform
        if not isinstance(platform, Platform):
            platform = Platform.from_dict(platform)

        existing = await self.get_platform(platform.url, platform.client_id)
        if existing is not None:
            platform = replace(
                platform,
                id=existing.id,
                active=existing.active if keep_active else platform.active,
            )
            logger.debug("Updating registered platform", url=platform.url, client_id=platform.client_id)
        else:
            logger.info("Registering platform", url=platform.url, client_id=platform.client_id)

        await self._database.replace(
            PLATFORM_COLLECTION,
            {"url": platform.url, "client_id": platform.client_id},
            platform.to_dict(),
        )
        return platform

    async def get_platform(
        self, url: str, client_id: str | None = None
    ) -> Platform | list[Platform] | None:
        """Look up platforms by issuer.

        With a client id, returns the single matching platform or None.
        Without one, returns every platform registered for the issuer.
        """
        query: dict[str, Any] = {"url": url}
        if client_id is not None:
            query["client_id"] = client_id
        records = await self._database.get(PLATFORM_COLLECTION, query)
        platforms = [Platform.from_dict(record) for record in records]
        if client_id is not None:
            return platforms[0] if platforms else None
        return platforms

    async def get_platform_by_id(self, platform_id: str) -> Platform | None:
        records = await self._database.get(PLATFORM_COLLECTION, {"id": platform_id})
        return Platform.from_dict(records[0]) if records else None

    async def update_platform_by_id(
        self, platform_id: str, changes: Mapping[str, Any]
    ) -> Platform | None:
        """Apply partial changes. Returns the updated platform or None if unknown."""
        current = await self.get_platform_by_id(platform_id)
        if current is None:
            return None
        data = current.to_dict()
        data.update({key: value for key, value in changes.items() if key != "id"})
        updated = Platform.from_dict(data)
        await self._database.replace(PLATFORM_COLLECTION, {"id": platform_id}, updated.to_dict())
        return updated

    async def delete_platform(self, url: str, client_id: str) -> bool:
        removed = await self._database.delete(
            PLATFORM_COLLECTION, {"url": url, "client_id": client_id}
        )
        return removed > 0

    async def delete_platform_by_id(self, platform_id: str) -> bool:
        removed = await self._database.delete(PLATFORM_COLLECTION, {"id": platform_id})
        return removed > 0

    async def get_all_platforms(self) -> list[Platform]:
        records = await self._database.get(PLATFORM_COLLECTION)
        return [Platform.from_dict(record) for record in records]

    async def is_active(self, platform: Platform) -> bool:
        """Check the stored activation flag, which may have changed since lookup."""
        current = await self.get_platform_by_id(platform.id)
        if current is None:
            return False
        return current.active
