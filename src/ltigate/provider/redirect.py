"""Redirects that keep the launch session.

Once a request is authenticated, every redirect the application issues must
carry the current ltik or the next request will fail authentication.
``RedirectComposer.redirect`` appends it, merges caller supplied parameters
and, for deep linking navigation, records the new resource path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from aiohttp import web
from multidict import MultiDict
from yarl import URL

from ltigate.provider.launch_state import get_launch
from ltigate.storage.base import CONTEXT_TOKEN_COLLECTION, Database

logger = structlog.get_logger()

# "name:1234" with no scheme separator and no host: the digits belong to the path.
_HOSTLESS_PORT = re.compile(r"^(?P<path>[^/?#:]*:\d+)(?:\?(?P<query>[^#]*))?(?:#(?P<fragment>.*))?$")


def parse_target(target: str) -> URL:
    """Parse a redirect target without ever reading a path suffix as a port."""
    match = _HOSTLESS_PORT.match(target)
    if match:
        return URL.build(
            path=match["path"],
            query_string=match["query"] or "",
            fragment=match["fragment"] or "",
        )
    return URL(target)


def merge_query(
    base: Iterable[tuple[str, str]], *overrides: Mapping[str, Any]
) -> MultiDict[str]:
    """Merge query parameters; later mappings win. Values are stringified.

    Repeated keys in ``base`` are kept unless an override replaces the key.
    """
    merged: MultiDict[str] = MultiDict([(key, str(value)) for key, value in base])
    for override in overrides:
        for key, value in override.items():
            merged[key] = str(value)
    return merged


class RedirectComposer:
    """Build redirects for authenticated requests."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def redirect(
        self,
        request: web.Request,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        new_resource: bool = False,
    ) -> web.HTTPFound:
        """Redirect to ``path`` keeping the launch session.

        Args:
            request: The current request; its launch state supplies the ltik.
            path: Target path or absolute URL. Its own query parameters are kept.
            query: Extra parameters. Override ``path``'s, never the ltik.
            new_resource: Record ``path`` as the current resource of the launch context.

        Returns:
            A 302 response. Return or raise it from the handler.
        """
        launch = get_launch(request)
        if launch is None:
            logger.debug("No launch context, plain redirect", path=path)
            return web.HTTPFound(path)

        target = parse_target(path)
        merged = merge_query(target.query.items(), query or {}, {"ltik": launch.ltik})
        target = target.with_query(merged)

        if new_resource:
            context = launch.context
            logger.debug("Recording new resource path", context_id=context.context_id, path=path)
            await self._database.modify(
                CONTEXT_TOKEN_COLLECTION,
                {"context_id": context.context_id, "user": context.user},
                {"path": path},
                upsert=True,
            )

        return web.HTTPFound(str(target))
