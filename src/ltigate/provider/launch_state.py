"""Per-request launch data attached by the gatekeeper.

The gatekeeper stores a ``LaunchState`` on the aiohttp request under
``LAUNCH_KEY``. Handlers read it with ``get_launch(request)``; whitelisted
requests that failed authentication have none.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from ltigate.launch.validators import LaunchContext

LAUNCH_KEY = "ltigate.launch"


@dataclass
class LaunchState:
    context: LaunchContext
    ltik: str
    query: dict[str, str] = field(default_factory=dict)
    """Queued login parameters replayed on this request (forward mode)."""


def get_launch(request: web.Request) -> LaunchState | None:
    return request.get(LAUNCH_KEY)


def set_launch(request: web.Request, launch: LaunchState) -> None:
    request[LAUNCH_KEY] = launch


def error_body(status: int, error: str, **details: Any) -> dict[str, Any]:
    """JSON error payload shared by every built-in response."""
    return {"status": status, "error": error, "details": details}
