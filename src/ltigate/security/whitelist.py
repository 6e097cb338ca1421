"""Route whitelist for bypassing launch authentication.

Whitelisted routes are still reached when ltik or id token validation fails,
but no LaunchContext is attached to the request.

Entry Types:
- LiteralRoute: Match the exact request path
- PatternRoute: Match by regex search on the request path

Entries are evaluated in insertion order and the first matching entry decides.
Two entries for the same route with different method scopes therefore resolve
to whichever was added first.

Example:
    matcher = WhitelistMatcher()
    matcher.add("/health", re.compile(r"^/public/"), ("/reports", "GET"))
    matcher.test("/reports", "get")   # True
    matcher.test("/reports", "POST")  # False
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from ltigate.core.exceptions import ConfigurationError

ALL_METHODS = "ALL"

WRONG_FORMAT = (
    'WRONG_FORMAT. Details: Expects string ("/route"), pattern '
    '(re.compile("^/route")) or pair ({"route": "/route", "method": "POST"})'
)


@dataclass(frozen=True)
class LiteralRoute:
    """Exact path match."""

    route: str
    method: str = ALL_METHODS

    def matches(self, path: str) -> bool:
        return path == self.route


@dataclass(frozen=True)
class PatternRoute:
    """Regex path match."""

    pattern: re.Pattern[str]
    method: str = ALL_METHODS

    def matches(self, path: str) -> bool:
        return self.pattern.search(path) is not None


WhitelistEntry = Union[LiteralRoute, PatternRoute]


def _make_entry(route: Any, method: str = ALL_METHODS) -> WhitelistEntry:
    method = method.upper()
    if isinstance(route, re.Pattern):
        return PatternRoute(pattern=route, method=method)
    if isinstance(route, str) and route:
        return LiteralRoute(route=route, method=method)
    raise ConfigurationError(WRONG_FORMAT)


def parse_entry(entry: Any) -> WhitelistEntry:
    """Normalize a user supplied whitelist entry."""
    if isinstance(entry, (LiteralRoute, PatternRoute)):
        return entry
    if isinstance(entry, (str, re.Pattern)):
        return _make_entry(entry)
    if isinstance(entry, Mapping):
        route = entry.get("route")
        method = entry.get("method")
        if not route or not method or not isinstance(method, str):
            raise ConfigurationError(WRONG_FORMAT)
        return _make_entry(route, method)
    if isinstance(entry, tuple) and len(entry) == 2:
        route, method = entry
        if not route or not method or not isinstance(method, str):
            raise ConfigurationError(WRONG_FORMAT)
        return _make_entry(route, method)
    raise ConfigurationError(WRONG_FORMAT)


class WhitelistMatcher:
    """Ordered, append-only whitelist of route/method pairs."""

    def __init__(self) -> None:
        self._entries: list[WhitelistEntry] = []

    @property
    def entries(self) -> list[WhitelistEntry]:
        return list(self._entries)

    def add(self, *entries: Any) -> list[WhitelistEntry]:
        """Append entries and return the full whitelist.

        All entries are validated before any is appended.
        """
        parsed = [parse_entry(entry) for entry in entries]
        self._entries.extend(parsed)
        return self.entries

    def test(self, path: str, method: str) -> bool:
        """Check whether a request bypasses authentication."""
        if not path or not method:
            raise ValueError("MISSING_ARGUMENT")
        for entry in self._entries:
            if entry.matches(path):
                return entry.method == ALL_METHODS or entry.method == method.upper()
        return False
