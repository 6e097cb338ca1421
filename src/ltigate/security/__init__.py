"""Security helpers for ltigate.

This module provides:
- Signed cookies (HMAC-SHA256)
- Route whitelisting for unauthenticated access
"""

from ltigate.security.cookies import CookieSigner
from ltigate.security.whitelist import (
    ALL_METHODS,
    LiteralRoute,
    PatternRoute,
    WhitelistEntry,
    WhitelistMatcher,
    parse_entry,
)

__all__ = [
    "CookieSigner",
    "ALL_METHODS",
    "LiteralRoute",
    "PatternRoute",
    "WhitelistEntry",
    "WhitelistMatcher",
    "parse_entry",
]
