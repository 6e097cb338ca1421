"""Signed cookie helpers.

Cookie values are signed with HMAC-SHA256 keyed by the provider's encryption
key and serialized as ``s:<value>.<signature>``, then percent-encoded so the
result only contains cookie-safe characters.

Usage:
    signer = CookieSigner("encryption-key")
    response.set_cookie("state" + state, signer.sign(issuer), max_age=60)

    cookies = signer.signed_cookies(request.cookies)
    issuer = cookies.get("state" + state)
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Mapping
from urllib.parse import quote, unquote

SIGNED_PREFIX = "s:"


class CookieSigner:
    """Sign and verify cookie values with a shared secret."""

    def __init__(self, secret: str | bytes) -> None:
        if isinstance(secret, str):
            secret = secret.encode()
        if not secret:
            raise ValueError("Cookie signing requires a non-empty secret")
        self._secret = secret

    def _signature(self, value: str) -> str:
        digest = hmac.new(self._secret, value.encode(), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).decode().rstrip("=")

    def sign(self, value: str) -> str:
        """Return the serialized signed form of ``value``."""
        return quote(f"{SIGNED_PREFIX}{value}.{self._signature(value)}", safe="")

    def unsign(self, raw: str) -> str | None:
        """Return the original value, or None if the signature does not verify."""
        decoded = unquote(raw)
        if not decoded.startswith(SIGNED_PREFIX):
            return None
        body = decoded[len(SIGNED_PREFIX):]
        value, sep, signature = body.rpartition(".")
        if not sep:
            return None
        if not hmac.compare_digest(signature, self._signature(value)):
            return None
        return value

    def signed_cookies(self, cookies: Mapping[str, str]) -> dict[str, str]:
        """Verified subset of a request's cookies. Unsigned or forged values are dropped."""
        result: dict[str, str] = {}
        for name, raw in cookies.items():
            value = self.unsign(raw)
            if value is not None:
                result[name] = value
        return result
