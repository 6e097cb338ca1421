"""Error taxonomy for ltigate.

Every failure surfaced by the provider carries a stable ``code`` string, the
HTTP status the transport should use, and optional structured ``details``.
Per-request errors are caught at the gatekeeper boundary and turned into
callback invocations; ``ConfigurationError`` is raised at setup time and is
fatal.
"""

from __future__ import annotations

from typing import Any


class LtiError(Exception):
    """Base ltigate exception with a stable error code."""

    code = "LTI_ERROR"
    http_status = 500

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.code
        self.details = details
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "http_status": self.http_status,
        }
        if self.details:
            data["details"] = self.details
        return data


class ConfigurationError(LtiError):
    """Invalid or repeated setup. Always fatal."""

    code = "CONFIGURATION_ERROR"


class MissingLoginParameters(LtiError):
    code = "MISSING_LOGIN_PARAMETERS"
    http_status = 400


class UnregisteredPlatform(LtiError):
    code = "UNREGISTERED_PLATFORM"
    http_status = 400


class AmbiguousPlatform(LtiError):
    """Several platforms share an issuer and no client id was supplied."""

    code = "AMBIGUOUS_PLATFORM"
    http_status = 400


class PlatformNotActivated(LtiError):
    code = "PLATFORM_NOT_ACTIVATED"
    http_status = 401


class PlatformAlreadyRegistered(LtiError):
    code = "PLATFORM_ALREADY_REGISTERED"
    http_status = 403


class MissingCredential(LtiError):
    """Neither an ltik nor an id token was found on the request."""

    code = "NO_LTIK_OR_IDTOKEN_FOUND"
    http_status = 401


class StateNotFound(LtiError):
    """No stored state record matched: unknown, expired or already consumed."""

    code = "STATE_NOT_FOUND"
    http_status = 401


class IdentityTokenInvalid(LtiError):
    code = "INVALID_IDTOKEN"
    http_status = 401


class SessionTokenInvalid(LtiError):
    code = "INVALID_LTIK"
    http_status = 401


def format_error_for_user(error: BaseException) -> str:
    """Render an error for console output."""
    if isinstance(error, LtiError):
        if error.message and error.message != error.code:
            return f"{error.code}: {error.message}"
        return error.code
    return f"{type(error).__name__}: {error}"
