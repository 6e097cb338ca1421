"""Contracts toward the launch validators.

Cryptographic verification of the platform-signed id token and minting or
verifying the ltik live outside this package. The gatekeeper talks to them
through ``LaunchValidator``:

1. ``launch()`` verifies an id token posted back by the platform and returns
   the LaunchContext, a freshly minted ltik and the platform session cookie name.
2. ``access()`` verifies an ltik on later requests and returns the
   LaunchContext without touching the original id token.
3. ``login()`` builds the OIDC authorization redirect for a login request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from ltigate.core.config import DEEP_LINKING_MESSAGE_TYPE
from ltigate.launch.login_request import LoginParams, LoginRedirect, build_login_redirect

if TYPE_CHECKING:
    from ltigate.platforms.platform import Platform


@dataclass(frozen=True)
class LaunchContext:
    """Verified claims exposed to the application after authentication."""

    user: str
    message_type: str = "LtiResourceLinkRequest"
    context_id: str | None = None
    platform_context: dict[str, Any] = field(default_factory=dict)
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_deep_linking(self) -> bool:
        return self.message_type == DEEP_LINKING_MESSAGE_TYPE


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of a successful id token validation."""

    context: LaunchContext
    ltik: str
    platform_code: str
    """Name of the platform-scoped session cookie."""


@dataclass(frozen=True)
class IdTokenValidationParams:
    state: str | None
    state_cookie_value: str | None
    max_age: int | None
    dev_mode: bool
    signing_key: str = field(repr=False)
    path: str = "/"


@dataclass(frozen=True)
class LtikValidationParams:
    cookies: Mapping[str, str]
    dev_mode: bool
    forward_mode: bool
    signing_key: str = field(repr=False)


class LaunchValidator(ABC):
    """Base class for launch validators."""

    @abstractmethod
    async def launch(self, id_token: str, params: IdTokenValidationParams) -> LaunchResult:
        """
        Validate an id token from the OIDC redirect-back.

        Raises:
            IdentityTokenInvalid: signature, claim, nonce or state failure.
        """
        ...

    @abstractmethod
    async def access(self, ltik: str, params: LtikValidationParams) -> LaunchContext:
        """
        Validate an ltik and restore its LaunchContext.

        Raises:
            SessionTokenInvalid: bad signature, expiry or cookie mismatch.
        """
        ...

    async def login(self, platform: Platform, params: LoginParams, state: str) -> LoginRedirect:
        """Build the authorization redirect for a login request."""
        return build_login_redirect(platform, params, state)
