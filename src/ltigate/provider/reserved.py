"""Collaborators behind the reserved keyset and dynamic registration routes.

Both routes bypass the gatekeeper. Publishing the tool's public keys and
negotiating dynamic registration are delegated to these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog
from aiohttp import web

from ltigate.core.config import DynRegConfig, ProviderConfig
from ltigate.core.exceptions import ConfigurationError
from ltigate.provider.launch_state import error_body

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegistrationOptions:
    """Tool metadata and provider routes offered to a registering platform."""

    tool: DynRegConfig
    app_route: str
    login_route: str
    keyset_route: str

    @classmethod
    def from_config(cls, config: ProviderConfig) -> RegistrationOptions:
        if config.dynreg is None:
            raise ConfigurationError("MISSING_DYNREG_CONFIGURATION")
        return cls(
            tool=config.dynreg,
            app_route=config.app_route,
            login_route=config.login_route,
            keyset_route=config.keyset_route,
        )

    def _absolute(self, route: str) -> str:
        return self.tool.url.rstrip("/") + route

    @property
    def login_uri(self) -> str:
        return self._absolute(self.login_route)

    @property
    def jwks_uri(self) -> str:
        return self._absolute(self.keyset_route)

    @property
    def redirect_uris(self) -> list[str]:
        """The app route first, then any extra configured URIs."""
        uris = [self._absolute(self.app_route)]
        uris.extend(uri for uri in self.tool.redirect_uris if uri not in uris)
        return uris


class KeysetProvider(ABC):
    """Builds the public JWK set served on the keyset route."""

    @abstractmethod
    async def build(self) -> dict[str, Any]:
        ...


class DynamicRegistrar(ABC):
    """Performs LTI dynamic registration against a platform."""

    @abstractmethod
    async def register(
        self,
        openid_configuration: str,
        registration_token: str | None,
        options: RegistrationOptions,
    ) -> str:
        """
        Register the tool with the platform described by ``openid_configuration``.

        ``options`` carries the configured tool metadata (name, logo,
        description, custom parameters, ``auto_activate``) and the absolute
        login, keyset and redirect URIs to advertise.

        Returns:
            HTML message closing the registration window.

        Raises:
            PlatformAlreadyRegistered: if the platform is already known.
        """
        ...


def create_keyset_handler(keyset: KeysetProvider | None):
    """Return the GET handler for the keyset route."""

    async def handle_keyset(request: web.Request) -> web.StreamResponse:
        if keyset is None:
            return web.json_response(
                error_body(500, "Internal Server Error", message="Keyset provider not configured."),
                status=500,
            )
        try:
            return web.json_response(await keyset.build())
        except Exception as e:
            logger.error("Keyset build failed", error=str(e), error_type=type(e).__name__)
            return web.json_response(
                error_body(500, "Internal Server Error", message=str(e)),
                status=500,
            )

    return handle_keyset
