"""LTI launch provider facade.

Usage:
    provider = Provider()
    app = provider.setup(
        ProviderConfig(encryption_key="secret", database_url="memory://"),
        validator=MyValidator(),
    )

    async def on_connect(context, request, handler):
        return web.Response(text=f"Hello {context.user}")

    provider.on_connect(on_connect)
    provider.whitelist("/health", {"route": re.compile(r"^/public/"), "method": "GET"})
    await provider.deploy(port=3000)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog
from aiohttp import web

from ltigate.core.config import ProviderConfig
from ltigate.core.exceptions import ConfigurationError
from ltigate.launch.validators import LaunchValidator
from ltigate.platforms.platform import Platform, PlatformRegistry
from ltigate.provider.callbacks import (
    CallbackDispatcher,
    InvalidTokenCallback,
    LaunchCallback,
    PlatformCallback,
    RegistrationCallback,
)
from ltigate.provider.gatekeeper import AuthGatekeeper
from ltigate.provider.login import LoginFlowInitiator
from ltigate.provider.redirect import RedirectComposer
from ltigate.provider.reserved import (
    DynamicRegistrar,
    KeysetProvider,
    RegistrationOptions,
    create_keyset_handler,
)
from ltigate.security.cookies import CookieSigner
from ltigate.security.whitelist import WhitelistEntry, WhitelistMatcher
from ltigate.storage import Database, StateReplayStore, create_database

logger = structlog.get_logger()


async def _no_continuation(request: web.Request) -> web.StreamResponse:
    raise web.HTTPNotFound()


class Provider:
    """Wires configuration, storage, validators and hooks into an aiohttp application."""

    def __init__(self) -> None:
        self._config: ProviderConfig | None = None
        self._database: Database | None = None
        self._platforms: PlatformRegistry | None = None
        self._callbacks: CallbackDispatcher | None = None
        self._composer: RedirectComposer | None = None
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._whitelist = WhitelistMatcher()

    def setup(
        self,
        config: ProviderConfig,
        database: Database | None = None,
        validator: LaunchValidator | None = None,
        *,
        keyset: KeysetProvider | None = None,
        registrar: DynamicRegistrar | None = None,
    ) -> web.Application:
        """Build the application. May only be called once.

        A ``registrar`` enables dynamic registration and requires
        ``config.dynreg``; it receives that metadata with the provider routes.

        Raises:
            ConfigurationError: invalid configuration or repeated setup.
        """
        if self._app is not None:
            raise ConfigurationError("PROVIDER_ALREADY_SETUP")
        config.validate_setup()
        if database is None:
            if not config.database_url:
                raise ConfigurationError("MISSING_DATABASE_CONFIGURATION")
            database = create_database(config.database_url)
        if validator is None:
            raise ConfigurationError("MISSING_VALIDATOR")
        registration_options = None
        if registrar is not None:
            registration_options = RegistrationOptions.from_config(config)
        elif config.dynreg is not None:
            logger.warning(
                "Dynamic registration configured without a registrar, route disabled",
                dynreg_route=config.dynreg_route,
            )

        signer = CookieSigner(config.signing_key)
        states = StateReplayStore(database)
        self._config = config
        self._database = database
        self._platforms = PlatformRegistry(database)
        self._callbacks = CallbackDispatcher(registrar, registration_options)
        self._composer = RedirectComposer(database)

        gatekeeper = AuthGatekeeper(
            config, validator, states, signer, self._callbacks, self._whitelist
        )
        login = LoginFlowInitiator(
            config, self._platforms, validator, states, signer, self._callbacks
        )

        app = web.Application(middlewares=[gatekeeper.middleware])
        app.router.add_route("*", config.login_route, login.handle)
        app.router.add_get(config.keyset_route, create_keyset_handler(keyset))
        app.router.add_route("*", config.dynreg_route, self._handle_dynamic_registration)
        self._app = app

        logger.debug(
            "Provider configured",
            app_route=config.app_route,
            login_route=config.login_route,
            forward_mode=config.forward_mode,
        )
        return app

    def _require_setup(self) -> None:
        if self._app is None:
            raise ConfigurationError("PROVIDER_NOT_SETUP")

    async def _handle_dynamic_registration(self, request: web.Request) -> web.StreamResponse:
        return await self._callbacks.dynamic_registration(request, _no_continuation)

    @property
    def app(self) -> web.Application:
        self._require_setup()
        return self._app

    @property
    def config(self) -> ProviderConfig:
        self._require_setup()
        return self._config

    @property
    def database(self) -> Database:
        self._require_setup()
        return self._database

    @property
    def platforms(self) -> PlatformRegistry:
        self._require_setup()
        return self._platforms

    async def deploy(
        self, port: int = 3000, serverless: bool = False, host: str = "0.0.0.0"
    ) -> web.Application:
        """Connect storage, freeze hooks and start serving.

        With ``serverless=True`` no listener is started; the caller mounts
        ``provider.app`` itself.
        """
        self._require_setup()
        await self._database.connect()
        self._callbacks.freeze()

        if self._config.dev_mode:
            logger.warning(
                "Development mode enabled: state and session cookies are not required. "
                "Never use it in production."
            )

        if serverless:
            logger.info("Provider started in serverless mode")
            return self._app

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info("Provider started", host=host, port=port)
        return self._app

    async def close(self) -> None:
        """Stop serving and close the database."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        if self._database:
            await self._database.close()
        logger.info("Provider stopped")

    # Hooks

    def _set_callback(self, name: str, callback: Callable[..., Awaitable[web.StreamResponse]]) -> None:
        self._require_setup()
        self._callbacks.set(name, callback)

    def on_connect(self, callback: LaunchCallback) -> None:
        """Called with (context, request, handler) after a successful launch on the app route."""
        self._set_callback("connect", callback)

    def on_deep_linking(self, callback: LaunchCallback) -> None:
        self._set_callback("deep_linking", callback)

    def on_dynamic_registration(self, callback: RegistrationCallback) -> None:
        self._set_callback("dynamic_registration", callback)

    def on_invalid_token(self, callback: InvalidTokenCallback) -> None:
        self._set_callback("invalid_token", callback)

    def on_unregistered_platform(self, callback: PlatformCallback) -> None:
        self._set_callback("unregistered_platform", callback)

    def on_inactive_platform(self, callback: PlatformCallback) -> None:
        self._set_callback("inactive_platform", callback)

    # Routes

    def app_route(self) -> str:
        return self.config.app_route

    def login_route(self) -> str:
        return self.config.login_route

    def keyset_route(self) -> str:
        return self.config.keyset_route

    def dynreg_route(self) -> str:
        return self.config.dynreg_route

    def whitelist(self, *routes: Any) -> list[WhitelistEntry]:
        """Let routes through unauthenticated when no valid launch is present."""
        return self._whitelist.add(*routes)

    def is_whitelisted(self, path: str, method: str) -> bool:
        return self._whitelist.test(path, method)

    async def redirect(
        self,
        request: web.Request,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        new_resource: bool = False,
    ) -> web.HTTPFound:
        self._require_setup()
        return await self._composer.redirect(
            request, path, query=query, new_resource=new_resource
        )

    # Platforms

    async def register_platform(self, platform: Platform | Mapping[str, Any]) -> Platform:
        return await self.platforms.register_platform(platform)

    async def get_platform(
        self, url: str, client_id: str | None = None
    ) -> Platform | list[Platform] | None:
        return await self.platforms.get_platform(url, client_id)

    async def get_platform_by_id(self, platform_id: str) -> Platform | None:
        return await self.platforms.get_platform_by_id(platform_id)

    async def update_platform_by_id(
        self, platform_id: str, changes: Mapping[str, Any]
    ) -> Platform | None:
        return await self.platforms.update_platform_by_id(platform_id, changes)

    async def delete_platform(self, url: str, client_id: str) -> bool:
        return await self.platforms.delete_platform(url, client_id)

    async def delete_platform_by_id(self, platform_id: str) -> bool:
        return await self.platforms.delete_platform_by_id(platform_id)

    async def get_all_platforms(self) -> list[Platform]:
        return await self.platforms.get_all_platforms()
