"""Replaceable extension hooks.

The provider invokes one hook per outcome:

    connect                 successful launch (continue by default)
    deep_linking            successful deep linking launch (continue by default)
    dynamic_registration    request on the dynamic registration route
    invalid_token           ltik / id token validation failed (401)
    unregistered_platform   login from an unknown platform (400)
    inactive_platform       login from a platform not yet activated (401)

Each hook can be replaced once before the provider starts. ``freeze()`` is
called at deploy time; later replacements raise ConfigurationError.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from aiohttp import web

from ltigate.core.exceptions import ConfigurationError, PlatformAlreadyRegistered
from ltigate.launch.validators import LaunchContext
from ltigate.provider.launch_state import error_body
from ltigate.provider.reserved import DynamicRegistrar, RegistrationOptions

logger = structlog.get_logger()

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
LaunchCallback = Callable[[LaunchContext, web.Request, Handler], Awaitable[web.StreamResponse]]
RegistrationCallback = Callable[[web.Request, Handler], Awaitable[web.StreamResponse]]
InvalidTokenCallback = Callable[[web.Request, dict[str, Any]], Awaitable[web.StreamResponse]]
PlatformCallback = Callable[[web.Request], Awaitable[web.StreamResponse]]

HOOK_NAMES = (
    "connect",
    "deep_linking",
    "dynamic_registration",
    "invalid_token",
    "unregistered_platform",
    "inactive_platform",
)


async def default_connect(
    context: LaunchContext, request: web.Request, handler: Handler
) -> web.StreamResponse:
    return await handler(request)


async def default_deep_linking(
    context: LaunchContext, request: web.Request, handler: Handler
) -> web.StreamResponse:
    return await handler(request)


async def default_invalid_token(
    request: web.Request, error: dict[str, Any]
) -> web.StreamResponse:
    return web.json_response(error, status=401)


async def default_unregistered_platform(request: web.Request) -> web.StreamResponse:
    return web.json_response(
        error_body(400, "Bad Request", message="UNREGISTERED_PLATFORM"), status=400
    )


async def default_inactive_platform(request: web.Request) -> web.StreamResponse:
    return web.json_response(
        error_body(401, "Unauthorized", message="PLATFORM_NOT_ACTIVATED"), status=401
    )


def make_default_dynamic_registration(
    registrar: DynamicRegistrar | None, options: RegistrationOptions | None
) -> RegistrationCallback:
    async def default_dynamic_registration(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if registrar is None or options is None:
            return web.json_response(
                error_body(403, "Forbidden", message="Dynamic registration is disabled."),
                status=403,
            )
        openid_configuration = request.query.get("openid_configuration")
        if not openid_configuration:
            return web.json_response(
                error_body(400, "Bad Request", message='Missing parameter: "openid_configuration".'),
                status=400,
            )
        try:
            message = await registrar.register(
                openid_configuration, request.query.get("registration_token"), options
            )
        except PlatformAlreadyRegistered:
            return web.json_response(
                error_body(403, "Forbidden", message="Platform already registered."),
                status=403,
            )
        except Exception as e:
            logger.error("Dynamic registration failed", error=str(e), error_type=type(e).__name__)
            return web.json_response(
                error_body(500, "Internal Server Error", message=str(e)),
                status=500,
            )
        return web.Response(text=message, content_type="text/html")

    return default_dynamic_registration


class CallbackDispatcher:
    """Dispatch table of named hooks with safe defaults."""

    def __init__(
        self,
        registrar: DynamicRegistrar | None = None,
        registration_options: RegistrationOptions | None = None,
    ) -> None:
        self._hooks: dict[str, Callable[..., Awaitable[web.StreamResponse]]] = {
            "connect": default_connect,
            "deep_linking": default_deep_linking,
            "dynamic_registration": make_default_dynamic_registration(
                registrar, registration_options
            ),
            "invalid_token": default_invalid_token,
            "unregistered_platform": default_unregistered_platform,
            "inactive_platform": default_inactive_platform,
        }
        self._replaced: set[str] = set()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set(self, name: str, callback: Callable[..., Awaitable[web.StreamResponse]]) -> None:
        """Replace hook ``name``. Allowed once, and only before freeze()."""
        if name not in self._hooks:
            raise ConfigurationError(f"UNKNOWN_CALLBACK: {name}")
        if callback is None or not callable(callback):
            raise ConfigurationError("MISSING_CALLBACK")
        if self._frozen:
            raise ConfigurationError(f"CALLBACKS_FROZEN: {name} cannot change after startup")
        if name in self._replaced:
            raise ConfigurationError(f"CALLBACK_ALREADY_SET: {name}")
        self._hooks[name] = callback
        self._replaced.add(name)

    def get(self, name: str) -> Callable[..., Awaitable[web.StreamResponse]]:
        return self._hooks[name]

    def freeze(self) -> None:
        self._frozen = True

    async def dispatch_launch(
        self, context: LaunchContext, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Route a launch on the app route to the deep linking or connect hook."""
        if context.is_deep_linking:
            logger.debug("Dispatching deep linking launch", user=context.user)
            return await self._hooks["deep_linking"](context, request, handler)
        return await self._hooks["connect"](context, request, handler)

    async def dynamic_registration(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        return await self._hooks["dynamic_registration"](request, handler)

    async def invalid_token(
        self, request: web.Request, error: dict[str, Any]
    ) -> web.StreamResponse:
        return await self._hooks["invalid_token"](request, error)

    async def unregistered_platform(self, request: web.Request) -> web.StreamResponse:
        return await self._hooks["unregistered_platform"](request)

    async def inactive_platform(self, request: web.Request) -> web.StreamResponse:
        return await self._hooks["inactive_platform"](request)
