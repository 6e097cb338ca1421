"""Login route handler.

Entry point of the OIDC third-party initiated login. The platform calls the
login route with its issuer, a login hint and the target link URI; the tool
answers with a redirect to the platform's authorization endpoint carrying a
fresh state token, bound to the browser through a short-lived signed cookie.
"""

from __future__ import annotations

import structlog
from aiohttp import web

from ltigate.core.config import STATE_COOKIE_MAX_AGE, ProviderConfig
from ltigate.core.exceptions import (
    AmbiguousPlatform,
    MissingLoginParameters,
    PlatformNotActivated,
    UnregisteredPlatform,
)
from ltigate.launch.login_request import LoginParams, generate_state
from ltigate.launch.validators import LaunchValidator
from ltigate.platforms.platform import Platform, PlatformRegistry
from ltigate.provider.callbacks import CallbackDispatcher
from ltigate.provider.launch_state import error_body
from ltigate.security.cookies import CookieSigner
from ltigate.storage.state import StateReplayStore

logger = structlog.get_logger()


async def read_parameters(request: web.Request) -> dict[str, str]:
    """Query string merged with the form body. Body values win."""
    params: dict[str, str] = {key: value for key, value in request.query.items()}
    if request.can_read_body:
        form = await request.post()
        for key, value in form.items():
            if isinstance(value, str):
                params[key] = value
    return params


class LoginFlowInitiator:
    """Handle platform login requests."""

    def __init__(
        self,
        config: ProviderConfig,
        platforms: PlatformRegistry,
        validator: LaunchValidator,
        states: StateReplayStore,
        signer: CookieSigner,
        callbacks: CallbackDispatcher,
    ) -> None:
        self._config = config
        self._platforms = platforms
        self._validator = validator
        self._states = states
        self._signer = signer
        self._callbacks = callbacks

    async def resolve_platform(self, params: LoginParams) -> Platform:
        """Find the platform a login request comes from.

        Raises:
            UnregisteredPlatform: no platform matches.
            AmbiguousPlatform: several platforms share the issuer and no client id was sent.
            PlatformNotActivated: the platform exists but is not active.
        """
        if params.client_id:
            platform = await self._platforms.get_platform(params.iss, params.client_id)
        else:
            candidates = await self._platforms.get_platform(params.iss)
            if len(candidates) > 1:
                raise AmbiguousPlatform(
                    "Several platforms share this issuer; a client_id is required",
                    issuer=params.iss,
                    client_ids=[candidate.client_id for candidate in candidates],
                )
            platform = candidates[0] if candidates else None

        if platform is None:
            raise UnregisteredPlatform(issuer=params.iss, client_id=params.client_id)
        if not await self._platforms.is_active(platform):
            raise PlatformNotActivated(issuer=params.iss, client_id=platform.client_id)
        return platform

    async def handle(self, request: web.Request) -> web.StreamResponse:
        try:
            params = LoginParams.from_mapping(await read_parameters(request))
            if not params.is_complete:
                raise MissingLoginParameters()

            logger.debug(
                "Receiving login request",
                iss=params.iss,
                client_id=params.client_id,
                target_link_uri=params.target_link_uri,
            )
            platform = await self.resolve_platform(params)

            state = generate_state()
            redirect = await self._validator.login(platform, params, state)
            await self._states.put(redirect.state, params.iss, params.queued_query)

            response = web.HTTPFound(redirect.target)
            response.set_cookie(
                f"state{redirect.state}",
                self._signer.sign(params.iss),
                max_age=STATE_COOKIE_MAX_AGE,
                **self._config.cookies.as_kwargs(),
            )
            logger.debug("Redirecting to platform authentication endpoint", iss=params.iss)
            return response

        except MissingLoginParameters as e:
            logger.info("Missing login parameters", path=request.path)
            return web.json_response(error_body(400, "Bad Request", message=e.code), status=400)
        except UnregisteredPlatform:
            logger.info("Unregistered platform attempting connection", path=request.path)
            return await self._callbacks.unregistered_platform(request)
        except PlatformNotActivated:
            logger.info("Inactive platform attempting connection", path=request.path)
            return await self._callbacks.inactive_platform(request)
        except AmbiguousPlatform as e:
            logger.warning("Ambiguous platform for issuer", **e.details)
            return web.json_response(
                error_body(400, "Bad Request", message=e.code, description=e.message),
                status=400,
            )
        except Exception as e:
            logger.error("Login request failed", error=str(e), error_type=type(e).__name__)
            return web.json_response(
                error_body(500, "Internal Server Error", message=str(e)), status=500
            )
