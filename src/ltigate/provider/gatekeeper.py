"""Authentication gatekeeper middleware.

Every request outside the reserved routes is classified:

1. No ltik: the request is the platform posting an id token back after the
   OIDC login. The state record is consumed; outside dev mode a missing
   record, or a state cookie that does not match it, rejects the launch. The
   id token is then validated and the browser is either redirected to the
   same path with a fresh ltik (redirect mode) or passed on directly
   (forward mode).
2. An ltik: the session token is validated and its LaunchContext restored.
3. Failure: whitelisted routes continue unauthenticated, everything else goes
   to the invalid token callback.

Authenticated requests to the app route are dispatched to the connect or deep
linking callback; all others continue to their handler.
"""

from __future__ import annotations

from typing import Any

import structlog
from aiohttp import web

from ltigate.core.config import ProviderConfig
from ltigate.core.exceptions import (
    IdentityTokenInvalid,
    LtiError,
    MissingCredential,
    StateNotFound,
)
from ltigate.launch.validators import (
    IdTokenValidationParams,
    LaunchValidator,
    LtikValidationParams,
)
from ltigate.provider.callbacks import CallbackDispatcher, Handler
from ltigate.provider.launch_state import LaunchState, error_body, set_launch
from ltigate.provider.redirect import merge_query
from ltigate.security.cookies import CookieSigner
from ltigate.security.whitelist import WhitelistMatcher
from ltigate.storage.state import StateReplayStore

logger = structlog.get_logger()

LTIK_AUTH_SCHEME = "LTIK-AUTH-V1"


def ltik_from_authorization(header: str | None) -> str | None:
    """Extract an ltik from ``Bearer <ltik>`` or ``LTIK-AUTH-V1 Token=<ltik>, ...``."""
    if not header:
        return None
    scheme, _, credentials = header.strip().partition(" ")
    if scheme.lower() == "bearer":
        return credentials.strip() or None
    if scheme.upper() == LTIK_AUTH_SCHEME:
        for part in credentials.split(","):
            key, _, value = part.strip().partition("=")
            if key == "Token" and value:
                return value
    return None


async def read_form(request: web.Request) -> dict[str, str]:
    if not request.can_read_body:
        return {}
    form = await request.post()
    return {key: value for key, value in form.items() if isinstance(value, str)}


class AuthGatekeeper:
    """Classifies requests and attaches launch state. Install ``middleware``."""

    def __init__(
        self,
        config: ProviderConfig,
        validator: LaunchValidator,
        states: StateReplayStore,
        signer: CookieSigner,
        callbacks: CallbackDispatcher,
        whitelist: WhitelistMatcher,
    ) -> None:
        self._config = config
        self._validator = validator
        self._states = states
        self._signer = signer
        self._callbacks = callbacks
        self._whitelist = whitelist
        self.middleware = self._create_middleware()

    def _create_middleware(self):
        @web.middleware
        async def gatekeeper(request: web.Request, handler: Handler) -> web.StreamResponse:
            if request.path in self._config.reserved_routes:
                return await handler(request)

            expired_cookies: list[str] = []
            try:
                response = await self._guard(request, handler, expired_cookies)
            except web.HTTPException as exc:
                self._expire_cookies(exc, expired_cookies)
                raise
            self._expire_cookies(response, expired_cookies)
            return response

        return gatekeeper

    def _expire_cookies(self, response: web.StreamResponse, names: list[str]) -> None:
        if response.prepared:
            return
        for name in names:
            response.del_cookie(name, path="/", domain=self._config.cookies.domain)

    async def _guard(
        self, request: web.Request, handler: Handler, expired_cookies: list[str]
    ) -> web.StreamResponse:
        logger.debug("Receiving request", path=request.path, method=request.method)
        form: dict[str, str] = {}
        try:
            ltik = request.query.get("ltik") or ltik_from_authorization(
                request.headers.get("Authorization")
            )
            if not ltik:
                # Body is only read when no ltik came in the query or header.
                form = await read_form(request)
                ltik = form.get("ltik")
            if ltik:
                request, launch = await self._access(request, ltik)
            else:
                outcome = await self._complete(request, form, expired_cookies)
                if isinstance(outcome, web.StreamResponse):
                    return outcome
                request, launch = outcome
        except Exception as e:
            return await self._reject(request, handler, e, form)

        set_launch(request, launch)
        if request.path == self._config.app_route:
            return await self._callbacks.dispatch_launch(launch.context, request, handler)
        return await handler(request)

    async def _access(
        self, request: web.Request, ltik: str
    ) -> tuple[web.Request, LaunchState]:
        logger.debug("Ltik found", path=request.path)
        context = await self._validator.access(
            ltik,
            LtikValidationParams(
                cookies=self._signer.signed_cookies(request.cookies),
                dev_mode=self._config.dev_mode,
                forward_mode=self._config.forward_mode,
                signing_key=self._config.signing_key,
            ),
        )
        logger.debug("Ltik successfully verified", user=context.user)
        return request, LaunchState(context=context, ltik=ltik)

    async def _complete(
        self, request: web.Request, form: dict[str, str], expired_cookies: list[str]
    ) -> tuple[web.Request, LaunchState] | web.StreamResponse:
        logger.debug("Ltik not found, checking for id token", path=request.path)

        id_token = form.get("id_token")
        if not id_token:
            raise MissingCredential()

        cookies = self._signer.signed_cookies(request.cookies)
        queued: dict[str, str] = {}
        state = form.get("state")
        state_cookie = cookies.get(f"state{state}") if state else None
        if state:
            expired_cookies.append(f"state{state}")
            # Single use: a consumed or expired state never completes a launch.
            record = await self._states.consume(state)
            if record is None:
                if not self._config.dev_mode:
                    raise StateNotFound()
                logger.info("No pending login for state", code=StateNotFound.code)
            else:
                if not self._config.dev_mode and state_cookie != record.issuer:
                    raise IdentityTokenInvalid("MISSING_VALIDATION_COOKIE")
                queued = dict(record.query)

        result = await self._validator.launch(
            id_token,
            IdTokenValidationParams(
                state=state,
                state_cookie_value=state_cookie,
                max_age=self._config.token_max_age,
                dev_mode=self._config.dev_mode,
                signing_key=self._config.signing_key,
                path=request.path,
            ),
        )
        logger.debug("Id token successfully verified", user=result.context.user)

        if self._config.forward_mode:
            if queued:
                merged = merge_query(request.query.items(), queued)
                request = request.clone(rel_url=request.rel_url.with_query(merged))
            return request, LaunchState(context=result.context, ltik=result.ltik, query=queued)

        target = request.rel_url.with_query(
            merge_query(request.query.items(), queued, {"ltik": result.ltik})
        )
        response = web.HTTPFound(str(target))
        response.set_cookie(
            result.platform_code,
            self._signer.sign(result.context.user),
            **self._config.cookies.as_kwargs(),
        )
        return response

    async def _reject(
        self,
        request: web.Request,
        handler: Handler,
        error: Exception,
        form: dict[str, str],
    ) -> web.StreamResponse:
        if self._whitelist.test(request.path, request.method):
            logger.debug("Whitelisted route, continuing unauthenticated", path=request.path)
            return await handler(request)

        message = error.message if isinstance(error, LtiError) else str(error)
        logger.info(
            "Launch authentication failed",
            path=request.path,
            error=message,
            error_type=type(error).__name__,
        )
        logger.debug("Rejected request body", body=form)
        diagnostic: dict[str, Any] = error_body(
            401,
            "Unauthorized",
            description="Error validating ltik or IdToken",
            message=message,
            bodyReceived=form,
            queryReceived=dict(request.query),
        )
        return await self._callbacks.invalid_token(request, diagnostic)
