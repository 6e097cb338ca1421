"""Shared fixtures for ltigate tests."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from ltigate.core.config import ProviderConfig
from ltigate.core.exceptions import IdentityTokenInvalid, SessionTokenInvalid
from ltigate.launch.validators import (
    IdTokenValidationParams,
    LaunchContext,
    LaunchResult,
    LaunchValidator,
    LtikValidationParams,
)
from ltigate.provider import Provider, get_launch
from ltigate.storage import MemoryDatabase

ISSUER = "https://lms.example.com"
CLIENT_ID = "tool-client-1"
AUTH_ENDPOINT = "https://lms.example.com/auth"
VALID_ID_TOKEN = "valid-id-token"
VALID_LTIK = "ltik-123"
PLATFORM_CODE = "lti-platform-abc"


class FakeValidator(LaunchValidator):
    """Accepts one id token and one ltik; records every call."""

    def __init__(self, message_type: str = "LtiResourceLinkRequest") -> None:
        self.message_type = message_type
        self.launch_calls: list[tuple[str, IdTokenValidationParams]] = []
        self.access_calls: list[tuple[str, LtikValidationParams]] = []

    def _context(self) -> LaunchContext:
        return LaunchContext(
            user="user-1",
            message_type=self.message_type,
            context_id="ctx-1",
            platform_context={"resource": {"id": "res-1"}},
        )

    async def launch(self, id_token: str, params: IdTokenValidationParams) -> LaunchResult:
        self.launch_calls.append((id_token, params))
        if id_token != VALID_ID_TOKEN:
            raise IdentityTokenInvalid("Invalid id token")
        if not params.dev_mode and params.state_cookie_value != ISSUER:
            raise IdentityTokenInvalid("MISSING_VALIDATION_COOKIE")
        return LaunchResult(context=self._context(), ltik=VALID_LTIK, platform_code=PLATFORM_CODE)

    async def access(self, ltik: str, params: LtikValidationParams) -> LaunchContext:
        self.access_calls.append((ltik, params))
        if ltik != VALID_LTIK:
            raise SessionTokenInvalid("Invalid ltik")
        return self._context()


async def show_launch(request: web.Request) -> web.Response:
    launch = get_launch(request)
    if launch is None:
        return web.json_response({"authenticated": False, "query": dict(request.query)})
    return web.json_response(
        {
            "authenticated": True,
            "user": launch.context.user,
            "ltik": launch.ltik,
            "queued": launch.query,
            "query": dict(request.query),
        }
    )


def platform_data(**overrides) -> dict:
    data = {
        "url": ISSUER,
        "client_id": CLIENT_ID,
        "name": "Example LMS",
        "authentication_endpoint": AUTH_ENDPOINT,
        "accesstoken_endpoint": "https://lms.example.com/token",
        "auth_config": {"method": "JWK_SET", "key": "https://lms.example.com/keys"},
    }
    data.update(overrides)
    return data


@pytest.fixture
def validator():
    return FakeValidator()


@pytest.fixture
def config():
    return ProviderConfig(encryption_key="test-secret", database_url="memory://")


@pytest.fixture
def database():
    return MemoryDatabase()


@pytest.fixture
def make_provider(database, validator):
    """Build a set-up Provider with test routes on /, /page and /public."""

    def _make(config: ProviderConfig | None = None, **setup_kwargs) -> Provider:
        config = config or ProviderConfig(encryption_key="test-secret", database_url="memory://")
        provider = Provider()
        setup_kwargs.setdefault("validator", validator)
        app = provider.setup(config, database, **setup_kwargs)
        app.router.add_route("*", "/", show_launch)
        app.router.add_route("*", "/page", show_launch)
        app.router.add_route("*", "/public", show_launch)
        return provider

    return _make


@pytest.fixture
def serve():
    """Deploy a provider in serverless mode and yield a test client for it."""

    @asynccontextmanager
    async def _serve(provider: Provider):
        await provider.deploy(serverless=True)
        try:
            async with TestClient(TestServer(provider.app)) as client:
                yield client
        finally:
            await provider.close()

    return _serve
