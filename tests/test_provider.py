"""Tests for the Provider facade."""

from __future__ import annotations

import pytest
from aiohttp import web

from conftest import CLIENT_ID, ISSUER, VALID_LTIK, FakeValidator, platform_data
from ltigate.core.config import ProviderConfig
from ltigate.core.exceptions import ConfigurationError
from ltigate.provider import Provider
from ltigate.storage import JsonFileDatabase, MemoryDatabase


class TestProviderSetup:
    """Tests for Provider.setup."""

    def test_setup_twice_fails(self):
        """setup may only run once."""
        provider = Provider()
        config = ProviderConfig(encryption_key="secret", database_url="memory://")
        provider.setup(config, validator=FakeValidator())

        with pytest.raises(ConfigurationError, match="PROVIDER_ALREADY_SETUP"):
            provider.setup(config, validator=FakeValidator())

    def test_missing_encryption_key(self):
        """setup requires an encryption key."""
        with pytest.raises(ConfigurationError, match="MISSING_ENCRYPTION_KEY"):
            Provider().setup(ProviderConfig(database_url="memory://"), validator=FakeValidator())

    def test_missing_database(self):
        """setup needs a database or database_url."""
        with pytest.raises(ConfigurationError, match="MISSING_DATABASE_CONFIGURATION"):
            Provider().setup(ProviderConfig(encryption_key="secret"), validator=FakeValidator())

    def test_missing_validator(self):
        """setup requires a validator."""
        with pytest.raises(ConfigurationError, match="MISSING_VALIDATOR"):
            Provider().setup(ProviderConfig(encryption_key="secret"), MemoryDatabase())

    def test_database_from_url(self, tmp_path):
        """database_url picks the backend."""
        provider = Provider()
        provider.setup(
            ProviderConfig(encryption_key="secret", database_url=f"json://{tmp_path}/db.json"),
            validator=FakeValidator(),
        )
        assert isinstance(provider.database, JsonFileDatabase)

    def test_routes(self):
        """Route getters return the configured routes."""
        provider = Provider()
        provider.setup(
            ProviderConfig(encryption_key="secret", app_route="/app", login_route="/lti/login"),
            MemoryDatabase(),
            FakeValidator(),
        )

        assert provider.app_route() == "/app"
        assert provider.login_route() == "/lti/login"
        assert provider.keyset_route() == "/keys"
        assert provider.dynreg_route() == "/register"

    def test_not_setup(self):
        """Using the provider before setup fails."""
        provider = Provider()
        with pytest.raises(ConfigurationError, match="PROVIDER_NOT_SETUP"):
            provider.app
        with pytest.raises(ConfigurationError, match="PROVIDER_NOT_SETUP"):
            provider.on_connect(lambda context, request, handler: None)

    def test_whitelist_before_setup(self):
        """Whitelisting works before setup."""
        provider = Provider()
        provider.whitelist("/health")
        assert provider.is_whitelisted("/health", "GET") is True


class TestProviderDeploy:
    """Tests for Provider.deploy."""

    @pytest.mark.asyncio
    async def test_deploy_before_setup(self):
        """deploy requires setup."""
        with pytest.raises(ConfigurationError, match="PROVIDER_NOT_SETUP"):
            await Provider().deploy(serverless=True)

    @pytest.mark.asyncio
    async def test_hooks_frozen_after_deploy(self):
        """Hooks cannot be replaced after deploy."""
        provider = Provider()
        provider.setup(ProviderConfig(encryption_key="secret"), MemoryDatabase(), FakeValidator())
        await provider.deploy(serverless=True)

        async def on_connect(context, request, handler):
            return await handler(request)

        try:
            with pytest.raises(ConfigurationError, match="CALLBACKS_FROZEN"):
                provider.on_connect(on_connect)
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_hook_set_once(self):
        """Each hook can be replaced only once."""
        provider = Provider()
        provider.setup(ProviderConfig(encryption_key="secret"), MemoryDatabase(), FakeValidator())

        async def on_connect(context, request, handler):
            return await handler(request)

        provider.on_connect(on_connect)
        with pytest.raises(ConfigurationError, match="CALLBACK_ALREADY_SET"):
            provider.on_connect(on_connect)

    @pytest.mark.asyncio
    async def test_deploy_dev_mode(self):
        """Serverless deploy returns the app."""
        provider = Provider()
        provider.setup(
            ProviderConfig(encryption_key="secret", dev_mode=True), MemoryDatabase(), FakeValidator()
        )

        app = await provider.deploy(serverless=True)
        try:
            assert app is provider.app
        finally:
            await provider.close()

    @pytest.mark.asyncio
    async def test_deploy_listens(self, unused_tcp_port):
        """deploy starts a listener that close stops."""
        provider = Provider()
        provider.setup(ProviderConfig(encryption_key="secret"), MemoryDatabase(), FakeValidator())

        await provider.deploy(port=unused_tcp_port, host="127.0.0.1")
        try:
            assert provider._runner is not None
        finally:
            await provider.close()
        assert provider._runner is None


class TestProviderPassthroughs:
    """Platform and redirect helpers."""

    @pytest.mark.asyncio
    async def test_platform_methods(self):
        """Platform methods pass through to the registry."""
        provider = Provider()
        provider.setup(ProviderConfig(encryption_key="secret"), MemoryDatabase(), FakeValidator())

        platform = await provider.register_platform(platform_data())
        assert await provider.get_platform(ISSUER, CLIENT_ID) == platform
        assert await provider.get_platform(ISSUER) == [platform]
        assert await provider.get_platform_by_id(platform.id) == platform

        updated = await provider.update_platform_by_id(platform.id, {"name": "Renamed"})
        assert updated.name == "Renamed"
        assert [p.name for p in await provider.get_all_platforms()] == ["Renamed"]

        assert await provider.delete_platform_by_id(platform.id) is True
        assert await provider.delete_platform(ISSUER, CLIENT_ID) is False

    @pytest.mark.asyncio
    async def test_redirect_from_handler(self, make_provider, serve):
        """Handler redirects carry the ltik and extra parameters."""
        provider = make_provider()

        async def go(request):
            raise await provider.redirect(request, "/next?a=1", query={"b": 2})

        provider.app.router.add_get("/go", go)

        async with serve(provider) as client:
            resp = await client.get("/go", params={"ltik": VALID_LTIK}, allow_redirects=False)

        assert resp.status == 302
        assert resp.headers["Location"] == f"/next?a=1&b=2&ltik={VALID_LTIK}"

    @pytest.mark.asyncio
    async def test_redirect_new_resource(self, make_provider, serve, database):
        """new_resource records the context path."""
        provider = make_provider()

        async def go(request):
            raise await provider.redirect(request, "/resource/7", new_resource=True)

        provider.app.router.add_get("/go", go)

        async with serve(provider) as client:
            await client.get("/go", params={"ltik": VALID_LTIK}, allow_redirects=False)

        records = await database.get("contexttoken", {"context_id": "ctx-1", "user": "user-1"})
        assert records[0]["path"] == "/resource/7"

    @pytest.mark.asyncio
    async def test_serves_unauthenticated_whitelisted_health(self, make_provider, serve):
        """A whitelisted health route needs no launch."""
        provider = make_provider()
        provider.whitelist("/health")

        async def health(request):
            return web.json_response({"status": "ok"})

        provider.app.router.add_get("/health", health)

        async with serve(provider) as client:
            resp = await client.get("/health")

        assert resp.status == 200
