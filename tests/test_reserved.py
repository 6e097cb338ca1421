"""Tests for the keyset and dynamic registration routes."""

from __future__ import annotations

import pytest
from aiohttp import web

from conftest import FakeValidator
from ltigate.core.config import DynRegConfig, ProviderConfig
from ltigate.core.exceptions import ConfigurationError, PlatformAlreadyRegistered
from ltigate.provider import DynamicRegistrar, KeysetProvider, Provider, RegistrationOptions
from ltigate.storage import MemoryDatabase

JWKS = {"keys": [{"kty": "RSA", "kid": "key-1", "n": "abc", "e": "AQAB"}]}

DYNREG = {
    "url": "https://tool.example.com/",
    "name": "Example Tool",
    "description": "Grades essays",
    "redirect_uris": ["https://tool.example.com/launch"],
    "custom_parameters": {"course": "$Context.id"},
    "auto_activate": True,
}


def dynreg_config(**overrides) -> ProviderConfig:
    return ProviderConfig(encryption_key="test-secret", dynreg=DYNREG, **overrides)


class StaticKeyset(KeysetProvider):
    async def build(self):
        return JWKS


class BrokenKeyset(KeysetProvider):
    async def build(self):
        raise RuntimeError("no keys")


class RecordingRegistrar(DynamicRegistrar):
    def __init__(self, known: set[str] | None = None) -> None:
        self.known = known or set()
        self.calls: list[tuple[str, str | None, RegistrationOptions]] = []

    async def register(self, openid_configuration, registration_token, options):
        self.calls.append((openid_configuration, registration_token, options))
        if openid_configuration in self.known:
            raise PlatformAlreadyRegistered()
        if openid_configuration == "https://broken.example.com":
            raise RuntimeError("registration endpoint unreachable")
        return "<script>window.parent.postMessage({subject: 'org.imsglobal.lti.close'}, '*')</script>"


class TestKeysetRoute:
    """Tests for the keyset route."""

    @pytest.mark.asyncio
    async def test_keyset(self, make_provider, serve):
        """The keyset provider's JWKS is served as JSON."""
        provider = make_provider(keyset=StaticKeyset())

        async with serve(provider) as client:
            resp = await client.get("/keys")
            body = await resp.json()

        assert resp.status == 200
        assert body == JWKS

    @pytest.mark.asyncio
    async def test_keyset_failure(self, make_provider, serve):
        """A failing keyset provider yields a 500 with its message."""
        provider = make_provider(keyset=BrokenKeyset())

        async with serve(provider) as client:
            resp = await client.get("/keys")
            body = await resp.json()

        assert resp.status == 500
        assert body["details"]["message"] == "no keys"

    @pytest.mark.asyncio
    async def test_keyset_not_configured(self, make_provider, serve):
        """Without a keyset provider the route answers 500."""
        provider = make_provider()

        async with serve(provider) as client:
            resp = await client.get("/keys")

        assert resp.status == 500


class TestRegistrationOptions:
    """Tests for RegistrationOptions."""

    def test_absolute_uris(self):
        """Routes are joined onto the tool URL; extra redirect URIs follow the app route."""
        options = RegistrationOptions.from_config(dynreg_config(app_route="/app"))

        assert options.login_uri == "https://tool.example.com/login"
        assert options.jwks_uri == "https://tool.example.com/keys"
        assert options.redirect_uris == [
            "https://tool.example.com/app",
            "https://tool.example.com/launch",
        ]

    def test_requires_dynreg(self):
        """Building options without dynamic registration settings fails."""
        with pytest.raises(ConfigurationError, match="MISSING_DYNREG_CONFIGURATION"):
            RegistrationOptions.from_config(ProviderConfig(encryption_key="test-secret"))

    def test_setup_with_registrar_requires_dynreg(self):
        """A registrar without dynreg settings is rejected at setup."""
        with pytest.raises(ConfigurationError, match="MISSING_DYNREG_CONFIGURATION"):
            Provider().setup(
                ProviderConfig(encryption_key="test-secret"),
                MemoryDatabase(),
                FakeValidator(),
                registrar=RecordingRegistrar(),
            )

    def test_incomplete_dynreg(self):
        """dynreg settings need both url and name."""
        config = ProviderConfig(encryption_key="test-secret", dynreg=DynRegConfig(name="x"))
        with pytest.raises(ConfigurationError, match="MISSING_DYNREG_CONFIGURATION"):
            config.validate_setup()


class TestDynamicRegistrationRoute:
    """Tests for the dynamic registration route."""

    @pytest.mark.asyncio
    async def test_disabled_without_registrar(self, make_provider, serve):
        """No registrar means the route refuses with 403."""
        provider = make_provider()

        async with serve(provider) as client:
            resp = await client.get(
                "/register", params={"openid_configuration": "https://lms.example.com/oidc"}
            )
            body = await resp.json()

        assert resp.status == 403
        assert body["details"]["message"] == "Dynamic registration is disabled."

    @pytest.mark.asyncio
    async def test_disabled_with_dynreg_but_no_registrar(self, make_provider, serve):
        """dynreg settings alone do not enable the route."""
        provider = make_provider(dynreg_config())

        async with serve(provider) as client:
            resp = await client.get(
                "/register", params={"openid_configuration": "https://lms.example.com/oidc"}
            )

        assert resp.status == 403

    @pytest.mark.asyncio
    async def test_missing_openid_configuration(self, make_provider, serve):
        """The openid_configuration parameter is required."""
        provider = make_provider(dynreg_config(), registrar=RecordingRegistrar())

        async with serve(provider) as client:
            resp = await client.get("/register")
            body = await resp.json()

        assert resp.status == 400
        assert body["details"]["message"] == 'Missing parameter: "openid_configuration".'

    @pytest.mark.asyncio
    async def test_success_returns_html(self, make_provider, serve):
        """The registrar's HTML closes the registration window."""
        registrar = RecordingRegistrar()
        provider = make_provider(dynreg_config(), registrar=registrar)

        async with serve(provider) as client:
            resp = await client.get(
                "/register",
                params={
                    "openid_configuration": "https://lms.example.com/oidc",
                    "registration_token": "reg-1",
                },
            )
            text = await resp.text()

        assert resp.status == 200
        assert resp.content_type == "text/html"
        assert "org.imsglobal.lti.close" in text
        openid_configuration, token, _ = registrar.calls[0]
        assert (openid_configuration, token) == ("https://lms.example.com/oidc", "reg-1")

    @pytest.mark.asyncio
    async def test_registrar_receives_tool_settings(self, make_provider, serve):
        """Configured tool metadata and provider routes reach the registrar."""
        registrar = RecordingRegistrar()
        provider = make_provider(dynreg_config(login_route="/lti/login"), registrar=registrar)

        async with serve(provider) as client:
            await client.get(
                "/register", params={"openid_configuration": "https://lms.example.com/oidc"}
            )

        _, token, options = registrar.calls[0]
        assert token is None
        assert options.tool.url == "https://tool.example.com/"
        assert options.tool.name == "Example Tool"
        assert options.tool.auto_activate is True
        assert options.tool.custom_parameters == {"course": "$Context.id"}
        assert options.login_uri == "https://tool.example.com/lti/login"

    @pytest.mark.asyncio
    async def test_already_registered(self, make_provider, serve):
        """A known platform gets a 403."""
        provider = make_provider(
            dynreg_config(), registrar=RecordingRegistrar(known={"https://lms.example.com/oidc"})
        )

        async with serve(provider) as client:
            resp = await client.get(
                "/register", params={"openid_configuration": "https://lms.example.com/oidc"}
            )
            body = await resp.json()

        assert resp.status == 403
        assert body["details"]["message"] == "Platform already registered."

    @pytest.mark.asyncio
    async def test_failure(self, make_provider, serve):
        """Registrar errors become a 500 with the error message."""
        provider = make_provider(dynreg_config(), registrar=RecordingRegistrar())

        async with serve(provider) as client:
            resp = await client.get(
                "/register", params={"openid_configuration": "https://broken.example.com"}
            )
            body = await resp.json()

        assert resp.status == 500
        assert body["details"]["message"] == "registration endpoint unreachable"

    @pytest.mark.asyncio
    async def test_custom_hook(self, make_provider, serve):
        """A replaced hook handles the route itself."""
        provider = make_provider()

        async def on_dynamic_registration(request, handler):
            return web.Response(text="custom registration")

        provider.on_dynamic_registration(on_dynamic_registration)

        async with serve(provider) as client:
            resp = await client.post("/register")
            text = await resp.text()

        assert text == "custom registration"
