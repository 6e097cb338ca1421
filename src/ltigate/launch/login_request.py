"""OIDC third-party login initiation.

Builds the authorization request a tool sends to the platform after the
platform calls the login route. The platform answers by form-posting an
id token (and the same ``state``) back to ``target_link_uri``.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from yarl import URL

if TYPE_CHECKING:
    from ltigate.platforms.platform import Platform

# Login parameters consumed by the protocol itself; anything else is queued
# and replayed on the launch request.
LOGIN_PROTOCOL_PARAMETERS = frozenset(
    {
        "iss",
        "login_hint",
        "target_link_uri",
        "client_id",
        "lti_message_hint",
        "lti_deployment_id",
    }
)


def generate_state() -> str:
    """Unguessable per-login state token."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class LoginParams:
    """Parameters of a third-party initiated login."""

    iss: str | None = None
    login_hint: str | None = None
    target_link_uri: str | None = None
    client_id: str | None = None
    lti_message_hint: str | None = None
    lti_deployment_id: str | None = None
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, str]) -> LoginParams:
        return cls(
            iss=data.get("iss") or None,
            login_hint=data.get("login_hint") or None,
            target_link_uri=data.get("target_link_uri") or None,
            client_id=data.get("client_id") or None,
            lti_message_hint=data.get("lti_message_hint") or None,
            lti_deployment_id=data.get("lti_deployment_id") or None,
            extra={
                key: str(value)
                for key, value in data.items()
                if key not in LOGIN_PROTOCOL_PARAMETERS
            },
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.iss and self.login_hint and self.target_link_uri)

    @property
    def queued_query(self) -> dict[str, str]:
        """Parameters to replay on the launch request."""
        return dict(self.extra)


@dataclass(frozen=True)
class LoginRedirect:
    target: str
    state: str


def build_login_redirect(platform: Platform, params: LoginParams, state: str) -> LoginRedirect:
    """Compose the authorization endpoint URL for ``platform``."""
    query = {
        "response_type": "id_token",
        "response_mode": "form_post",
        "id_token_signed_response_alg": "RS256",
        "scope": "openid",
        "client_id": params.client_id or platform.client_id,
        "redirect_uri": params.target_link_uri or "",
        "login_hint": params.login_hint or "",
        "nonce": secrets.token_urlsafe(16),
        "prompt": "none",
        "state": state,
    }
    if params.lti_message_hint:
        query["lti_message_hint"] = params.lti_message_hint
    if params.lti_deployment_id:
        query["lti_deployment_id"] = params.lti_deployment_id

    endpoint = URL(platform.authentication_endpoint)
    target = endpoint.with_query({**dict(endpoint.query), **query})
    return LoginRedirect(target=str(target), state=state)
