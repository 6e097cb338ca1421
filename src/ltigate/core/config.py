"""Provider configuration with environment variable support.

All settings can be configured via environment variables with the LTIGATE_ prefix.
Nested settings use a double underscore, e.g. LTIGATE_COOKIES__SECURE=true.
The configuration is frozen once constructed; the provider reads it by reference.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ltigate.core.exceptions import ConfigurationError

DEEP_LINKING_MESSAGE_TYPE = "LtiDeepLinkingRequest"
STATE_COOKIE_MAX_AGE = 60  # seconds


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


class CookieConfig(BaseModel):
    """Settings shared by every cookie the provider sets."""

    model_config = ConfigDict(frozen=True)

    secure: bool = False
    same_site: Literal["Strict", "Lax", "None"] = "Lax"
    domain: str | None = None

    def as_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``StreamResponse.set_cookie``."""
        kwargs: dict[str, Any] = {
            "httponly": True,
            "secure": self.secure,
            "samesite": self.same_site,
            "path": "/",
        }
        if self.domain:
            kwargs["domain"] = self.domain
        return kwargs


class DynRegConfig(BaseModel):
    """Tool metadata offered during dynamic registration."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    name: str | None = None
    logo: str | None = None
    description: str | None = None
    redirect_uris: list[str] = Field(default_factory=list)
    custom_parameters: dict[str, str] = Field(default_factory=dict)
    auto_activate: bool = False


class ProviderConfig(BaseSettings):
    """Launch provider configuration.

    Example:
        config = ProviderConfig(encryption_key="secret", database_url="memory://")
        print(config.login_route)
    """

    model_config = SettingsConfigDict(
        env_prefix="LTIGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    encryption_key: SecretStr | None = Field(
        default=None,
        repr=False,
        description="Secret used to sign cookies and passed to the token validators.",
    )
    database_url: str | None = Field(
        default=None,
        description="Persistence backend, e.g. memory:// or json:///var/lib/ltigate/db.json.",
    )
    app_route: str = "/"
    login_route: str = "/login"
    keyset_route: str = "/keys"
    dynreg_route: str = "/register"
    dev_mode: bool = Field(
        default=False,
        description="Do not require state and session cookies (still validated if present).",
    )
    forward_mode: bool = Field(
        default=False,
        description="Continue to the next handler after a launch instead of redirecting.",
    )
    token_max_age: int | None = Field(
        default=10,
        description="Maximum id token age in seconds. false/0 disables the check.",
    )
    cookies: CookieConfig = Field(default_factory=CookieConfig)
    dynreg: DynRegConfig | None = None

    @field_validator("token_max_age", mode="before")
    @classmethod
    def _disable_max_age(cls, value: Any) -> Any:
        if value is None or value is False:
            return None
        if isinstance(value, str) and value.strip().lower() in ("", "false", "0", "none"):
            return None
        if value == 0:
            return None
        return value

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> ProviderConfig:
        """Build a config from a YAML/TOML file; keyword overrides win."""
        data = load_config_from_file(path)
        data.update(overrides)
        return cls(**data)

    @property
    def signing_key(self) -> str:
        if self.encryption_key is None:
            return ""
        return self.encryption_key.get_secret_value()

    @property
    def reserved_routes(self) -> tuple[str, str, str]:
        """Routes handled outside the gatekeeper."""
        return (self.login_route, self.keyset_route, self.dynreg_route)

    def validate_setup(self) -> None:
        """Raise ConfigurationError when the provider cannot start."""
        if not self.signing_key:
            raise ConfigurationError("MISSING_ENCRYPTION_KEY")
        if self.dynreg is not None and (not self.dynreg.url or not self.dynreg.name):
            raise ConfigurationError("MISSING_DYNREG_CONFIGURATION")

    def to_display_dict(self) -> dict[str, Any]:
        """Export configuration for display, secrets masked."""
        return {
            "encryption_key": "********" if self.signing_key else None,
            "database_url": self.database_url,
            "app_route": self.app_route,
            "login_route": self.login_route,
            "keyset_route": self.keyset_route,
            "dynreg_route": self.dynreg_route,
            "dev_mode": self.dev_mode,
            "forward_mode": self.forward_mode,
            "token_max_age": self.token_max_age,
            "cookies.secure": self.cookies.secure,
            "cookies.same_site": self.cookies.same_site,
            "cookies.domain": self.cookies.domain,
            "dynreg": self.dynreg.url if self.dynreg else None,
        }
