"""Core configuration and error types."""

from .config import (
    DEEP_LINKING_MESSAGE_TYPE,
    STATE_COOKIE_MAX_AGE,
    CookieConfig,
    DynRegConfig,
    ProviderConfig,
    load_config_from_file,
)
from .exceptions import (
    AmbiguousPlatform,
    ConfigurationError,
    IdentityTokenInvalid,
    LtiError,
    MissingCredential,
    MissingLoginParameters,
    PlatformAlreadyRegistered,
    PlatformNotActivated,
    SessionTokenInvalid,
    StateNotFound,
    UnregisteredPlatform,
    format_error_for_user,
)

__all__ = [
    "DEEP_LINKING_MESSAGE_TYPE",
    "STATE_COOKIE_MAX_AGE",
    "CookieConfig",
    "DynRegConfig",
    "ProviderConfig",
    "load_config_from_file",
    "AmbiguousPlatform",
    "ConfigurationError",
    "IdentityTokenInvalid",
    "LtiError",
    "MissingCredential",
    "MissingLoginParameters",
    "PlatformAlreadyRegistered",
    "PlatformNotActivated",
    "SessionTokenInvalid",
    "StateNotFound",
    "UnregisteredPlatform",
    "format_error_for_user",
]
