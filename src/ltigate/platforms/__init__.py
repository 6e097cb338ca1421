"""Platform registrations."""

from ltigate.platforms.platform import AuthConfig, AuthMethod, Platform, PlatformRegistry

__all__ = [
    "AuthConfig",
    "AuthMethod",
    "Platform",
    "PlatformRegistry",
]
