"""ltigate - LTI 1.3 launch authentication for aiohttp applications."""

from ltigate.core import ConfigurationError, LtiError, ProviderConfig
from ltigate.launch import LaunchContext, LaunchResult, LaunchValidator
from ltigate.platforms import Platform
from ltigate.provider import LaunchState, Provider, get_launch

__version__ = "0.3.0"

__all__ = [
    "ConfigurationError",
    "LaunchContext",
    "LaunchResult",
    "LaunchState",
    "LaunchValidator",
    "LtiError",
    "Platform",
    "Provider",
    "ProviderConfig",
    "__version__",
    "get_launch",
]
