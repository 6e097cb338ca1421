"""aiohttp integration: gatekeeper middleware, login route and the Provider facade."""

from ltigate.provider.callbacks import HOOK_NAMES, CallbackDispatcher
from ltigate.provider.gatekeeper import AuthGatekeeper, ltik_from_authorization
from ltigate.provider.launch_state import LAUNCH_KEY, LaunchState, get_launch
from ltigate.provider.login import LoginFlowInitiator
from ltigate.provider.provider import Provider
from ltigate.provider.redirect import RedirectComposer, merge_query, parse_target
from ltigate.provider.reserved import DynamicRegistrar, KeysetProvider, RegistrationOptions

__all__ = [
    "HOOK_NAMES",
    "LAUNCH_KEY",
    "AuthGatekeeper",
    "CallbackDispatcher",
    "DynamicRegistrar",
    "KeysetProvider",
    "LaunchState",
    "LoginFlowInitiator",
    "Provider",
    "RedirectComposer",
    "RegistrationOptions",
    "get_launch",
    "ltik_from_authorization",
    "merge_query",
    "parse_target",
]
