"""Launch validation contracts and login request building."""

from ltigate.launch.login_request import (
    LOGIN_PROTOCOL_PARAMETERS,
    LoginParams,
    LoginRedirect,
    build_login_redirect,
    generate_state,
)
from ltigate.launch.validators import (
    IdTokenValidationParams,
    LaunchContext,
    LaunchResult,
    LaunchValidator,
    LtikValidationParams,
)

__all__ = [
    "LOGIN_PROTOCOL_PARAMETERS",
    "LoginParams",
    "LoginRedirect",
    "build_login_redirect",
    "generate_state",
    "IdTokenValidationParams",
    "LaunchContext",
    "LaunchResult",
    "LaunchValidator",
    "LtikValidationParams",
]
