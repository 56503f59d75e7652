"""httpware: HTTP middleware for aiohttp applications.

This package provides:
- HTTP Basic Authentication (RFC 7617) for single handlers or whole apps
- Default and pluggable 401/403 responders
- Environment and file based configuration
"""

from httpware.basicauth import (
    AuthOutcome,
    AuthResult,
    BasicAuthGate,
    BasicAuthOptions,
    CredentialSource,
    Credentials,
    basic_auth,
    basic_auth_middleware,
    credentials_from_url,
    encode_basic_credentials,
    extract_credentials,
    parse_authorization_header,
)
from httpware.config import (
    BasicAuthConfig,
    clear_config,
    configure_logging,
    flatten_config,
    get_config,
    load_config_from_file,
)
from httpware.responders import (
    DEFAULT_REALM,
    basic_challenge,
    default_forbidden_responder,
    default_unauthorized_responder,
    error_response,
    quote_header_value,
    resolve_realm,
)

__version__ = "0.1.0"

__all__ = [
    # Basic Auth
    "AuthOutcome",
    "AuthResult",
    "BasicAuthGate",
    "BasicAuthOptions",
    "CredentialSource",
    "Credentials",
    "basic_auth",
    "basic_auth_middleware",
    "credentials_from_url",
    "encode_basic_credentials",
    "extract_credentials",
    "parse_authorization_header",
    # Responders
    "DEFAULT_REALM",
    "basic_challenge",
    "default_forbidden_responder",
    "default_unauthorized_responder",
    "error_response",
    "quote_header_value",
    "resolve_realm",
    # Configuration
    "BasicAuthConfig",
    "clear_config",
    "configure_logging",
    "flatten_config",
    "get_config",
    "load_config_from_file",
]
