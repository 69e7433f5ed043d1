"""pkceflow -- OAuth 2.0 Authorization Code flow with PKCE for relying parties.

The package redirects a browser to an authorization server, verifies the
callback's ``state``, exchanges the code for tokens over a hardened HTTPS
transport, and normalizes the provider's user-info payload into a
canonical identity.

Typical use::

    from pkceflow import AuthFlow, MappingSession, load_config

    config = load_config({
        "clientId": "client-123",
        "authorizeUrl": "https://idp.example/oauth/authorize",
        "tokenUrl": "https://idp.example/oauth/token",
        "userInfoUrl": "https://idp.example/oauth/userinfo",
        "redirectUri": "https://app.example/callback",
    })
    flow = AuthFlow(config, session=MappingSession(request.session))

Modules:
    flow: The :class:`AuthFlow` engine and callback helpers.
    config: Configuration validation, file and environment loading.
    client: Hardened HTTP transport.
    normalizer: User-info to identity projection.
    session: Session store protocol and implementations.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with stable error codes.
    compat: Flat-mapping facade for older integrations.
    app: Typer CLI entry point.
"""

__version__ = "0.3.0"

from pkceflow.client import HttpResult, HttpTransport, Transport
from pkceflow.compat import LegacyAuthClient
from pkceflow.config import config_from_env, load_config, load_config_file
from pkceflow.exceptions import (
    AuthorizationDeniedError,
    CallbackError,
    ConfigError,
    IdentityError,
    PkceFlowError,
    StateMismatchError,
    TokenExchangeError,
    TransportError,
    UserInfoError,
)
from pkceflow.flow import AuthFlow, raise_for_provider_error
from pkceflow.models import (
    AuthorizationRequest,
    CallbackOutcome,
    Configuration,
    ExchangeOutcome,
    FlowStatus,
    NormalizedIdentity,
    PrivilegePolicy,
    TokenSet,
)
from pkceflow.normalizer import DEFAULT_PRIVILEGE_POLICY, normalize
from pkceflow.session import InMemorySession, MappingSession, SessionStore

__all__ = [
    "AuthFlow",
    "AuthorizationDeniedError",
    "AuthorizationRequest",
    "CallbackError",
    "CallbackOutcome",
    "ConfigError",
    "Configuration",
    "DEFAULT_PRIVILEGE_POLICY",
    "ExchangeOutcome",
    "FlowStatus",
    "HttpResult",
    "HttpTransport",
    "IdentityError",
    "InMemorySession",
    "LegacyAuthClient",
    "MappingSession",
    "NormalizedIdentity",
    "PkceFlowError",
    "PrivilegePolicy",
    "SessionStore",
    "StateMismatchError",
    "TokenExchangeError",
    "TokenSet",
    "Transport",
    "TransportError",
    "UserInfoError",
    "config_from_env",
    "load_config",
    "load_config_file",
    "normalize",
    "raise_for_provider_error",
]
