"""Canonical Pydantic models shared across all pkceflow modules.

This is the single source of truth for data shapes in the project. Every
record is frozen: once built it is never mutated, so a
:class:`Configuration` can be shared by every flow of one relying party and
a :class:`CallbackOutcome` can be handed to application code safely.

**Configuration** -- produced by :func:`pkceflow.config.load_config`:
    :class:`Configuration`.

**Flow artifacts** -- produced by :class:`pkceflow.flow.AuthFlow`:
    :class:`AuthorizationRequest`, :class:`TokenSet`,
    :class:`ExchangeOutcome`, and :class:`CallbackOutcome`.

**Identity** -- produced by :func:`pkceflow.normalizer.normalize`:
    :class:`NormalizedIdentity` and :class:`PrivilegePolicy`.
"""

from __future__ import annotations

import enum
import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_SCOPE = "openid profile email"


# --- Configuration ---


class Configuration(BaseModel):
    """Validated relying-party configuration.

    Build instances with :func:`pkceflow.config.load_config`, which enforces
    the URL invariants (absolute ``http``/``https`` URLs, plaintext only for
    loopback hosts when explicitly allowed, trailing slashes stripped).
    Constructing the model directly skips those checks.

    Example::

        Configuration(
            client_id="client-123",
            authorize_url="https://idp.example/oauth/authorize",
            token_url="https://idp.example/oauth/token",
            redirect_uri="https://app.example/callback",
        )
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    authorize_url: str
    token_url: str
    redirect_uri: str
    user_info_url: Optional[str] = None
    client_secret: Optional[str] = Field(default=None, repr=False)
    default_scope: str = DEFAULT_SCOPE
    allow_insecure_http: bool = False


# --- Flow artifacts ---


class FlowStatus(str, enum.Enum):
    """Position of an authorization flow in its state machine.

    ``INITIATED`` -> ``AWAITING_CALLBACK`` -> ``STATE_VERIFIED`` ->
    ``TOKENS_EXCHANGED`` -> ``USERINFO_FETCHED``. Any failed transition moves
    the flow to ``FAILED``.
    """

    INITIATED = "initiated"
    AWAITING_CALLBACK = "awaiting_callback"
    STATE_VERIFIED = "state_verified"
    TOKENS_EXCHANGED = "tokens_exchanged"
    USERINFO_FETCHED = "userinfo_fetched"
    FAILED = "failed"


class AuthorizationRequest(BaseModel):
    """Material generated for one login attempt.

    The ``state`` and ``code_verifier`` must survive until the callback; by
    default :meth:`~pkceflow.flow.AuthFlow.build_authorization_url` stores
    them in the session collaborator.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    state: str
    code_verifier: str = Field(repr=False)
    code_challenge: str


class TokenSet(BaseModel):
    """Tokens returned by the token endpoint.

    ``raw`` keeps the full provider payload so that fields this model does
    not name remain available. ``obtained_at`` is a process-local
    :func:`time.monotonic` reading and is left out of serialization.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    id_token: Optional[str] = Field(default=None, repr=False)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    obtained_at: float = Field(default_factory=time.monotonic, exclude=True)

    @classmethod
    def from_response(
        cls,
        data: dict[str, Any],
        fallback_refresh_token: Optional[str] = None,
    ) -> TokenSet:
        """Build a token set from a decoded token-endpoint response.

        Args:
            data: The JSON object returned by the token endpoint. Must hold
                a non-empty ``access_token``.
            fallback_refresh_token: Refresh token to keep when the response
                does not rotate it (refresh grants).

        Returns:
            A new :class:`TokenSet`.
        """
        refresh_token = data.get("refresh_token")
        if not isinstance(refresh_token, str) or not refresh_token:
            refresh_token = fallback_refresh_token
        token_type = data.get("token_type")
        scope = data.get("scope")
        id_token = data.get("id_token")
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=refresh_token,
            token_type=token_type if isinstance(token_type, str) and token_type else "Bearer",
            expires_in=_coerce_seconds(data.get("expires_in")),
            scope=scope if isinstance(scope, str) else None,
            id_token=id_token if isinstance(id_token, str) else None,
            raw=dict(data),
        )

    def is_expired(self, leeway: float = 30.0) -> bool:
        """Return True when the access token is within *leeway* seconds of expiry.

        Tokens without an ``expires_in`` are never considered expired.
        """
        if self.expires_in is None:
            return False
        return time.monotonic() >= self.obtained_at + self.expires_in - leeway


def _coerce_seconds(value: Any) -> Optional[int]:
    """Interpret ``expires_in`` values sent as numbers or digit strings."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        return int(value.strip())
    return None


# --- Identity ---


class PrivilegePolicy(BaseModel):
    """Role-name to privilege-level table used by the identity normalizer.

    Keys are matched after lower-casing and trimming the role string. The
    default table reflects a two-tier deployment (``1`` for administrators,
    ``2`` for regular users); relying parties with a different taxonomy
    should supply their own.
    """

    model_config = ConfigDict(frozen=True)

    levels: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, levels: dict[str, int]) -> PrivilegePolicy:
        """Build a policy, normalising the role names in *levels*."""
        return cls(levels={name.strip().lower(): level for name, level in levels.items()})

    def level_for(self, role: str) -> Optional[int]:
        """Return the level for *role*, or ``None`` when it is not listed."""
        return self.levels.get(role.strip().lower())


class NormalizedIdentity(BaseModel):
    """Canonical projection of a user-info payload."""

    model_config = ConfigDict(frozen=True)

    email: str
    privilege_level: Optional[int] = None
    role: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


# --- Outcomes ---


class ExchangeOutcome(BaseModel):
    """Tokens plus the raw user-info payload fetched with them."""

    model_config = ConfigDict(frozen=True)

    tokens: TokenSet
    user: dict[str, Any]


class CallbackOutcome(BaseModel):
    """Terminal artifact of one completed callback."""

    model_config = ConfigDict(frozen=True)

    tokens: TokenSet
    user: NormalizedIdentity
    raw_user: dict[str, Any]
