"""Backward-compatible facade returning flat mappings.

Older integrations expect a single client object built straight from a
config mapping, with every method returning plain dicts. New code should
use :class:`~pkceflow.flow.AuthFlow` directly; :class:`LegacyAuthClient`
only translates between its structured results and that older shape.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from pkceflow.client.transport import Transport
from pkceflow.config import load_config
from pkceflow.flow import AuthFlow
from pkceflow.models import NormalizedIdentity
from pkceflow.session import SessionStore


class LegacyAuthClient:
    """Flat-mapping adapter over :class:`~pkceflow.flow.AuthFlow`.

    Args:
        config: Raw configuration mapping, validated with
            :func:`~pkceflow.config.load_config`.
        session: Session store for state and verifier.
        transport: Optional HTTP transport override.

    Raises:
        ConfigError: If *config* is invalid.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        session: Optional[SessionStore] = None,
        transport: Optional[Transport] = None,
    ) -> None:
        self._flow = AuthFlow(load_config(config), session=session, transport=transport)

    @property
    def flow(self) -> AuthFlow:
        return self._flow

    def close(self) -> None:
        """Release the HTTP transport the underlying flow created."""
        self._flow.close()

    def get_authorization_url(self, opts: Optional[Mapping[str, Any]] = None) -> dict[str, str]:
        """Build an authorization URL.

        *opts* accepts ``state``, ``code_verifier``, ``scope``, ``extra`` and
        ``persist``.
        """
        opts = opts or {}
        extra = opts.get("extra")
        request = self._flow.build_authorization_url(
            state=_optional_str(opts.get("state")),
            code_verifier=_optional_str(opts.get("code_verifier")),
            scope=_optional_str(opts.get("scope")),
            extra=extra if isinstance(extra, Mapping) else None,
            persist=bool(opts.get("persist", True)),
        )
        return {
            "url": request.url,
            "state": request.state,
            "code_verifier": request.code_verifier,
            "code_challenge": request.code_challenge,
        }

    def exchange_code_for_tokens(self, code: str, code_verifier: Optional[str] = None) -> dict[str, Any]:
        return dict(self._flow.exchange_code_for_tokens(code, code_verifier).raw)

    def refresh_access_token(self, refresh_token: str) -> dict[str, Any]:
        return dict(self._flow.refresh_access_token(refresh_token).raw)

    def get_user_info(self, access_token: str) -> dict[str, Any]:
        return self._flow.get_user_info(access_token)

    def get_normalized_user_info(self, access_token: str) -> dict[str, Any]:
        return _identity_to_dict(self._flow.get_normalized_user_info(access_token))

    def handle_callback(self, query: Mapping[str, Any], clear_pkce: bool = True) -> dict[str, Any]:
        """Complete a callback, returning ``tokens``, ``user`` and ``raw_user``."""
        outcome = self._flow.handle_callback(query, clear_pkce)
        return {
            "tokens": dict(outcome.tokens.raw),
            "user": _identity_to_dict(outcome.user),
            "raw_user": outcome.raw_user,
        }


def _identity_to_dict(identity: NormalizedIdentity) -> dict[str, Any]:
    return {
        "email": identity.email,
        "privilege_level": identity.privilege_level,
        "role": identity.role,
        "raw": identity.raw,
    }


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
