"""Tests for pkceflow.models and the exception hierarchy."""

from __future__ import annotations

import time

import pydantic
import pytest

from pkceflow.exceptions import (
    AuthorizationDeniedError,
    ConfigError,
    PkceFlowError,
    TokenExchangeError,
    TransportError,
)
from pkceflow.exit_codes import EXIT_AUTH_FAILURE, EXIT_CONNECTION_ERROR, EXIT_INVALID_USAGE
from pkceflow.models import NormalizedIdentity, PrivilegePolicy, TokenSet


class TestTokenSet:
    def test_from_response(self) -> None:
        tokens = TokenSet.from_response(
            {
                "access_token": "at",
                "refresh_token": "rt",
                "token_type": "bearer",
                "expires_in": "3600",
                "scope": "openid email",
                "id_token": "eyJ...",
                "custom": 1,
            }
        )
        assert tokens.access_token == "at"
        assert tokens.token_type == "bearer"
        assert tokens.expires_in == 3600
        assert tokens.scope == "openid email"
        assert tokens.id_token == "eyJ..."
        assert tokens.raw["custom"] == 1

    def test_defaults(self) -> None:
        tokens = TokenSet.from_response({"access_token": "at", "expires_in": True})
        assert tokens.token_type == "Bearer"
        assert tokens.refresh_token is None
        assert tokens.expires_in is None

    def test_fallback_refresh_token(self) -> None:
        tokens = TokenSet.from_response({"access_token": "at", "refresh_token": ""}, "old")
        assert tokens.refresh_token == "old"

    def test_secrets_not_in_repr(self) -> None:
        tokens = TokenSet.from_response({"access_token": "at-secret", "refresh_token": "rt-secret"})
        assert "at-secret" not in repr(tokens)
        assert "rt-secret" not in repr(tokens)

    def test_is_expired(self) -> None:
        assert not TokenSet(access_token="at").is_expired()
        assert not TokenSet(access_token="at", expires_in=3600).is_expired()
        assert TokenSet(access_token="at", expires_in=10).is_expired(leeway=30)
        stale = TokenSet(access_token="at", expires_in=60, obtained_at=time.monotonic() - 3600)
        assert stale.is_expired()

    def test_obtained_at_not_serialized(self) -> None:
        tokens = TokenSet.from_response({"access_token": "at", "expires_in": 60})
        assert "obtained_at" not in tokens.model_dump()
        assert "obtained_at" not in tokens.model_dump_json()
        assert tokens.obtained_at > 0

    def test_frozen(self) -> None:
        tokens = TokenSet(access_token="at")
        with pytest.raises(pydantic.ValidationError):
            tokens.access_token = "other"


class TestPrivilegePolicy:
    def test_from_mapping_normalises_names(self) -> None:
        policy = PrivilegePolicy.from_mapping({" Admin ": 1})
        assert policy.levels == {"admin": 1}
        assert policy.level_for("ADMIN") == 1
        assert policy.level_for("guest") is None

    def test_identity_frozen(self) -> None:
        identity = NormalizedIdentity(email="a@example.com")
        with pytest.raises(pydantic.ValidationError):
            identity.email = "b@example.com"


class TestExceptions:
    def test_code_and_kind(self) -> None:
        err = TokenExchangeError("boom", code="refresh_exchange_failed", status=401)
        assert err.code == err.kind == "refresh_exchange_failed"
        assert err.status == 401
        assert err.exit_code == EXIT_AUTH_FAILURE
        assert isinstance(err, PkceFlowError)
        assert "refresh_exchange_failed" in repr(err)

    def test_class_defaults(self) -> None:
        assert ConfigError("x").exit_code == EXIT_INVALID_USAGE
        assert TransportError("x").code == "transport_failed"
        assert TransportError("x").exit_code == EXIT_CONNECTION_ERROR
        assert TokenExchangeError("x").code == "token_exchange_failed"

    def test_authorization_denied_message(self) -> None:
        err = AuthorizationDeniedError("access_denied", "User said no")
        assert str(err) == "Authorization failed: access_denied - User said no"
        assert str(AuthorizationDeniedError("access_denied")) == "Authorization failed: access_denied"

    def test_override_does_not_leak_to_class(self) -> None:
        TokenExchangeError("x", code="missing_code_verifier")
        assert TokenExchangeError.code == "token_exchange_failed"
