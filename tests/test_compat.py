"""Tests for the flat-mapping LegacyAuthClient facade."""

from __future__ import annotations

from typing import Any

import pytest

from pkceflow.compat import LegacyAuthClient
from pkceflow.exceptions import ConfigError, StateMismatchError
from pkceflow.flow import SESSION_STATE_KEY


TOKEN_URL = "https://idp.example/oauth/token"
USERINFO_URL = "https://idp.example/oauth/userinfo"


@pytest.fixture
def client(raw_config: dict[str, Any], session, transport) -> LegacyAuthClient:
    return LegacyAuthClient(raw_config, session=session, transport=transport)


def test_invalid_config_rejected(raw_config: dict[str, Any]) -> None:
    raw_config["clientId"] = ""
    with pytest.raises(ConfigError):
        LegacyAuthClient(raw_config)


def test_get_authorization_url(client: LegacyAuthClient, session) -> None:
    result = client.get_authorization_url({"scope": "openid", "extra": {"prompt": "none"}})
    assert set(result) == {"url", "state", "code_verifier", "code_challenge"}
    assert "scope=openid&" in result["url"]
    assert "prompt=none" in result["url"]
    assert session.get(SESSION_STATE_KEY) == result["state"]


def test_get_authorization_url_without_persist(client: LegacyAuthClient, session) -> None:
    client.get_authorization_url({"persist": False})
    assert len(session) == 0


def test_handle_callback_returns_flat_mapping(client: LegacyAuthClient, provider) -> None:
    provider.route("POST", TOKEN_URL, json_body={"access_token": "at", "id_token": "it"})
    provider.route("GET", USERINFO_URL, json_body={"email": "A@Example.com", "role": "member"})
    state = client.get_authorization_url()["state"]

    result = client.handle_callback({"code": "c", "state": state})

    assert result["tokens"] == {"access_token": "at", "id_token": "it"}
    assert result["user"] == {
        "email": "a@example.com",
        "privilege_level": 2,
        "role": "member",
        "raw": {"email": "A@Example.com", "role": "member"},
    }
    assert result["raw_user"] == {"email": "A@Example.com", "role": "member"}


def test_handle_callback_state_mismatch(client: LegacyAuthClient, provider) -> None:
    client.get_authorization_url()
    with pytest.raises(StateMismatchError):
        client.handle_callback({"code": "c", "state": "other"})
    assert provider.requests == []


def test_token_methods_return_raw_payload(client: LegacyAuthClient, provider) -> None:
    provider.route("POST", TOKEN_URL, json_body={"access_token": "at", "extra": "x"})
    assert client.exchange_code_for_tokens("c", "v") == {"access_token": "at", "extra": "x"}
    assert client.refresh_access_token("rt") == {"access_token": "at", "extra": "x"}


def test_user_info_methods(client: LegacyAuthClient, provider) -> None:
    provider.route("GET", USERINFO_URL, json_body={"upn": "U@Example.com"})
    assert client.get_user_info("at") == {"upn": "U@Example.com"}
    assert client.get_normalized_user_info("at")["email"] == "u@example.com"


def test_close_releases_owned_transport(raw_config: dict[str, Any]) -> None:
    client = LegacyAuthClient(raw_config)
    owned = client.flow._owned_transport
    owned._get_client()
    client.close()
    assert owned._client is None
