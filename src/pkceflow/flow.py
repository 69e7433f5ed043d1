"""OAuth2 Authorization Code flow with PKCE.

This module provides :class:`AuthFlow`, the flow engine of pkceflow. It
implements the relying-party side of the Authorization Code grant with
PKCE (:rfc:`7636`) across two HTTP requests of the integrating application:

1. :meth:`AuthFlow.build_authorization_url` generates ``state`` and the
   PKCE pair, stores them in the session, and returns the URL to redirect
   the browser to.
2. :meth:`AuthFlow.handle_callback` receives the redirect-back query,
   checks ``state`` against the session (CSRF defence), exchanges the code
   for tokens, fetches user info, and normalizes it.

The engine never retries and never catches an error from a lower layer to
reinterpret it: every failure propagates as a
:class:`~pkceflow.exceptions.PkceFlowError` subclass with a stable ``code``.

Also exports :func:`raise_for_provider_error`, which the caller runs on the
callback query *before* :meth:`~AuthFlow.handle_callback` to turn an
``error=...`` redirect into :class:`~pkceflow.exceptions.AuthorizationDeniedError`.
"""

from __future__ import annotations

import hmac
import json
import logging
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote, urlencode

from pkceflow.client.transport import HttpResult, HttpTransport, Transport
from pkceflow.exceptions import (
    AuthorizationDeniedError,
    CallbackError,
    StateMismatchError,
    TokenExchangeError,
    UserInfoError,
)
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
from pkceflow.pkce import derive_code_challenge, generate_code_verifier, generate_state
from pkceflow.session import SessionStore

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "pkceflow_oauth_state"
SESSION_VERIFIER_KEY = "pkceflow_oauth_code_verifier"


class AuthFlow:
    """Relying-party side of the Authorization Code + PKCE grant.

    One instance can serve many login attempts; the per-attempt values live
    in the session store. :attr:`status` tracks the most recent attempt
    driven through this instance.

    Args:
        config: Validated configuration from :func:`pkceflow.config.load_config`.
        session: Store for ``state`` and ``code_verifier`` between the two
            requests. Without one, nothing is persisted and callers must
            pass the verifier explicitly.
        transport: HTTP transport; defaults to a new
            :class:`~pkceflow.client.transport.HttpTransport`, which
            :meth:`close` releases. Use the flow as a context manager to
            close it automatically.
        policy: Privilege table used when normalizing identities.

    Example::

        flow = AuthFlow(config, session=MappingSession(request.session))
        redirect_to(flow.build_authorization_url().url)
        ...
        raise_for_provider_error(request.query)
        outcome = flow.handle_callback(request.query)
        login(outcome.user.email)
    """

    def __init__(
        self,
        config: Configuration,
        session: Optional[SessionStore] = None,
        transport: Optional[Transport] = None,
        policy: PrivilegePolicy = DEFAULT_PRIVILEGE_POLICY,
    ) -> None:
        self._config = config
        self._session = session
        self._owned_transport: Optional[HttpTransport] = None
        if transport is None:
            transport = self._owned_transport = HttpTransport()
        self._transport: Transport = transport
        self._policy = policy
        self.status = FlowStatus.INITIATED

    @property
    def config(self) -> Configuration:
        return self._config

    def __enter__(self) -> AuthFlow:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP transport this flow created.

        A transport passed to the constructor belongs to the caller and is
        left open.
        """
        if self._owned_transport is not None:
            self._owned_transport.close()

    # ------------------------------------------------------------------ #
    # Step 1: authorization request
    # ------------------------------------------------------------------ #

    def build_authorization_url(
        self,
        *,
        state: Optional[str] = None,
        code_verifier: Optional[str] = None,
        scope: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
        persist: bool = True,
    ) -> AuthorizationRequest:
        """Generate state and PKCE material and compose the authorization URL.

        No network call is made.

        Args:
            state: Caller-supplied state; random 16-byte hex when omitted.
            code_verifier: Caller-supplied verifier; random when omitted.
            scope: Scope override; defaults to ``config.default_scope``.
            extra: Additional query parameters, merged last so they can
                override the standard ones. ``None`` values are dropped.
            persist: Store ``state`` and ``code_verifier`` in the session.

        Returns:
            The URL together with the state, verifier and challenge.
        """
        state = generate_state() if state is None else state
        code_verifier = generate_code_verifier() if code_verifier is None else code_verifier
        code_challenge = derive_code_challenge(code_verifier)

        if persist and self._session is not None:
            self._session.set(SESSION_STATE_KEY, state)
            self._session.set(SESSION_VERIFIER_KEY, code_verifier)

        query: dict[str, Any] = {
            "response_type": "code",
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "scope": self._config.default_scope if scope is None else scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        query.update({key: value for key, value in (extra or {}).items() if value is not None})

        base = self._config.authorize_url
        separator = "&" if "?" in base else "?"
        url = f"{base}{separator}{urlencode(query, quote_via=quote)}"

        self.status = FlowStatus.AWAITING_CALLBACK
        logger.debug("Built authorization URL for client %s", self._config.client_id)
        return AuthorizationRequest(
            url=url,
            state=state,
            code_verifier=code_verifier,
            code_challenge=code_challenge,
        )

    # ------------------------------------------------------------------ #
    # Step 2: callback
    # ------------------------------------------------------------------ #

    def assert_state_matches(self, state: str) -> None:
        """Check *state* against the value persisted by step 1.

        Callers must reject any callback that fails this check.

        Raises:
            StateMismatchError: If no state was persisted or it differs.
        """
        expected = self._session.get(SESSION_STATE_KEY) if self._session is not None else None
        if not isinstance(expected, str) or not hmac.compare_digest(
            expected.encode("utf-8"), state.encode("utf-8")
        ):
            raise StateMismatchError("The OAuth state did not match the session value")

    def exchange_code_for_tokens(
        self,
        code: str,
        code_verifier: Optional[str] = None,
    ) -> TokenSet:
        """Exchange an authorization code for tokens.

        Args:
            code: The ``code`` from the callback query.
            code_verifier: Explicit verifier; read from the session when omitted.

        Returns:
            The parsed :class:`~pkceflow.models.TokenSet`.

        Raises:
            TokenExchangeError: ``missing_code_verifier``,
                ``token_exchange_failed``, ``token_response_invalid_json``
                or ``token_response_incomplete``.
            TransportError: On network failure.
        """
        verifier = code_verifier
        if verifier is None and self._session is not None:
            verifier = self._session.get(SESSION_VERIFIER_KEY)
        if not isinstance(verifier, str) or not verifier:
            raise TokenExchangeError(
                "Missing code verifier; pass one explicitly or persist it in session.",
                code="missing_code_verifier",
            )

        fields = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
            "client_id": self._config.client_id,
            "code_verifier": verifier,
        }
        self._add_client_secret(fields)

        result = self._transport.post_form(self._config.token_url, fields)
        data = self._decode_provider_response(
            result,
            TokenExchangeError,
            failure=("token_exchange_failed", "Token endpoint error"),
            invalid=("token_response_invalid_json", "Token endpoint returned invalid JSON"),
        )
        self._require_access_token(data, "token_response_incomplete", "Token response")
        return TokenSet.from_response(data)

    def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """Obtain new tokens with a refresh token.

        If the provider does not rotate the refresh token, the returned set
        keeps *refresh_token*.

        Raises:
            TokenExchangeError: ``refresh_exchange_failed``,
                ``refresh_response_invalid_json`` or ``refresh_response_incomplete``.
            TransportError: On network failure.
        """
        fields = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._config.client_id,
        }
        self._add_client_secret(fields)

        result = self._transport.post_form(self._config.token_url, fields)
        data = self._decode_provider_response(
            result,
            TokenExchangeError,
            failure=("refresh_exchange_failed", "Refresh token error"),
            invalid=("refresh_response_invalid_json", "Refresh token response was not valid JSON"),
        )
        self._require_access_token(data, "refresh_response_incomplete", "Refresh token response")
        return TokenSet.from_response(data, fallback_refresh_token=refresh_token)

    def get_user_info(self, access_token: str) -> dict[str, Any]:
        """Fetch the raw user-info payload with a bearer token.

        Raises:
            UserInfoError: ``userinfo_url_missing``, ``userinfo_request_failed``
                or ``userinfo_invalid_json``.
            TransportError: On network failure or a header-unsafe token.
        """
        if not self._config.user_info_url:
            raise UserInfoError(
                "UserInfo URL has not been configured", code="userinfo_url_missing"
            )

        result = self._transport.get(
            self._config.user_info_url,
            {"Authorization": f"Bearer {access_token}"},
        )
        return self._decode_provider_response(
            result,
            UserInfoError,
            failure=("userinfo_request_failed", "UserInfo endpoint error"),
            invalid=("userinfo_invalid_json", "UserInfo response was not valid JSON"),
        )

    def get_normalized_user_info(self, access_token: str) -> NormalizedIdentity:
        """Fetch user info and normalize it."""
        return normalize(self.get_user_info(access_token), self._policy)

    def exchange_code_and_fetch_user(
        self,
        code: str,
        code_verifier: Optional[str] = None,
    ) -> ExchangeOutcome:
        """Exchange *code* and fetch the raw user info, without a state check."""
        tokens = self.exchange_code_for_tokens(code, code_verifier)
        return ExchangeOutcome(tokens=tokens, user=self.get_user_info(tokens.access_token))

    def handle_callback(
        self,
        query: Mapping[str, Any],
        clear_pkce: bool = True,
    ) -> CallbackOutcome:
        """Complete a login from the redirect-back query parameters.

        Runs the state check, the code exchange, the user-info fetch and
        normalization in that order; the first failure aborts the rest and
        propagates unchanged. Provider ``error`` redirects should be handled
        first with :func:`raise_for_provider_error`.

        Args:
            query: Parsed query string. Values may be strings or, as
                produced by :func:`urllib.parse.parse_qs`, lists of strings.
            clear_pkce: Remove the persisted state and verifier once user
                info has been fetched, whether or not normalization succeeds.

        Returns:
            The tokens, normalized identity, and raw user info.

        Raises:
            CallbackError: If ``code`` or ``state`` is missing.
            PkceFlowError: Whatever the failing step raised.
        """
        code = _query_value(query, "code")
        state = _query_value(query, "state")
        if not code or not state:
            self.status = FlowStatus.FAILED
            raise CallbackError("Missing code/state in callback query")

        try:
            self.assert_state_matches(state)
            self._transition(FlowStatus.STATE_VERIFIED)

            tokens = self.exchange_code_for_tokens(code)
            self._transition(FlowStatus.TOKENS_EXCHANGED)

            raw_user = self.get_user_info(tokens.access_token)
            try:
                user = normalize(raw_user, self._policy)
            finally:
                if clear_pkce:
                    self.clear_pkce_session_state()
        except Exception:
            logger.debug("Callback failed after status %s", self.status.value)
            self.status = FlowStatus.FAILED
            raise

        self._transition(FlowStatus.USERINFO_FETCHED)
        return CallbackOutcome(tokens=tokens, user=user, raw_user=raw_user)

    def clear_pkce_session_state(self) -> None:
        """Remove the persisted state and verifier. Safe to call repeatedly."""
        if self._session is None:
            return
        self._session.delete(SESSION_STATE_KEY)
        self._session.delete(SESSION_VERIFIER_KEY)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _transition(self, status: FlowStatus) -> None:
        logger.debug("Flow %s -> %s", self.status.value, status.value)
        self.status = status

    def _add_client_secret(self, fields: dict[str, str]) -> None:
        if self._config.client_secret:
            fields["client_secret"] = self._config.client_secret

    @staticmethod
    def _decode_provider_response(
        result: HttpResult,
        error_cls: type[TokenExchangeError] | type[UserInfoError],
        failure: tuple[str, str],
        invalid: tuple[str, str],
    ) -> dict[str, Any]:
        """Interpret a provider response as a JSON object or raise *error_cls*.

        A status >= 400 wins over a malformed body: the error message then
        carries the JSON-encoded body when it parses, or the raw text.
        """
        try:
            data: Any = json.loads(result.body)
            parsed = True
        except ValueError:
            data = None
            parsed = False

        if result.status >= 400:
            detail = json.dumps(data) if parsed and isinstance(data, (dict, list)) else result.body
            code, prefix = failure
            raise error_cls(
                f"{prefix} ({result.status}): {detail}",
                code=code,
                status=result.status,
                body=data if parsed else result.body,
            )

        if not isinstance(data, dict):
            code, message = invalid
            raise error_cls(message, code=code, status=result.status, body=result.body)

        return data

    @staticmethod
    def _require_access_token(data: dict[str, Any], code: str, label: str) -> None:
        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise TokenExchangeError(
                f"{label} missing 'access_token' field", code=code, body=data
            )


def raise_for_provider_error(query: Mapping[str, Any]) -> None:
    """Raise if the authorization server redirected back with ``error``.

    Run this on the callback query before :meth:`AuthFlow.handle_callback`.

    Raises:
        AuthorizationDeniedError: Carrying ``error`` and ``error_description``.
    """
    error = _query_value(query, "error")
    if error:
        raise AuthorizationDeniedError(error, _query_value(query, "error_description"))


def _query_value(query: Mapping[str, Any], key: str) -> Optional[str]:
    """Return a single string value for *key*, unwrapping ``parse_qs`` lists."""
    value = query.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value)
