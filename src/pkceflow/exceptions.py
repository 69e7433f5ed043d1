"""Exception hierarchy for pkceflow.

All exceptions inherit from :class:`PkceFlowError`, which carries a stable,
machine-readable ``code`` (also exposed as ``kind``) next to the
human-readable message, and an ``exit_code`` mapped to a constant from
:mod:`pkceflow.exit_codes` for the command line.

Errors are terminal: the library never retries, and it never catches and
reinterprets an error raised by a lower layer. Callers that want to retry
must start a fresh authorization request (new state and PKCE material).

Subclass hierarchy::

    PkceFlowError              (exit 1)
    +-- ConfigError            (exit 2)  config_invalid
    +-- CallbackError          (exit 2)  missing_callback_params
    +-- StateMismatchError     (exit 3)  state_mismatch
    +-- AuthorizationDeniedError (exit 3) authorization_denied
    +-- TokenExchangeError     (exit 3)  missing_code_verifier, token_*, refresh_*
    +-- UserInfoError          (exit 4)  userinfo_*
    +-- IdentityError          (exit 4)  missing_email
    +-- TransportError         (exit 6)  transport_*
"""

from __future__ import annotations

from typing import Any, Optional

from pkceflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_USERINFO_FAILURE,
)


class PkceFlowError(Exception):
    """Base exception for all pkceflow errors.

    Every subclass sets a class-level ``code`` (its most common error code)
    and ``exit_code``. Raise sites pass a more specific ``code`` when one
    class covers several failure kinds.

    Args:
        message: Human-readable error description.
        code: Optional override for the class-level error code.
        exit_code: Optional override for the class-level exit code.
    """

    code: str = "error"
    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def kind(self) -> str:
        """Alias for :attr:`code`."""
        return self.code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ConfigError(PkceFlowError):
    """Raised for missing, malformed, or insecure configuration values.

    Args:
        message: Human-readable error description.
        field: Name of the offending configuration key, when known.
    """

    code = "config_invalid"
    exit_code = EXIT_INVALID_USAGE

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CallbackError(PkceFlowError):
    """Raised when the redirect-back query lacks ``code`` or ``state``."""

    code = "missing_callback_params"
    exit_code = EXIT_INVALID_USAGE


class StateMismatchError(PkceFlowError):
    """Raised when the callback ``state`` does not match the persisted value."""

    code = "state_mismatch"
    exit_code = EXIT_AUTH_FAILURE


class AuthorizationDeniedError(PkceFlowError):
    """Raised when the authorization server redirected back with ``error``."""

    code = "authorization_denied"
    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, error: str, description: Optional[str] = None):
        message = f"Authorization failed: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class _ProviderResponseError(PkceFlowError):
    """Error carrying the HTTP status and body of a provider response."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message, code=code)
        self.status = status
        self.body = body


class TokenExchangeError(_ProviderResponseError):
    """Raised when a code exchange or token refresh fails."""

    code = "token_exchange_failed"
    exit_code = EXIT_AUTH_FAILURE


class UserInfoError(_ProviderResponseError):
    """Raised when the user-info endpoint is unset, fails, or returns garbage."""

    code = "userinfo_request_failed"
    exit_code = EXIT_USERINFO_FAILURE


class IdentityError(PkceFlowError):
    """Raised when a user-info payload cannot be normalized (no usable email)."""

    code = "missing_email"
    exit_code = EXIT_USERINFO_FAILURE


class TransportError(PkceFlowError):
    """Raised on rejected requests or network-level failures.

    Args:
        message: Human-readable error description.
        code: One of ``transport_invalid_url``, ``transport_invalid_url_scheme``,
            ``transport_invalid_header`` or ``transport_failed``.
        reason: For ``transport_failed``, a stable snake_case name of the
            underlying failure (``connect_timeout``, ``connect_error``, ...).
    """

    code = "transport_failed"
    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message, code=code)
        self.reason = reason
