"""Hardened synchronous HTTP transport.

This module provides :class:`HttpTransport`, the only component of pkceflow
that talks to the network. It wraps :class:`httpx.Client` and layers on:

- **URL validation** -- only absolute ``http``/``https`` URLs are
  dispatched; anything else (``file://``, relative paths) is refused
  before a connection is attempted.
- **Header-injection prevention** -- header names and values containing
  CR or LF, or any non-ASCII character, are refused before dispatch.
- **TLS enforcement** -- certificate verification is always on and cannot
  be turned off through this API.
- **Redirect suppression** -- redirects are never followed; a 3xx response
  is returned to the caller like any other status.
- **Bounded timeouts** -- 10 s to connect, 20 s overall by default.

Every call is exactly one round trip: no retry, no backoff. A response with
a 4xx/5xx status is *returned*; interpreting it is the caller's job. Only a
failure to complete the exchange raises :class:`~pkceflow.exceptions.TransportError`.

See Also:
    :class:`Transport` for the interface :class:`~pkceflow.flow.AuthFlow`
    depends on.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, NamedTuple, Optional, Protocol
from urllib.parse import quote, urlencode, urlsplit

import httpx

from pkceflow.exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
DEFAULT_CONNECT_TIMEOUT = 10.0

_ALLOWED_SCHEMES = ("http", "https")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class HttpResult(NamedTuple):
    """Status code and decoded body of one HTTP exchange."""

    status: int
    body: str


class Transport(Protocol):
    """Interface the flow engine needs from an HTTP transport."""

    def post_form(
        self,
        url: str,
        fields: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResult: ...

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HttpResult: ...


class HttpTransport:
    """Synchronous HTTPS transport for token and user-info requests.

    The underlying :class:`httpx.Client` is created lazily on first use and
    reused for later calls; use the transport as a context manager (or call
    :meth:`close`) to release its connection pool.

    Args:
        timeout: Overall per-request timeout in seconds.
        connect_timeout: Connection-establishment timeout in seconds.
        transport: Optional :class:`httpx.BaseTransport` to send requests
            through (tests pass an :class:`httpx.MockTransport`). TLS
            verification and redirect settings still apply.

    Example::

        with HttpTransport() as http:
            result = http.get("https://idp.example/userinfo",
                              {"Authorization": "Bearer abc"})
            print(result.status, result.body)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the pooled client. The transport may be reused afterwards."""
        if self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def post_form(
        self,
        url: str,
        fields: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResult:
        """POST *fields* as ``application/x-www-form-urlencoded``.

        Args:
            url: Absolute ``http``/``https`` URL.
            fields: Form fields; values are converted with ``str()``.
            headers: Extra request headers, overriding the defaults
                (``Content-Type`` and ``Accept: application/json``).

        Returns:
            The response status and body.

        Raises:
            TransportError: On an invalid URL or header, or a network failure.
        """
        self._assert_valid_url(url)
        merged = self._merge_headers(
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
            headers,
        )
        content = urlencode(
            {key: str(value) for key, value in fields.items()},
            quote_via=quote,
        )
        return self._send("POST", url, merged, content)

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HttpResult:
        """Send a GET request.

        Args:
            url: Absolute ``http``/``https`` URL.
            headers: Extra request headers, overriding ``Accept: application/json``.

        Returns:
            The response status and body.

        Raises:
            TransportError: On an invalid URL or header, or a network failure.
        """
        self._assert_valid_url(url)
        merged = self._merge_headers({"Accept": "application/json"}, headers)
        return self._send("GET", url, merged, None)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "timeout": self._timeout,
                "verify": True,
                "follow_redirects": False,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.Client(**kwargs)
        return self._client

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: Optional[str],
    ) -> HttpResult:
        client = self._get_client()
        logger.debug("%s %s", method, _redact_query(url))
        try:
            response = client.request(method, url, headers=headers, content=content)
        except httpx.RequestError as exc:
            reason = _failure_reason(exc)
            raise TransportError(
                f"{method} {_redact_query(url)} failed: {str(exc) or reason}",
                code="transport_failed",
                reason=reason,
            ) from exc
        except httpx.InvalidURL as exc:
            raise TransportError(
                f"Request URL is not valid: {exc}", code="transport_invalid_url"
            ) from exc
        logger.debug("%s %s -> %d", method, _redact_query(url), response.status_code)
        return HttpResult(status=response.status_code, body=response.text)

    @staticmethod
    def _assert_valid_url(url: str) -> None:
        """Refuse anything but an absolute http/https URL."""
        try:
            parts = urlsplit(url)
            host = parts.hostname
        except ValueError as exc:
            raise TransportError(
                "Request URL must be an absolute URL", code="transport_invalid_url"
            ) from exc

        if not parts.scheme:
            raise TransportError(
                "Request URL must be an absolute URL", code="transport_invalid_url"
            )
        if parts.scheme.lower() not in _ALLOWED_SCHEMES:
            raise TransportError(
                "Only http/https URLs are supported", code="transport_invalid_url_scheme"
            )
        if not host:
            raise TransportError(
                "Request URL must be an absolute URL", code="transport_invalid_url"
            )

    @staticmethod
    def _merge_headers(
        defaults: dict[str, str],
        headers: Optional[Mapping[str, str]],
    ) -> dict[str, str]:
        """Merge caller headers over *defaults*, refusing CR/LF and non-ASCII text."""
        merged = dict(defaults)
        merged.update(headers or {})
        for name, value in merged.items():
            name, value = str(name), str(value)
            if any(ch in name or ch in value for ch in ("\r", "\n")):
                raise TransportError(
                    "Header names/values must not contain CR/LF characters",
                    code="transport_invalid_header",
                )
            if not (name.isascii() and value.isascii()):
                raise TransportError(
                    "Header names/values must be ASCII",
                    code="transport_invalid_header",
                )
        return {str(name): str(value) for name, value in merged.items()}


def _failure_reason(exc: httpx.RequestError) -> str:
    """Map an httpx exception class to a stable snake_case reason.

    ``ConnectTimeout`` becomes ``connect_timeout``, ``ConnectError``
    becomes ``connect_error``, ``DecodingError`` becomes
    ``decoding_error``, and so on.
    """
    return _CAMEL_BOUNDARY.sub("_", type(exc).__name__).lower()


def _redact_query(url: str) -> str:
    """Drop the query string so codes and tokens never reach the logs."""
    return url.split("?", 1)[0]
