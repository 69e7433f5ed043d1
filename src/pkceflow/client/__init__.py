"""HTTP transport for pkceflow.

Provides the hardened synchronous transport used by the flow engine to
reach the token and user-info endpoints.

Classes:
    :class:`HttpTransport` -- :mod:`httpx`-backed implementation.
    :class:`Transport` -- protocol describing what the flow engine needs.
    :class:`HttpResult` -- ``(status, body)`` pair returned by both.

Example::

    from pkceflow.client import HttpTransport

    with HttpTransport(timeout=15.0) as http:
        result = http.post_form("https://idp.example/token", {"grant_type": "..."})
"""

from pkceflow.client.transport import HttpResult, HttpTransport, Transport

__all__ = ["HttpResult", "HttpTransport", "Transport"]
