"""Session-like key/value storage for state and PKCE material.

The flow engine persists two values between the request that builds the
authorization URL and the request that handles the callback. Where they
live (a signed cookie, a server-side session, a cache) is up to the
integrator; pkceflow only needs ``get``/``set``/``delete`` by string key.

* :class:`SessionStore` -- the protocol the flow engine depends on.
* :class:`InMemorySession` -- a dict-backed store for tests and scripts.
* :class:`MappingSession` -- adapts any ``MutableMapping`` (for example a
  web framework's ``request.session``) to the protocol.

Access is assumed to be serialized per browser session; concurrent
callbacks for the same session are not supported.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Optional, Protocol


class SessionStore(Protocol):
    """Minimal key/value interface used by :class:`~pkceflow.flow.AuthFlow`."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MappingSession:
    """Expose a ``MutableMapping`` through the :class:`SessionStore` protocol.

    Args:
        data: The mapping to read and write. It is used in place, not copied.

    Example::

        session = MappingSession(request.session)
        flow = AuthFlow(config, session=session)
    """

    def __init__(self, data: MutableMapping[str, Any]) -> None:
        self._data = data

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        """Remove *key*; missing keys are ignored."""
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class InMemorySession(MappingSession):
    """Session store backed by a private dict."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        super().__init__(dict(initial or {}))
