"""Numeric process exit codes used by the ``pkceflow`` command line.

Each constant maps to an error category and is referenced by the
corresponding :class:`~pkceflow.exceptions.PkceFlowError` subclass.
Shell wrappers can inspect the exit code to tell a rejected configuration
apart from a provider refusal or a network failure without parsing stderr.

Example::

    $ pkceflow refresh "$REFRESH_TOKEN"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token endpoint rejected the grant
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, configuration, or callback parameters."""

EXIT_AUTH_FAILURE = 3
"""The authorization server rejected the request or the state check failed."""

EXIT_USERINFO_FAILURE = 4
"""The user-info endpoint failed or returned an unusable identity."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, TLS, connection refused)."""
