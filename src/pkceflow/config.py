"""Configuration validation and loading.

This module turns the flat mapping an integrator supplies into a validated
:class:`~pkceflow.models.Configuration`:

* **Validation** -- :func:`load_config` checks required keys, parses every
  endpoint URL, and refuses plaintext ``http`` unless the integrator opted
  in with ``allowInsecureHttp`` *and* the host is a loopback name.
* **Files** -- :func:`load_config_file` reads the same mapping from a JSON
  or YAML document.
* **Environment** -- ``PKCEFLOW_*`` variables override file values (see
  :data:`ENV_OVERRIDES`); :func:`config_from_env` builds a configuration
  from the environment alone.
* **Credential resolution** -- :func:`resolve_credential` reads the client
  secret from ``env:VAR`` or ``file:/path`` sources so secrets need not be
  written into configuration files.

Recognised keys::

    clientId, authorizeUrl, tokenUrl, redirectUri      (required)
    userInfoUrl, clientSecret, clientSecretSource, scope, allowInsecureHttp
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

import yaml

from pkceflow.exceptions import ConfigError
from pkceflow.models import DEFAULT_SCOPE, Configuration

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("clientId", "authorizeUrl", "tokenUrl", "redirectUri")

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})

ENV_OVERRIDES: dict[str, str] = {
    "PKCEFLOW_CLIENT_ID": "clientId",
    "PKCEFLOW_AUTHORIZE_URL": "authorizeUrl",
    "PKCEFLOW_TOKEN_URL": "tokenUrl",
    "PKCEFLOW_REDIRECT_URI": "redirectUri",
    "PKCEFLOW_USER_INFO_URL": "userInfoUrl",
    "PKCEFLOW_CLIENT_SECRET": "clientSecret",
    "PKCEFLOW_SCOPE": "scope",
    "PKCEFLOW_ALLOW_INSECURE_HTTP": "allowInsecureHttp",
}
"""Environment variable -> configuration key. Environment wins over files."""

_TRUTHY = frozenset({"1", "true", "yes", "on"})


# --- Validation ---


def load_config(raw: Mapping[str, Any]) -> Configuration:
    """Validate a raw configuration mapping.

    Args:
        raw: Flat mapping using the camelCase keys listed in the module
            docstring.

    Returns:
        The validated, immutable :class:`~pkceflow.models.Configuration`.

    Raises:
        ConfigError: If a required key is missing, empty, or not a string,
            or if any URL is malformed or insecure. ``exc.field`` names the
            offending key.
    """
    for key in REQUIRED_KEYS:
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{key} is required", field=key)

    allow_insecure = _as_bool(raw.get("allowInsecureHttp", False))

    authorize_url = raw["authorizeUrl"].strip().rstrip("/")
    token_url = raw["tokenUrl"].strip().rstrip("/")
    redirect_uri = raw["redirectUri"].strip()

    user_info_url: Optional[str] = None
    if raw.get("userInfoUrl") is not None:
        user_info_url = str(raw["userInfoUrl"]).strip().rstrip("/") or None

    _assert_secure_url(authorize_url, "authorizeUrl", allow_insecure)
    _assert_secure_url(token_url, "tokenUrl", allow_insecure)
    _assert_secure_url(redirect_uri, "redirectUri", allow_insecure)
    if user_info_url is not None:
        _assert_secure_url(user_info_url, "userInfoUrl", allow_insecure)

    client_secret: Optional[str] = None
    if raw.get("clientSecret") is not None:
        client_secret = str(raw["clientSecret"])
    elif raw.get("clientSecretSource"):
        client_secret = resolve_credential(str(raw["clientSecretSource"]))

    scope = raw.get("scope")
    default_scope = str(scope) if scope is not None else DEFAULT_SCOPE

    if allow_insecure:
        logger.debug("Plaintext http permitted for loopback hosts")

    return Configuration(
        client_id=raw["clientId"],
        authorize_url=authorize_url,
        token_url=token_url,
        redirect_uri=redirect_uri,
        user_info_url=user_info_url,
        client_secret=client_secret,
        default_scope=default_scope,
        allow_insecure_http=allow_insecure,
    )


def is_loopback_host(host: str) -> bool:
    """Return True if *host* is ``localhost``, ``127.0.0.1`` or ``::1``."""
    return host.strip().lower() in LOOPBACK_HOSTS


def _assert_secure_url(url: str, field: str, allow_insecure: bool) -> None:
    """Raise :class:`ConfigError` unless *url* is an acceptable endpoint URL."""
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
    except ValueError as exc:
        raise ConfigError(f"{field} must be a valid absolute URL: {exc}", field=field) from exc

    if not parts.scheme:
        raise ConfigError(f"{field} must be a valid absolute URL", field=field)

    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise ConfigError(f"{field} must use http or https", field=field)

    if not host:
        raise ConfigError(f"{field} must be a valid absolute URL", field=field)

    if scheme == "https":
        return

    if allow_insecure and is_loopback_host(host):
        return

    raise ConfigError(
        f"{field} must use https (set allowInsecureHttp=true for localhost development)",
        field=field,
    )


def _as_bool(value: Any) -> bool:
    """Interpret booleans, numbers and the usual string spellings."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


# --- Files and environment ---


def load_config_file(path: str | Path, environ: Optional[Mapping[str, str]] = None) -> Configuration:
    """Load and validate a configuration file, applying environment overrides.

    JSON is tried first, then YAML, so either format works regardless of the
    file extension.

    Args:
        path: Path to a JSON or YAML document holding a single mapping.
        environ: Environment to read ``PKCEFLOW_*`` overrides from.
            Defaults to :data:`os.environ`.

    Returns:
        The validated :class:`~pkceflow.models.Configuration`.

    Raises:
        ConfigError: If the file is missing, unreadable, not a mapping, or
            fails validation.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ConfigError(f"Config file not found: {file_path}")
    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {file_path}: {exc}") from exc

    data = _parse_mapping(content, str(file_path))
    data.update(_env_overrides(os.environ if environ is None else environ))
    logger.debug("Loaded configuration from %s", file_path)
    return load_config(data)


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> Configuration:
    """Build a configuration from ``PKCEFLOW_*`` environment variables only."""
    return load_config(_env_overrides(os.environ if environ is None else environ))


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect configuration keys set through the environment."""
    return {key: environ[var] for var, key in ENV_OVERRIDES.items() if var in environ}


def _parse_mapping(content: str, source: str) -> dict[str, Any]:
    """Parse *content* as a JSON or YAML mapping."""
    try:
        result = json.loads(content)
    except json.JSONDecodeError:
        try:
            result = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config file {source}: {exc}") from exc

    if not isinstance(result, dict):
        raise ConfigError(
            f"Config file {source} must contain a mapping "
            f"(got {type(result).__name__ if result is not None else 'empty document'})"
        )
    return result


# --- Credential resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Args:
        source: The source descriptor string.

    Returns:
        The resolved secret.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})",
                field="clientSecretSource",
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(
                f"Credential file not found: {path} (source: {source})",
                field="clientSecretSource",
            )
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(
                f"Cannot read credential file {path}: {exc}",
                field="clientSecretSource",
            ) from exc

    raise ConfigError(
        f"Unknown credential source: {source!r}. Use env:VAR or file:/path.",
        field="clientSecretSource",
    )
