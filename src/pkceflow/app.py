"""Typer application and CLI entry point for pkceflow.

The ``pkceflow`` command is a developer tool for exercising a provider
configuration by hand: build an authorization URL, paste the returned code
into ``exchange``, refresh tokens, and inspect user info as the library
would normalize it.

Every command except ``normalize`` needs a configuration. It is read from
``--config`` (JSON or YAML), falling back to ``$PKCEFLOW_CONFIG``, and
finally to ``PKCEFLOW_*`` environment variables alone.

Errors raised by the library are printed to stderr and mapped to the
error's ``exit_code`` (see :mod:`pkceflow.exit_codes`).
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from pkceflow import __version__
from pkceflow.exceptions import PkceFlowError
from pkceflow.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE


app = typer.Typer(
    name="pkceflow",
    help="OAuth2 Authorization Code + PKCE helper.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    envvar="PKCEFLOW_CONFIG",
    help="JSON or YAML config file. Defaults to PKCEFLOW_* environment variables.",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pkceflow {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Configure output and logging before every sub-command."""
    from pkceflow.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("authorize-url")
def authorize_url(
    config: Optional[Path] = _CONFIG_OPTION,
    scope: Optional[str] = typer.Option(None, "--scope", help="Override the configured scope."),
    state: Optional[str] = typer.Option(None, "--state", help="Use this state instead of a random one."),
    params: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Extra query parameter as key=value (repeatable)."
    ),
) -> None:
    """Print an authorization URL with fresh state and PKCE material.

    Keep the printed ``code_verifier``: ``pkceflow exchange`` needs it.
    """
    from pkceflow.output import format_response, info

    try:
        extra = _parse_params(params or [])
        with _make_flow(config) as flow:
            request = flow.build_authorization_url(
                state=state, scope=scope, extra=extra, persist=False
            )
    except PkceFlowError as exc:
        _fail(exc)

    info("Open the URL in a browser, then run: pkceflow exchange CODE --verifier VERIFIER")
    format_response(request.model_dump())


@app.command("exchange")
def exchange(
    code: str = typer.Argument(help="Authorization code from the callback."),
    verifier: str = typer.Option(..., "--verifier", help="PKCE code_verifier printed by authorize-url."),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Exchange an authorization code for tokens and print the provider response."""
    from pkceflow.output import format_response, success

    try:
        with _make_flow(config) as flow:
            tokens = flow.exchange_code_for_tokens(code, verifier)
    except PkceFlowError as exc:
        _fail(exc)

    success("Token exchange succeeded")
    format_response(tokens.raw)


@app.command("refresh")
def refresh(
    refresh_token: str = typer.Argument(help="Refresh token to redeem."),
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Redeem a refresh token and print the provider response."""
    from pkceflow.output import format_response, success

    try:
        with _make_flow(config) as flow:
            tokens = flow.refresh_access_token(refresh_token)
    except PkceFlowError as exc:
        _fail(exc)

    success("Token refresh succeeded")
    format_response(tokens.raw)


@app.command("userinfo")
def userinfo(
    access_token: str = typer.Argument(help="Access token for the user-info endpoint."),
    config: Optional[Path] = _CONFIG_OPTION,
    normalized: bool = typer.Option(
        False, "--normalize", help="Print the normalized identity instead of the raw payload."
    ),
) -> None:
    """Fetch user info with an access token."""
    from pkceflow.output import format_response

    try:
        with _make_flow(config) as flow:
            if normalized:
                data: Any = flow.get_normalized_user_info(access_token).model_dump()
            else:
                data = flow.get_user_info(access_token)
    except PkceFlowError as exc:
        _fail(exc)

    format_response(data)


@app.command("normalize")
def normalize_command(
    source: str = typer.Argument(help="JSON file holding a user-info payload, or '-' for stdin."),
) -> None:
    """Normalize a saved user-info payload without contacting the provider."""
    from pkceflow.normalizer import normalize
    from pkceflow.output import error, format_response

    try:
        content = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
        payload = json.loads(content)
    except (OSError, ValueError) as exc:
        error(f"Cannot read payload from {source}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    if not isinstance(payload, dict):
        error("User-info payload must be a JSON object")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        identity = normalize(payload)
    except PkceFlowError as exc:
        _fail(exc)

    format_response(identity.model_dump(exclude={"raw"}))


@app.command("check-config")
def check_config(config: Optional[Path] = _CONFIG_OPTION) -> None:
    """Validate a configuration and print the effective values."""
    from pkceflow.output import format_response, success, warning

    try:
        cfg = _load(config)
    except PkceFlowError as exc:
        _fail(exc)

    if cfg.allow_insecure_http:
        warning("allowInsecureHttp is enabled; plaintext http is accepted for loopback hosts")
    if not cfg.user_info_url:
        warning("userInfoUrl is not set; callbacks cannot fetch user info")
    success("Configuration is valid")
    data = cfg.model_dump(exclude={"client_secret"})
    data["client_secret_set"] = cfg.client_secret is not None
    format_response(data)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _load(config: Optional[Path]):
    from pkceflow.config import config_from_env, load_config_file

    if config is not None:
        return load_config_file(config)
    return config_from_env()


def _make_flow(config: Optional[Path]):
    from pkceflow.flow import AuthFlow

    return AuthFlow(_load(config))


def _parse_params(params: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict."""
    from pkceflow.exceptions import ConfigError

    extra: dict[str, str] = {}
    for item in params:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigError(f"Invalid --param {item!r}; expected key=value", field="param")
        extra[key] = value
    return extra


def _fail(exc: PkceFlowError) -> NoReturn:
    """Report a library error and exit with its code."""
    from pkceflow.output import debug, error

    error(str(exc))
    debug(f"error code: {exc.code}")
    raise typer.Exit(code=exc.exit_code) from None


def main() -> None:
    """CLI entry point invoked by the ``pkceflow`` console script.

    Library errors that escape a command exit with the error's
    ``exit_code``; anything else exits with :data:`EXIT_GENERIC_FAILURE`.
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from pkceflow.output import error

        error(str(exc))
        if isinstance(exc, PkceFlowError):
            sys.exit(exc.exit_code)
        sys.exit(EXIT_GENERIC_FAILURE)
