"""Typer application and CLI entry point for httpchain.

``httpchain send`` builds a :class:`~httpchain.client.Client` from the
active profile (or an ad-hoc base URL), sends one call through the
pipeline and prints the response body to stdout. ``httpchain profile``
manages the stored profiles.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from httpchain import __version__
from httpchain.exceptions import ConfigError, HttpChainError, InvalidUsageError
from httpchain.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from httpchain.output import debug, error, format_response, info, print_table, success, warning

app = typer.Typer(
    name="httpchain",
    help="Send HTTP requests through a configurable handler and retry pipeline.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

profile_app = typer.Typer(no_args_is_help=True)
app.add_typer(profile_app, name="profile", help="Profile management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"httpchain {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    """Route library logging to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


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
    """Initialise output formatting and logging before every sub-command."""
    from httpchain.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _setup_logging(verbose)


# ------------------------------------------------------------------ #
# send
# ------------------------------------------------------------------ #


def _split_pair(raw: str, separator: str, option: str) -> tuple[str, str]:
    if separator not in raw:
        raise InvalidUsageError(f"Invalid {option} '{raw}': expected 'name{separator}value'")
    name, value = raw.split(separator, 1)
    name = name.strip()
    if not name:
        raise InvalidUsageError(f"Invalid {option} '{raw}': name is empty")
    return name, value.strip()


def _parse_body(body: Optional[str]) -> Any:
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"--json is not valid JSON: {exc}") from exc


async def _send(
    method: str,
    path: str,
    queries: list[str],
    headers: list[str],
    body: Optional[str],
    retry_on: list[int],
    retries: Optional[int],
    ensure_success: bool,
    snake_case: bool,
    profile_name: Optional[str],
    base_url: Optional[str],
    cancel_after: Optional[float],
) -> None:
    from httpchain.cancellation import CancellationToken
    from httpchain.config import resolve_profile
    from httpchain.factory import build_client
    from httpchain.logwriter import OutputLogWriter
    from httpchain.serialization import NamingStrategy

    profile = resolve_profile(profile_name, base_url)
    if profile is None:
        raise ConfigError(
            "No profile selected. Pass --profile, --base-url, or create one with "
            "'httpchain profile add'."
        )

    if retry_on or retries is not None:
        profile = profile.model_copy(deep=True)
        profile.retry.enabled = True
        if retry_on:
            profile.retry.status_codes = list(retry_on)
        if retries is not None:
            profile.retry.budget = retries

    data = _parse_body(body)
    method = method.upper()
    strategy = NamingStrategy.SNAKE if snake_case else NamingStrategy.NONE

    token = CancellationToken()
    if cancel_after is not None:
        token.cancel_after(cancel_after)

    async with build_client(profile, log_writer=OutputLogWriter()) as client:
        client.url(path)
        for raw in queries:
            client.add_query(*_split_pair(raw, "=", "--query"))
        for raw in headers:
            client.header(*_split_pair(raw, ":", "--header"))

        bodied = {"POST": client.post, "PUT": client.put, "PATCH": client.patch}
        if method in bodied:
            bodied[method](data, naming_strategy=strategy)
        elif data is not None:
            raise InvalidUsageError("--json is only allowed with POST, PUT or PATCH")
        else:
            client.method(method)

        if snake_case:
            client.snake_case()
        if ensure_success:
            client.ensure_success()

        client.on_too_many_requests(
            lambda response, _: warning(
                f"Rate limited (HTTP 429); Retry-After: {response.headers.get('Retry-After', 'n/a')}"
            )
        )
        client.on_exception(lambda _, exc, __: debug(f"Dispatch failed: {exc!r}"))

        response = await client.send(token)

    info(f"HTTP {response.status_code} {response.reason_phrase}")
    if not response.content:
        return
    if "json" in response.headers.get("content-type", ""):
        format_response(response.json())
    else:
        format_response(response.text)


@app.command("send")
def send_command(
    method: str = typer.Argument(help="HTTP method (GET, POST, PUT, PATCH, DELETE...)."),
    path: str = typer.Argument(help="Path relative to the base URL, or an absolute URL."),
    query: list[str] = typer.Option(
        [], "--query", "-Q", help="Query parameter as key=value. Repeatable."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Header as 'Name: value'. Repeatable."
    ),
    body: Optional[str] = typer.Option(None, "--json", "-d", help="JSON request body."),
    retry_on: list[int] = typer.Option(
        [], "--retry-on", help="Status code that triggers a resend. Repeatable."
    ),
    retries: Optional[int] = typer.Option(None, "--retries", min=0, help="Retry budget."),
    ensure_success: bool = typer.Option(
        False, "--ensure-success", help="Fail unless the final status is 2xx."
    ),
    snake_case: bool = typer.Option(
        False, "--snake-case", help="Send body keys in snake_case."
    ),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Profile name to use."),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Override the base URL."),
    cancel_after: Optional[float] = typer.Option(
        None, "--cancel-after", min=0.0, help="Cancel the call after this many seconds."
    ),
) -> None:
    """Send one request and print the response body.

    Example::

        httpchain send GET /users -Q page=2 --ensure-success
        httpchain send POST /users --json '{"user_name": "ada"}'
    """
    try:
        asyncio.run(
            _send(
                method, path, query, header, body, retry_on, retries,
                ensure_success, snake_case, profile, base_url, cancel_after,
            )
        )
    except HttpChainError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


# ------------------------------------------------------------------ #
# profile
# ------------------------------------------------------------------ #


@profile_app.command("list")
def profile_list() -> None:
    """List stored profiles."""
    from httpchain.config import list_profiles, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured. Create one with: httpchain profile add NAME --base-url URL")
        return

    rows = []
    for name in names:
        try:
            stored = load_profile(name)
        except ConfigError as exc:
            warning(str(exc))
            continue
        rows.append([stored.name, stored.base_url or "", stored.auth.type])
    print_table(["Name", "Base URL", "Auth"], rows, title="Profiles")


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Show a stored profile."""
    from httpchain.config import load_profile

    try:
        stored = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(stored.model_dump(mode="json"))


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    base_url: str = typer.Option(..., "--base-url", help="Base URL of the API."),
    auth_type: str = typer.Option(
        "none", "--auth-type", help="Auth type: none, bearer, basic, api_key."
    ),
    auth_source: Optional[str] = typer.Option(
        None, "--auth-source", help="Credential source: env:VAR, file:/path, value:LITERAL."
    ),
    auth_header: Optional[str] = typer.Option(
        None, "--auth-header", help="Header or cookie name for api_key auth."
    ),
    auth_location: str = typer.Option(
        "header", "--auth-location", help="Where the api_key goes: header, cookie."
    ),
    naming: str = typer.Option("camel", "--naming", help="Body key casing: none, camel, snake."),
    ensure_success: bool = typer.Option(
        False, "--ensure-success", help="Fail calls whose final status is not 2xx."
    ),
    retry: bool = typer.Option(False, "--retry/--no-retry", help="Enable retries."),
    retries: Optional[int] = typer.Option(None, "--retries", min=0, help="Retry budget."),
    timeout: float = typer.Option(30.0, "--timeout", min=0.0, help="Request timeout in seconds."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Create or overwrite a profile."""
    from pydantic import ValidationError

    from httpchain.config import profile_exists, save_profile
    from httpchain.models import AuthConfig, Profile, RequestConfig, RetryConfig

    try:
        if profile_exists(name) and not force:
            error(f"Profile '{name}' already exists. Use --force to overwrite.")
            raise typer.Exit(code=InvalidUsageError.exit_code)

        retry_config = RetryConfig(enabled=retry)
        if retries is not None:
            retry_config.budget = retries
        new_profile = Profile(
            name=name,
            base_url=base_url,
            naming_strategy=naming,
            enforce_success=ensure_success,
            auth=AuthConfig(
                type=auth_type,
                source=auth_source,
                header=auth_header,
                location=auth_location,
            ),
            request=RequestConfig(timeout=timeout),
            retry=retry_config,
        )
        path = save_profile(new_profile)
    except ValidationError as exc:
        error(f"Invalid profile: {exc}")
        raise typer.Exit(code=InvalidUsageError.exit_code) from None
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Profile '{name}' saved to {path}")


@profile_app.command("remove")
def profile_remove(name: str = typer.Argument(help="Profile name.")) -> None:
    """Delete a stored profile."""
    from httpchain.config import delete_profile

    try:
        delete_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Profile '{name}' removed")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``httpchain`` console script.

    :class:`~httpchain.exceptions.HttpChainError` exits with the error's
    ``exit_code``; anything else is reported and exits with a generic
    failure.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except HttpChainError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        logging.getLogger(__name__).debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
