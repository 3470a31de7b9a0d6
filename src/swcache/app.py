"""Typer application and CLI entry point for swcache.

This module builds the root Typer application, registers the built-in
commands (``deploy``, ``fetch``, ``message``, ``stores``, ``config``) and
provides :func:`main`, the console-script entry point declared in
``pyproject.toml``.

:func:`main` maps :class:`~swcache.exceptions.SwcacheError` to its exit
code and writes a crash log for anything unexpected.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import httpx
import typer

from swcache import __version__
from swcache.commands.config import config_app
from swcache.commands.stores import stores_app
from swcache.commands.worker import deploy_command, fetch_command, message_command
from swcache.exit_codes import EXIT_GENERIC_FAILURE, EXIT_NETWORK_ERROR

app = typer.Typer(
    name="swcache",
    help="Versioned offline caching layer for HTTP clients.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("deploy")(deploy_command)
app.command("fetch")(fetch_command)
app.command("message")(message_command)
app.add_typer(stores_app, name="stores", help="Inspect and delete response stores.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"swcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    cache_version: Optional[str] = typer.Option(
        None, "--cache-version", help="Generation version tag to use."
    ),
    origin: Optional[str] = typer.Option(
        None, "--origin", help="Origin the precache manifest is resolved against."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~swcache.output.OutputManager`, routes
    library logging to stderr, and stores the shared options in
    ``ctx.obj`` for the sub-commands.
    """
    from swcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    output.install_logging()
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["cache_version"] = cache_version
    ctx.obj["origin"] = origin
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback under the data directory; return its path."""
    from swcache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``swcache`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from swcache.exceptions import SwcacheError
        from swcache.output import error

        if isinstance(exc, SwcacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        elif isinstance(exc, httpx.RequestError):
            error(f"Network error: {exc}")
            sys.exit(EXIT_NETWORK_ERROR)
        else:
            log_path = _write_crash_log()
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
