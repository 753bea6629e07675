"""Typer application and CLI entry point for cursetool.

This module wires together the top-level Typer application and registers
the conversion commands (``curse``, ``yaml``) and the ``cache`` and
``config`` sub-command groups.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, invokes the Typer app,
and maps :class:`~cursetool.exceptions.CursetoolError` onto exit codes.
Unhandled exceptions are written to a crash log under the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.logging import RichHandler

from cursetool import __version__
from cursetool.commands.cache import cache_app
from cursetool.commands.config import config_app
from cursetool.commands.convert import curse_command, yaml_command
from cursetool.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="cursetool",
    help="Convert Minecraft modpack manifests between Curse, YAML, and Nix formats.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cursetool {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool, console: Any) -> None:
    """Route library log records through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO; our own debug line covers it.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


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
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    jobs: Optional[int] = typer.Option(
        None, "--jobs", "-j", min=1, help="Worker threads for mod resolution."
    ),
    keep_going: bool = typer.Option(
        False, "--keep-going", "-k", help="Skip mods that fail to resolve instead of aborting."
    ),
    api_key_file: Optional[Path] = typer.Option(
        None, "--api-key-file", help="Read the catalog API key from this file."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Catalog API base URL (overrides config and environment)."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~cursetool.output.OutputManager` and
    logging from CLI flags, and stores shared options in ``ctx.obj`` for
    the sub-commands.
    """
    from cursetool.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _setup_logging(output.is_verbose, output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["jobs"] = jobs
    ctx.obj["keep_going"] = keep_going
    ctx.obj["api_key_file"] = api_key_file
    ctx.obj["base_url"] = base_url


app.command("curse")(curse_command)
app.command("yaml")(yaml_command)
app.add_typer(cache_app, name="cache", help="Response cache management.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from cursetool.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``cursetool`` console script.

    :class:`~cursetool.exceptions.CursetoolError` instances cause a clean
    exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

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
        from cursetool.exceptions import CursetoolError
        from cursetool.output import error

        if isinstance(exc, CursetoolError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)


if __name__ == "__main__":
    main()
