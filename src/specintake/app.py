"""Typer application and CLI entry point for specintake.

This module wires together the top-level Typer application and registers the
built-in commands (``parse``, ``detect``, ``candidates``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~specintake.exceptions.SpecIntakeError` exits with the error's
``exit_code``; any other exception is written to a crash log under the data
directory.

See Also:
    :mod:`specintake.config`: Configuration resolution.
    :mod:`specintake.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from specintake import __version__
from specintake.commands.config import config_app
from specintake.commands.parse import candidates_command, detect_command, parse_command
from specintake.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="specintake",
    help="Prepare, resolve, and parse RAML and OpenAPI sources.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("parse")(parse_command)
app.command("detect")(detect_command)
app.command("candidates")(candidates_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"specintake {__version__}")
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
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write primary output to a file."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~specintake.output.OutputManager` from
    CLI flags and routes library log records to stderr. Without ``--json``
    or ``--plain`` the format comes from ``output.format`` in the user config.

    Args:
        version: If ``True``, print the version string and exit.
        json_output: Force JSON output format.
        plain_output: Force plain-text output format.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential diagnostic output.
        verbose: Enable debug-level diagnostic output.
        output_file: Redirect primary data output to a file path.
    """
    from specintake.config import load_config
    from specintake.exceptions import ConfigError
    from specintake.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    config_error: Optional[ConfigError] = None
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        try:
            fmt = OutputFormat(load_config().output.format)
        except ConfigError as exc:
            config_error = exc

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
        output_file=output_file,
    )
    set_output(output)
    configure_logging(output)
    if config_error is not None:
        output.warning(f"Using the default output format. {config_error}")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from specintake.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``specintake`` console script.

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
        from specintake.exceptions import SpecIntakeError
        from specintake.output import error

        if isinstance(exc, SpecIntakeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
