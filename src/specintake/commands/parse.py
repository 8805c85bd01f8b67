"""Pipeline commands -- parse a source, sniff a file, list entry-point candidates.

Implements the ``specintake parse``, ``specintake detect`` and
``specintake candidates`` top-level commands. Each command builds the
effective :class:`~specintake.models.IntakeConfig` through
:func:`~specintake.config.resolve_config`, runs the async pipeline with
:func:`asyncio.run`, and maps :class:`~specintake.exceptions.SpecIntakeError`
to the error's exit code.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, Optional, Sequence, TypeVar

import typer

from specintake.exceptions import SpecIntakeError
from specintake.output import debug, error, format_response, get_output, info, print_table, success

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning pipeline errors into a CLI exit."""
    try:
        return asyncio.run(coro)
    except SpecIntakeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


async def _prompt_chooser(candidates: Sequence[str]) -> Optional[str]:
    """Ask the user to pick one of *candidates*; an empty answer cancels.

    The prompt blocks on stdin, so it runs in a worker thread while the
    parser supervisor keeps its timers on the event loop.
    """
    info("Unable to determine the API main file. Candidates:")
    for index, candidate in enumerate(candidates, start=1):
        info(f"  {index}. {candidate}")
    answer = await asyncio.to_thread(
        typer.prompt,
        "Select the API main file (empty to cancel)",
        default="",
        show_default=False,
        err=True,
    )
    answer = answer.strip()
    if not answer:
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(candidates):
        return candidates[int(answer) - 1]
    return answer


def parse_command(
    source: str = typer.Argument(help="API file, zip file, directory, or http(s) URL."),
    main_file: Optional[str] = typer.Option(
        None, "--main-file", "-m", help="Entry file relative to the source root."
    ),
    zip_: bool = typer.Option(False, "--zip", help="Treat the source as a zip archive."),
    validate: bool = typer.Option(
        False, "--validate", help="Log a validation report for the API."
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", min=1, help="Parse timeout in milliseconds."
    ),
    md5: Optional[str] = typer.Option(
        None, "--md5", help="Expected MD5 checksum of a downloaded source."
    ),
    no_input: bool = typer.Option(
        False, "--no-input", help="Fail instead of prompting on ambiguous sources."
    ),
) -> None:
    """Parse an API source into a model.

    The source is prepared, its entry point resolved, and the entry file
    parsed in an isolated worker process. When several files could be the
    entry point the user is asked to choose, unless ``--no-input`` is set.

    Example::

        specintake parse ./api.raml
        specintake parse ./api.zip --main-file api.raml
        specintake parse https://example.com/asset.zip --zip --md5 5d41402a...
        specintake -o model.json parse ./api.zip
    """
    from specintake.config import resolve_config
    from specintake.models import ProcessingOptions
    from specintake.processor import ApiProcessor

    try:
        config = resolve_config(
            cli_parse_timeout_ms=timeout, cli_validate=True if validate else None
        )
    except SpecIntakeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    debug(
        f"Parse timeout {config.parse_timeout_ms} ms, idle timeout {config.idle_timeout_ms} ms, "
        f"validate={config.validate_api}"
    )

    chooser = None if no_input else _prompt_chooser

    async def _process():  # noqa: ANN202
        async with ApiProcessor(config=config, chooser=chooser) as processor:
            if _is_url(source):
                return await processor.process_link(
                    source, main_file=main_file, md5=md5, packaging="zip" if zip_ else None
                )
            options = ProcessingOptions(archive=True if zip_ else None, main_file=main_file)
            return await processor.process_path(source, options)

    result = _run(_process())
    if result is None:
        info("Cancelled.")
        raise typer.Exit(code=1)

    format_response(result.model)
    output_file = get_output().output_file
    if output_file:
        success(f"{result.type.type} model written to {output_file}")


def detect_command(
    file: Path = typer.Argument(help="API file to inspect."),
) -> None:
    """Print the API type of a file, sniffed from its header.

    Example::

        specintake detect ./api.raml
        specintake --json detect ./openapi.json
    """
    from specintake.resolver import read_api_type, sniff_file

    try:
        api_type = read_api_type(file)
    except SpecIntakeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    match = sniff_file(file)
    format_response({
        "file": str(file),
        "type": api_type.type,
        "contentType": api_type.content_type,
        "fragment": match.fragment if match is not None else None,
    })


def candidates_command(
    source: str = typer.Argument(help="API file, zip file, or directory."),
    zip_: bool = typer.Option(False, "--zip", help="Treat the source as a zip archive."),
) -> None:
    """List the entry-point candidates of a source without parsing it.

    Example::

        specintake candidates ./api.zip
        specintake --plain candidates ./project
    """
    from specintake.config import resolve_config
    from specintake.models import ProcessingOptions
    from specintake.resolver import Ambiguous
    from specintake.service import IntakeService

    try:
        config = resolve_config()
    except SpecIntakeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    async def _resolve():  # noqa: ANN202
        options = ProcessingOptions(archive=True if zip_ else None)
        async with IntakeService(source, options, config=config) as service:
            await service.prepare()
            return await service.resolve()

    resolution = _run(_resolve())
    if isinstance(resolution, Ambiguous):
        rows = [[candidate, "candidate"] for candidate in resolution.candidates]
        title = f"Entry point is ambiguous ({len(rows)} candidates)"
    else:
        rows = [[resolution.main_file, "entry point"]]
        title = "Entry point"
    print_table(["File", "Status"], rows, title=title)
