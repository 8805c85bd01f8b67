"""specintake -- Turn API spec sources into parsed models in an isolated worker.

This package accepts an API specification as raw bytes, a zip archive, or a
filesystem path, works out which file inside it is the API entry point, and
parses it into a normalized model string in a separate worker process so that
a pathological document can never take the host process down.

Typical workflow::

    async with IntakeService(source, ProcessingOptions(archive=True)) as svc:
        await svc.prepare()
        resolution = await svc.resolve()
        if isinstance(resolution, Ambiguous):
            await svc.choose_entry(resolution.candidates[0])
        result = await svc.parse()

Modules:
    service: The session orchestrator and its state machine.
    processor: The :class:`ApiProcessor` facade for buffers, paths and links.
    source: Source preparation (temp resources, zip extraction, downloads).
    resolver: Entry-point discovery and API type sniffing.
    worker: The isolated parser process and its supervisor.
    parser: The reference document parser run inside the worker.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: Rich-backed output manager and log routing.
    commands: CLI command implementations.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"
