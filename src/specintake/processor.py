"""High-level entry points that run a whole source through the pipeline.

:class:`ApiProcessor` wraps one :class:`~specintake.service.IntakeService`
and drives ``prepare -> resolve -> parse`` for buffers, paths, and remote
assets. When the entry point is ambiguous it asks a *chooser* callback for
the main file; a chooser returning ``None`` cancels the session and the
processor returns ``None``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Sequence, Union

from specintake.exceptions import UsageError
from specintake.models import IntakeConfig, ParseResult, ProcessingOptions
from specintake.resolver import Ambiguous
from specintake.service import IntakeService
from specintake.source import check_integrity, download_source, is_zip
from specintake.source.prepare import Source

logger = logging.getLogger(__name__)

Chooser = Callable[[Sequence[str]], Union[Optional[str], Awaitable[Optional[str]]]]
"""Callback receiving candidate entry files and returning the chosen one, or ``None``."""


class ApiProcessor:
    """Process API sources end to end.

    Args:
        config: Timeouts and defaults, shared by every source.
        chooser: Called with the candidates when the entry point is
            ambiguous. May be a plain function or a coroutine function.
            Without a chooser an ambiguous source is a :class:`UsageError`.
        worker_command: Override the parser worker command line.

    Example::

        async with ApiProcessor(chooser=pick_first) as processor:
            result = await processor.process_buffer(zip_bytes)
    """

    def __init__(
        self,
        config: Optional[IntakeConfig] = None,
        chooser: Optional[Chooser] = None,
        worker_command: Optional[Sequence[str]] = None,
    ) -> None:
        self._config = config or IntakeConfig()
        self._chooser = chooser
        self._worker_command = worker_command
        self._service: Optional[IntakeService] = None

    async def __aenter__(self) -> ApiProcessor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()

    @property
    def service(self) -> IntakeService:
        """The underlying session service, created on first use."""
        if self._service is None:
            self._service = IntakeService(config=self._config, worker_command=self._worker_command)
        return self._service

    async def process_buffer(
        self, buffer: bytes, options: Optional[ProcessingOptions] = None
    ) -> Optional[ParseResult]:
        """Process an in-memory API file or zip archive.

        Zip content is detected by its signature unless ``options.archive``
        says otherwise.
        """
        options = options.model_copy() if options else ProcessingOptions()
        if options.archive is None:
            options.archive = is_zip(buffer)
        return await self._process(buffer, options)

    async def process_path(
        self, path: Source, options: Optional[ProcessingOptions] = None
    ) -> Optional[ParseResult]:
        """Process an API file, zip file, or directory on disk. Caller files are never deleted."""
        return await self._process(path, options or ProcessingOptions())

    async def process_link(
        self,
        url: str,
        main_file: Optional[str] = None,
        md5: Optional[str] = None,
        packaging: Optional[str] = None,
    ) -> Optional[ParseResult]:
        """Download a remote API asset and process it.

        Args:
            url: Location of the asset.
            main_file: Entry file inside the asset, when known.
            md5: Expected MD5 hex digest of the download.
            packaging: ``"zip"`` for archives; anything else is a single file.

        Raises:
            DownloadError: If the asset cannot be fetched.
            IntegrityError: If the checksum does not match.
        """
        logger.info("Downloading API asset from %s", url)
        buffer = await asyncio.to_thread(download_source, url, self._config.download_timeout)
        check_integrity(buffer, md5)
        options = ProcessingOptions(
            archive=(packaging or "").lower() == "zip" or None,
            main_file=main_file,
        )
        return await self.process_buffer(buffer, options)

    async def cleanup(self) -> None:
        """Kill the worker and remove any temp resources. Safe to call repeatedly."""
        if self._service is not None:
            await self._service.cleanup()

    async def _process(self, source: Source, options: ProcessingOptions) -> Optional[ParseResult]:
        service = self.service
        service.set_source(source, options)
        await service.prepare()
        resolution = await service.resolve(options.main_file)
        if isinstance(resolution, Ambiguous):
            choice = await self._choose(service, resolution.candidates)
            if choice is None:
                logger.info("No API main file selected, processing cancelled")
                return None
            return await service.parse(choice)
        return await service.parse()

    async def _choose(self, service: IntakeService, candidates: Sequence[str]) -> Optional[str]:
        if self._chooser is None:
            await service.cancel()
            raise UsageError(
                "Unable to determine the API main file. Candidates: " + ", ".join(candidates)
            )
        try:
            choice = self._chooser(candidates)
            if inspect.isawaitable(choice):
                choice = await choice
        except BaseException:
            await service.cancel()
            raise
        if not choice:
            await service.cancel()
            return None
        return choice
