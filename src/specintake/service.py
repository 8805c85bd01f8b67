"""Session orchestrator -- ``prepare -> resolve -> parse`` over one source.

:class:`IntakeService` sequences source preparation, entry-point resolution
and the isolated parse, and owns the temp resources a session creates. Its
state is explicit (:class:`SessionState`) and every operation checks it:

.. code-block:: text

    IDLE --prepare--> PREPARED --resolve--> RESOLVED --parse--> (PARSED) --> IDLE
                        |  ^
                        |  +-- resolve() returned Ambiguous: choose_entry() / parse(main_file)
                        +--cancel()--> CANCELLED        any state --cleanup()--> CLEANED

Any error raised by ``prepare``, ``resolve`` or ``parse`` first removes the
session's temp resources and returns it to ``IDLE``; ``parse`` removes them
on success too. ``CANCELLED`` and ``CLEANED`` end the session; a new one is
started with :meth:`IntakeService.set_source`.

``prepare``, ``resolve``, ``choose_entry`` and ``parse`` run one at a time: an
overlapping call waits for the running one and then sees its resulting state,
so a second ``prepare()`` fails with :class:`UsageError` instead of creating a
second temp resource.

Example::

    async with IntakeService(buffer) as service:
        await service.prepare()
        resolution = await service.resolve()
        if isinstance(resolution, Ambiguous):
            resolution = await service.choose_entry(ask_user(resolution.candidates))
        if resolution is not None:
            result = await service.parse()
"""

from __future__ import annotations

import asyncio
import enum
import logging
from pathlib import Path
from typing import Optional, Sequence

from specintake.exceptions import UsageError
from specintake.models import IntakeConfig, ParseResult, ProcessingOptions
from specintake.resolver import Ambiguous, EntryPointSearch, Resolution, Resolved, read_api_type
from specintake.source.prepare import Source, TempResource, prepare_source
from specintake.worker.supervisor import ParserSupervisor

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """Lifecycle state of an :class:`IntakeService` session."""

    IDLE = "idle"
    PREPARED = "prepared"
    RESOLVED = "resolved"
    PARSED = "parsed"
    CANCELLED = "cancelled"
    CLEANED = "cleaned"


_ACTIVE_STATES = (SessionState.PREPARED, SessionState.RESOLVED)


class IntakeService:
    """Stateful facade over one source at a time.

    Args:
        source: Bytes, or a path to a file or directory. Can also be set
            later with :meth:`set_source`.
        options: Processing options for *source*.
        config: Timeouts and defaults. Defaults to :class:`IntakeConfig`.
        supervisor: The parser supervisor to use. By default one is created
            from *config* and owned by this service.
        worker_command: Worker command line for the default supervisor.
    """

    def __init__(
        self,
        source: Optional[Source] = None,
        options: Optional[ProcessingOptions] = None,
        *,
        config: Optional[IntakeConfig] = None,
        supervisor: Optional[ParserSupervisor] = None,
        worker_command: Optional[Sequence[str]] = None,
    ) -> None:
        self._config = config or IntakeConfig()
        self._supervisor = supervisor or ParserSupervisor(
            command=worker_command,
            parse_timeout=self._config.parse_timeout,
            idle_timeout=self._config.idle_timeout,
        )
        self._source: Optional[Source] = None
        self._options = ProcessingOptions()
        self._state = SessionState.IDLE
        self._temp: Optional[TempResource] = None
        self._working_dir: Optional[Path] = None
        self._main_file: Optional[str] = None
        # prepare/resolve/parse are single-flight; cancel and cleanup never wait.
        self._lock = asyncio.Lock()
        if source is not None:
            self.set_source(source, options)

    async def __aenter__(self) -> IntakeService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()

    # ------------------------------------------------------------------ #
    # Session state
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def source(self) -> Optional[Source]:
        return self._source

    @property
    def options(self) -> ProcessingOptions:
        return self._options

    @property
    def working_dir(self) -> Optional[Path]:
        return self._working_dir

    @property
    def main_file(self) -> Optional[str]:
        """The pinned entry file, relative to :attr:`working_dir`."""
        return self._main_file

    @property
    def temp(self) -> Optional[TempResource]:
        """The temp resource owned by the session, if any."""
        return self._temp

    @property
    def tmp_is_file(self) -> bool:
        """True when the owned temp resource is a single file rather than a directory."""
        return self._temp is not None and self._temp.is_file

    @property
    def supervisor(self) -> ParserSupervisor:
        return self._supervisor

    def set_source(self, source: Source, options: Optional[ProcessingOptions] = None) -> None:
        """Start a new session for *source*, discarding the previous session's state.

        Temp resources of an unfinished session are *not* removed; call
        :meth:`cancel` or :meth:`cleanup` first.
        """
        if self._temp is not None:
            logger.warning("Discarding a session that still owns %s", self._temp.path)
        self._source = source
        self._options = options or ProcessingOptions()
        self._temp = None
        self._working_dir = None
        self._main_file = None
        self._state = SessionState.IDLE

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def prepare(self) -> None:
        """Prepare the source: unpack archives, write buffers, locate paths.

        Raises:
            UsageError: If no source is set, the session is not ``IDLE``, or
                the session was cancelled or cleaned up while preparing.
            PreparationError: If the source cannot be prepared.
        """
        async with self._lock:
            if self._source is None:
                raise UsageError("No source to prepare. Call set_source() first.")
            if self._state is not SessionState.IDLE:
                state = self._state
                await self._abort()
                raise UsageError(f"prepare() cannot be called in the '{state.value}' state")

            try:
                prepared = await asyncio.to_thread(prepare_source, self._source, self._options.archive)
            except BaseException:
                await self._abort()
                raise

            if self._state is not SessionState.IDLE:
                # cancel() or cleanup() ran while the source was being prepared.
                if prepared.temp is not None:
                    await asyncio.to_thread(prepared.temp.remove)
                raise UsageError(f"Session was {self._state.value} while preparing the source")

            self._temp = prepared.temp
            self._working_dir = prepared.working_dir
            self._main_file = prepared.main_file
            self._state = SessionState.PREPARED
            logger.debug("Prepared working directory %s", self._working_dir)

    async def resolve(self, main_file: Optional[str] = None) -> Resolution:
        """Pin the entry file, or report that the caller has to choose.

        Args:
            main_file: Entry file relative to the working directory, when
                the caller knows it. Ignored when the entry is already known.

        Returns:
            :class:`Resolved` (state ``RESOLVED``), or :class:`Ambiguous`
            with the candidates (state stays ``PREPARED``).

        Raises:
            UsageError: If :meth:`prepare` was not called, or *main_file*
                does not exist in the working directory.
            ResolutionError: If the working directory holds no API files.
        """
        async with self._lock:
            return await self._resolve(main_file)

    async def choose_entry(self, candidate: Optional[str]) -> Optional[Resolved]:
        """Resume a session suspended on an ambiguous entry point.

        Args:
            candidate: The chosen entry file, or ``None``/empty to decline,
                which cancels the session.

        Returns:
            The :class:`Resolved` entry, or ``None`` when the session was cancelled.
        """
        if not candidate:
            await self.cancel()
            return None
        async with self._lock:
            if self._state is not SessionState.PREPARED:
                await self._abort()
                raise UsageError("choose_entry() requires a prepared session awaiting a choice")
            return await self._pin_named(candidate)

    async def parse(self, main_file: Optional[str] = None) -> ParseResult:
        """Parse the entry file in the isolated worker.

        The session's temp resources are removed whatever the outcome and
        the session returns to ``IDLE``.

        Args:
            main_file: Entry file to parse. It replaces a pinned entry file
                once it is found in the working directory.

        Raises:
            UsageError: If the session has no pinned entry file, or
                *main_file* does not exist in the working directory.
            ResolutionError: If the entry file is not a supported API document.
            ParseError: If the worker fails, including on timeout.
        """
        async with self._lock:
            if self._state not in _ACTIVE_STATES:
                await self._abort()
                raise UsageError("prepare() function not called")
            if main_file and main_file != self._main_file:
                await self._pin_named(main_file)
            if self._main_file is None:
                await self._abort()
                raise UsageError("resolve() function not called")
            assert self._working_dir is not None

            location = self._working_dir / self._main_file
            validate = self._options.validate_api or self._config.validate_api
            try:
                api_type = await asyncio.to_thread(read_api_type, location)
                logger.debug("Parsing %s as %s", location, api_type.type)
                model = await self._supervisor.run_parse(location, api_type, validate)
                self._state = SessionState.PARSED
            finally:
                await self._abort()
            return ParseResult(model=model, type=api_type)

    async def cancel(self) -> None:
        """Discard the session and its temp resources without parsing."""
        await self._discard()
        self._state = SessionState.CANCELLED

    async def cleanup(self) -> None:
        """Kill the worker, cancel its timers, and remove temp resources.

        Safe to call in any state and any number of times.
        """
        await self._supervisor.shutdown()
        await self._discard()
        self._state = SessionState.CLEANED

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _resolve(self, main_file: Optional[str]) -> Resolution:
        if self._state is SessionState.RESOLVED:
            assert self._main_file is not None
            return Resolved(self._main_file)
        if self._state is not SessionState.PREPARED:
            await self._abort()
            raise UsageError("prepare() function not called")
        assert self._working_dir is not None

        if self._main_file is not None:
            return self._pin(self._main_file)
        if main_file:
            return await self._pin_named(main_file)

        search = EntryPointSearch(self._working_dir)
        try:
            result = await asyncio.to_thread(search.find_entry_point)
        except BaseException:
            await self._abort()
            raise

        if isinstance(result, Ambiguous):
            logger.info("Unable to determine the API main file, %d candidates found", len(result.candidates))
            return result
        return self._pin(result.main_file)

    async def _pin_named(self, main_file: str) -> Resolved:
        """Verify a caller-supplied entry file and pin it."""
        assert self._working_dir is not None
        search = EntryPointSearch(self._working_dir)
        try:
            verified = await asyncio.to_thread(search.verify, main_file)
        except BaseException:
            await self._abort()
            raise
        return self._pin(verified)

    def _pin(self, main_file: str) -> Resolved:
        self._main_file = main_file
        self._state = SessionState.RESOLVED
        logger.debug("API main file: %s", main_file)
        return Resolved(main_file)

    async def _discard(self) -> None:
        temp, self._temp = self._temp, None
        self._working_dir = None
        self._main_file = None
        if temp is not None:
            await asyncio.to_thread(temp.remove)

    async def _abort(self) -> None:
        await self._discard()
        self._state = SessionState.IDLE
