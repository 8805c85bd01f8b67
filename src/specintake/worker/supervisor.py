"""Supervise the isolated parser worker process.

:class:`ParserSupervisor` owns at most one worker process (see
:mod:`specintake.worker.process`) and turns every way it can fail into a
:class:`~specintake.exceptions.ParseError`, so a crashing, hanging, or
misbehaving parser never takes down the caller.

Two independent timers bound the worker's life:

* the **parse timeout** limits one request; when it expires the worker is
  killed and :class:`~specintake.exceptions.ParseTimeoutError` is raised;
* the **idle timeout** starts after a terminal reply from a live worker and
  kills the worker if no further request arrives. A new request cancels it.

Requests are single-flight. The reply of a request is only ever read by the
coroutine that sent it, and any request that ends without a terminal reply
kills the worker, so a late frame from an abandoned request can never answer
a later one.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from specintake.exceptions import ParseError, ParseTimeoutError
from specintake.models import ApiType

logger = logging.getLogger(__name__)

DEFAULT_PARSE_TIMEOUT = 180.0
"""Seconds a single parse may take before the worker is killed."""

DEFAULT_IDLE_TIMEOUT = 60.0
"""Seconds an idle worker is kept alive after a parse."""

# Models are sent as a single line; the default 64 KiB reader limit is far too small.
_STREAM_LIMIT = 512 * 1024 * 1024


def default_worker_command() -> list[str]:
    """Command line that starts the bundled parser worker."""
    return [sys.executable, "-m", "specintake.worker"]


class ParserSupervisor:
    """Run parse requests in a dedicated, crash-contained worker process.

    Args:
        command: Command line of the worker. Defaults to
            :func:`default_worker_command`.
        parse_timeout: Seconds before a request is abandoned and the worker killed.
        idle_timeout: Seconds an idle worker is kept alive after a reply.

    Example::

        supervisor = ParserSupervisor(parse_timeout=30)
        try:
            model = await supervisor.run_parse(Path("/tmp/api/api.raml"), api_type)
        finally:
            await supervisor.shutdown()
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        parse_timeout: float = DEFAULT_PARSE_TIMEOUT,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    ) -> None:
        self._command = list(command) if command else default_worker_command()
        self._parse_timeout = parse_timeout
        self._idle_timeout = idle_timeout
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task[None]] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._lock = asyncio.Lock()

    @property
    def is_alive(self) -> bool:
        """Whether a worker process is currently running."""
        return self._proc is not None and self._proc.returncode is None

    @property
    def pid(self) -> Optional[int]:
        """PID of the live worker, if any."""
        return self._proc.pid if self.is_alive else None

    @property
    def idle_timer_armed(self) -> bool:
        return self._idle_handle is not None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def run_parse(self, source: Path, api_type: ApiType, validate: bool = False) -> str:
        """Parse the API entry file *source* in the worker.

        Args:
            source: Absolute path of the entry file.
            api_type: The sniffed type of the entry file.
            validate: Ask the worker for a validation report. Reports are
                logged, they never fail the request.

        Returns:
            The model string produced by the worker.

        Raises:
            ParseTimeoutError: If no terminal reply arrives within the parse timeout.
            ParseError: If the worker reports an error, exits, or breaks the protocol.
        """
        async with self._lock:
            self._cancel_idle_timer()
            proc = await self._ensure_worker()
            request = {
                "source": str(source),
                "from": api_type.model_dump(by_alias=True),
                "validate": validate,
            }
            assert proc.stdin is not None
            try:
                proc.stdin.write((json.dumps(request) + "\n").encode("utf-8"))
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as exc:
                await self._kill(proc)
                raise ParseError(f"Parser process is not accepting requests: {exc}") from exc

            try:
                reply = await asyncio.wait_for(self._read_reply(proc), timeout=self._parse_timeout)
            except asyncio.TimeoutError:
                logger.warning("API parsing timed out after %.1fs, killing the parser", self._parse_timeout)
                await self._kill(proc)
                raise ParseTimeoutError("API parsing timeout") from None
            except BaseException:
                # Also covers cancellation: the worker may still answer later.
                self._signal_kill(proc)
                raise

            if proc.returncode is None:
                self._arm_idle_timer()
            if "error" in reply:
                raise ParseError(str(reply["error"]))
            return str(reply["api"])

    async def _read_reply(self, proc: asyncio.subprocess.Process) -> dict[str, Any]:
        """Read frames until a terminal one arrives."""
        assert proc.stdout is not None
        while True:
            try:
                line = await proc.stdout.readline()
            except ValueError as exc:
                raise ParseError(f"Parser reply exceeds the size limit: {exc}") from exc
            if not line:
                code = await proc.wait()
                raise ParseError(f"Parser process exited unexpectedly (exit code {code})")
            try:
                message = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ParseError(f"Malformed reply from the parser process: {exc}") from exc
            if not isinstance(message, dict):
                raise ParseError("Malformed reply from the parser process: expected an object")

            if "validation" in message:
                logger.info("API validation report:\n%s", message["validation"])
                continue
            if "error" in message or "api" in message:
                return message
            raise ParseError(f"Unexpected reply from the parser process: {sorted(message)}")

    # ------------------------------------------------------------------ #
    # Process lifecycle
    # ------------------------------------------------------------------ #

    async def _ensure_worker(self) -> asyncio.subprocess.Process:
        """Return the live worker, spawning a new one when needed."""
        proc = self._proc
        if proc is not None:
            if proc.returncode is None and proc.stdin is not None and not proc.stdin.is_closing():
                return proc
            await self._kill(proc)

        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            raise ParseError(f"Unable to start the parser process: {exc}") from exc

        logger.debug("Started parser process %s", proc.pid)
        self._proc = proc
        self._watcher = asyncio.create_task(self._watch(proc))
        return proc

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        """Drop the handle once *proc* exits so the next request respawns."""
        code = await proc.wait()
        logger.debug("Parser process %s exited with code %s", proc.pid, code)
        if self._proc is proc:
            self._proc = None
            self._cancel_idle_timer()

    def _signal_kill(self, proc: asyncio.subprocess.Process) -> None:
        """Kill *proc* without waiting; later frames from it are never read."""
        if self._proc is proc:
            self._proc = None
            self._cancel_idle_timer()
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        """Kill *proc* and wait until it has exited."""
        self._signal_kill(proc)
        await proc.wait()

    def _arm_idle_timer(self) -> None:
        self._cancel_idle_timer()
        loop = asyncio.get_running_loop()
        self._idle_handle = loop.call_later(self._idle_timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle_timeout(self) -> None:
        self._idle_handle = None
        proc = self._proc
        if proc is not None:
            logger.debug("Reclaiming idle parser process %s", proc.pid)
            self._signal_kill(proc)

    async def shutdown(self) -> None:
        """Cancel timers and kill the worker, if any. Safe to call repeatedly."""
        self._cancel_idle_timer()
        proc = self._proc
        if proc is not None:
            await self._kill(proc)
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            await watcher
