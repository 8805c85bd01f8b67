"""Isolated parser worker and its supervisor.

Sub-modules:

* :mod:`~specintake.worker.supervisor` -- :class:`ParserSupervisor`, the
  host-side owner of the worker process and its two timers.
* :mod:`~specintake.worker.process` -- the worker's request loop, run as
  ``python -m specintake.worker``.

Only the supervisor is imported here so that importing the package in the
host never pulls in the parser.
"""

from specintake.worker.supervisor import (
    DEFAULT_IDLE_TIMEOUT,
    DEFAULT_PARSE_TIMEOUT,
    ParserSupervisor,
    default_worker_command,
)

__all__ = [
    "DEFAULT_IDLE_TIMEOUT",
    "DEFAULT_PARSE_TIMEOUT",
    "ParserSupervisor",
    "default_worker_command",
]
