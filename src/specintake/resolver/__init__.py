"""Entry-point resolution -- decide which file in a working directory is the API.

Sub-modules:

* :mod:`~specintake.resolver.search` -- :class:`EntryPointSearch` and the
  :class:`Resolved` / :class:`Ambiguous` results.
* :mod:`~specintake.resolver.sniffer` -- header sniffing that yields an
  :class:`~specintake.models.ApiType`.
"""

from specintake.resolver.search import Ambiguous, EntryPointSearch, Resolution, Resolved
from specintake.resolver.sniffer import read_api_type, sniff_file, sniff_header

__all__ = [
    "Ambiguous",
    "EntryPointSearch",
    "Resolution",
    "Resolved",
    "read_api_type",
    "sniff_file",
    "sniff_header",
]
