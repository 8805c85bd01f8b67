"""Source preparation -- turn a buffer, archive, or path into a working directory.

Sub-modules:

* :mod:`~specintake.source.prepare` -- :func:`prepare_source` and the
  :class:`TempResource` that owns whatever was created on disk.
* :mod:`~specintake.source.archive` -- zip detection, extraction, and
  root-folder normalization.
* :mod:`~specintake.source.download` -- fetching remote sources and
  checking their integrity before they enter the pipeline.
"""

from specintake.source.archive import extract_zip, is_zip
from specintake.source.download import check_integrity, download_source
from specintake.source.prepare import PreparedSource, TempResource, prepare_source

__all__ = [
    "PreparedSource",
    "TempResource",
    "check_integrity",
    "download_source",
    "extract_zip",
    "is_zip",
    "prepare_source",
]
