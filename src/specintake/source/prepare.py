"""Normalize an input source into a working directory on disk.

:func:`prepare_source` accepts the three supported source shapes and returns
a :class:`PreparedSource`:

* **Archive** (flagged, or bytes / a file starting with the zip signature) --
  extracted into a fresh temp directory that the session owns.
* **Bytes** -- written verbatim to a fresh temp file; the file is the entry
  point and its parent the working directory.
* **Path** -- a directory is used in place; a file makes its parent the
  working directory and itself the entry point. Nothing is copied and nothing
  is owned, so caller paths are never deleted.

Whatever was created on disk is carried by a single :class:`TempResource`.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from specintake.exceptions import PreparationError
from specintake.source.archive import extract_zip, is_zip

logger = logging.getLogger(__name__)

Source = Union[bytes, str, "os.PathLike[str]"]

_TEMP_PREFIX = "specintake-"


@dataclass
class TempResource:
    """A temp file or temp directory created for one session.

    Attributes:
        path: Location of the resource.
        is_file: ``True`` for a single temp file, ``False`` for a directory tree.
    """

    path: Path
    is_file: bool

    def remove(self) -> None:
        """Delete the resource from disk. Missing resources are ignored."""
        if self.is_file:
            self.path.unlink(missing_ok=True)
        else:
            shutil.rmtree(self.path, ignore_errors=True)
        logger.debug("Removed temp %s %s", "file" if self.is_file else "directory", self.path)

    @property
    def exists(self) -> bool:
        return self.path.exists()


@dataclass
class PreparedSource:
    """Result of :func:`prepare_source`.

    Attributes:
        working_dir: Directory the resolver and parser read from.
        main_file: Entry file relative to ``working_dir`` when already known.
        temp: The owned temp resource, or ``None`` for caller-owned paths.
    """

    working_dir: Path
    main_file: Optional[str] = None
    temp: Optional[TempResource] = None


def prepare_source(source: Source, archive: Optional[bool] = None) -> PreparedSource:
    """Prepare *source* for entry-point resolution.

    Args:
        source: Raw bytes, or a filesystem path to a file or directory.
        archive: ``True`` to treat the source as a zip archive, ``False`` to
            never do so, ``None`` to detect the zip signature.

    Returns:
        The prepared working directory, optional entry file and temp resource.

    Raises:
        PreparationError: If the source cannot be read, written, or unpacked.
            Any partially created temp resource is removed first.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        if archive or (archive is None and is_zip(data)):
            return _prepare_archive(data)
        return _prepare_buffer(data)

    path = Path(source)
    try:
        is_dir = path.is_dir()
        is_file = path.is_file()
    except OSError as exc:
        raise PreparationError(f"Unable to read source {path}: {exc}") from exc

    if is_dir:
        if archive:
            raise PreparationError(f"Source {path} is a directory, not an archive")
        return PreparedSource(working_dir=path.resolve())
    if not is_file:
        raise PreparationError(f"Source not found: {path}")

    if archive or (archive is None and _file_is_zip(path)):
        return _prepare_archive(path)
    path = path.resolve()
    return PreparedSource(working_dir=path.parent, main_file=path.name)


def _file_is_zip(path: Path) -> bool:
    try:
        with path.open("rb") as fh:
            return is_zip(fh.read(2))
    except OSError as exc:
        raise PreparationError(f"Unable to read source {path}: {exc}") from exc


def _prepare_buffer(data: bytes) -> PreparedSource:
    """Write *data* to a new temp file and make it the entry point."""
    try:
        fd, name = tempfile.mkstemp(prefix=_TEMP_PREFIX)
    except OSError as exc:
        raise PreparationError(f"Unable to create a temp file: {exc}") from exc
    temp = TempResource(path=Path(name), is_file=True)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
    except OSError as exc:
        temp.remove()
        raise PreparationError(f"Unable to write the source to {name}: {exc}") from exc

    logger.debug("Wrote %d bytes to temp file %s", len(data), name)
    return PreparedSource(working_dir=temp.path.parent, main_file=temp.path.name, temp=temp)


def _prepare_archive(source: Union[bytes, Path]) -> PreparedSource:
    """Extract *source* into a new temp directory."""
    try:
        temp = TempResource(path=Path(tempfile.mkdtemp(prefix=_TEMP_PREFIX)), is_file=False)
    except OSError as exc:
        raise PreparationError(f"Unable to create a temp directory: {exc}") from exc
    try:
        extract_zip(source, temp.path)
    except BaseException:
        temp.remove()
        raise

    logger.debug("Extracted archive into %s", temp.path)
    return PreparedSource(working_dir=temp.path, temp=temp)
