"""Zip archive handling for API sources.

API projects are commonly shipped as zip files, often wrapped in a single
root folder (``my-api-1.0.0/api.raml``). :func:`extract_zip` unpacks an
archive into a directory and then promotes the contents of such a wrapper
folder one level up so that entry-file paths never carry the wrapper name.

Platform junk written by archivers (``__MACOSX``, ``.DS_Store``) is ignored
when deciding whether the archive has a single root folder.
"""

from __future__ import annotations

import io
import logging
import shutil
import uuid
import zipfile
from pathlib import Path
from typing import BinaryIO, Union

from specintake.exceptions import PreparationError

logger = logging.getLogger(__name__)

ZIP_SIGNATURE = b"PK"

JUNK_ENTRIES = frozenset({"__MACOSX", ".DS_Store", "Thumbs.db"})
"""Top-level names archivers add that are never part of the API."""


def is_zip(data: bytes) -> bool:
    """Return True when *data* starts with the zip local-file signature (``0x50 0x4B``)."""
    return data[:2] == ZIP_SIGNATURE


def extract_zip(source: Union[bytes, Path], destination: Path) -> None:
    """Extract a zip archive into *destination* and normalize its root folder.

    Args:
        source: The archive as bytes, or the path of an archive file.
        destination: An existing, empty directory.

    Raises:
        PreparationError: If the archive is corrupt, unreadable, or contains
            members that would be written outside *destination*.
    """
    stream: Union[BinaryIO, Path] = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        with zipfile.ZipFile(stream) as archive:
            _check_members(archive, destination)
            archive.extractall(destination)
    except zipfile.BadZipFile as exc:
        raise PreparationError(f"Unable to extract the archive: {exc}") from exc
    except (OSError, RuntimeError, ValueError) as exc:
        raise PreparationError(f"Unable to extract the archive: {exc}") from exc

    try:
        promoted = remove_root_folder(destination)
    except OSError as exc:
        raise PreparationError(f"Unable to normalize the archive root folder: {exc}") from exc
    if promoted:
        logger.debug("Promoted archive root folder contents into %s", destination)


def _check_members(archive: zipfile.ZipFile, destination: Path) -> None:
    """Reject members whose target path escapes *destination*."""
    root = destination.resolve()
    for name in archive.namelist():
        target = (root / name).resolve()
        if target != root and root not in target.parents:
            raise PreparationError(f"Archive member escapes the extraction directory: {name}")


def remove_root_folder(destination: Path) -> bool:
    """Promote the contents of a single wrapping folder into *destination*.

    When the top level of *destination* (ignoring :data:`JUNK_ENTRIES`)
    holds exactly one entry and that entry is a directory, its children are
    merged one level up and the wrapper is removed.

    Returns:
        ``True`` when a wrapper folder was removed.
    """
    entries = [p for p in destination.iterdir() if p.name not in JUNK_ENTRIES]
    if len(entries) != 1 or not entries[0].is_dir():
        return False

    # Renamed first so a child sharing the wrapper's name can move into place.
    wrapper = entries[0].rename(destination / f".{entries[0].name}.{uuid.uuid4().hex}")
    for child in list(wrapper.iterdir()):
        target = destination / child.name
        if target.is_dir() and child.is_dir():
            shutil.copytree(child, target, dirs_exist_ok=True)
            shutil.rmtree(child)
        else:
            if target.exists():
                _remove(target)
            shutil.move(str(child), str(target))
    wrapper.rmdir()
    return True


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
