"""Find the API entry point (main file) inside a working directory.

:class:`EntryPointSearch` walks a working directory, collects plausible API
files, and decides which one is the entry point:

1. Candidate files are those with an API extension (:data:`CANDIDATE_EXTENSIONS`)
   that are not excluded by :data:`DEFAULT_IGNORE` or the directory's
   ``.gitignore``. No candidates at all is a :class:`ResolutionError`.
2. A single candidate is the entry point.
3. Otherwise each candidate's header is sniffed. A *strong match* declares a
   root API document (a RAML version header without a fragment qualifier, or
   a Swagger/OpenAPI root key). A top-level file with a conventional name
   (``api.raml`` ...) that is a strong match wins outright; otherwise exactly
   one strong match wins.
4. Anything else is :class:`Ambiguous`: the strong matches when there are at
   least two, else every candidate. The caller has to pick one.

Unreadable and binary files are never strong matches and never fail the scan.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional, Union

import pathspec

from specintake.exceptions import ResolutionError, UsageError
from specintake.resolver.sniffer import sniff_file

logger = logging.getLogger(__name__)

CANDIDATE_EXTENSIONS = frozenset({".raml", ".yaml", ".yml", ".json"})

CONVENTIONAL_NAMES = ("api.raml", "api.yaml", "api.yml", "api.json")
"""Top-level file names that win when they hold a root API document."""

DEFAULT_IGNORE = [
    "__MACOSX/",
    ".git/",
    "node_modules/",
    ".DS_Store",
    "exchange.json",
    "package.json",
    "package-lock.json",
]
"""Gitignore-style patterns for files that are never API entry points."""


@dataclass(frozen=True)
class Resolved:
    """The entry point is known.

    Attributes:
        main_file: POSIX path of the entry file relative to the working directory.
    """

    main_file: str


@dataclass(frozen=True)
class Ambiguous:
    """Several files are plausible entry points; the caller must choose.

    Attributes:
        candidates: Sorted POSIX relative paths, always at least two.
    """

    candidates: tuple[str, ...]


Resolution = Union[Resolved, Ambiguous]


def _load_gitignore(root: Path) -> Optional[pathspec.PathSpec]:
    """Load ``.gitignore`` from *root* if it exists, returning a PathSpec matcher."""
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    return pathspec.PathSpec.from_lines("gitignore", lines)


class EntryPointSearch:
    """Search a working directory for its API entry point.

    Args:
        working_dir: Directory to search.
        ignore_patterns: Gitignore-style patterns to exclude. Defaults to
            :data:`DEFAULT_IGNORE`.

    Example::

        search = EntryPointSearch(Path("/tmp/specintake-x1y2"))
        result = search.find_entry_point()
        if isinstance(result, Ambiguous):
            print(result.candidates)
    """

    def __init__(self, working_dir: Path, ignore_patterns: Optional[list[str]] = None) -> None:
        self._working_dir = Path(working_dir)
        self._ignore = pathspec.PathSpec.from_lines(
            "gitignore", ignore_patterns if ignore_patterns is not None else DEFAULT_IGNORE
        )
        self._gitignore = _load_gitignore(self._working_dir)

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    def _is_ignored(self, rel_path: str) -> bool:
        if self._ignore.match_file(rel_path):
            return True
        return bool(self._gitignore and self._gitignore.match_file(rel_path))

    def list_candidates(self) -> list[str]:
        """Return every plausible API file as a sorted POSIX relative path."""
        root = self._working_dir
        candidates: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = PurePosixPath(Path(dirpath).relative_to(root).as_posix())

            dirnames[:] = sorted(
                d for d in dirnames
                if not self._is_ignored(f"{(rel_dir / d).as_posix()}/")
            )

            for fname in filenames:
                if os.path.splitext(fname)[1].lower() not in CANDIDATE_EXTENSIONS:
                    continue
                rel_path = (rel_dir / fname).as_posix()
                if self._is_ignored(rel_path):
                    continue
                candidates.append(rel_path)

        return sorted(candidates)

    def find_entry_point(self) -> Resolution:
        """Decide the entry point of the working directory.

        Returns:
            :class:`Resolved` with the entry file, or :class:`Ambiguous`
            with at least two candidates.

        Raises:
            ResolutionError: If the directory contains no API files at all.
        """
        candidates = self.list_candidates()
        if not candidates:
            raise ResolutionError("Unable to find API files in the source location")
        if len(candidates) == 1:
            logger.debug("Single API file found: %s", candidates[0])
            return Resolved(candidates[0])

        strong: list[str] = []
        for rel_path in candidates:
            match = sniff_file(self._working_dir / rel_path)
            if match is not None and match.is_root:
                strong.append(rel_path)

        for name in CONVENTIONAL_NAMES:
            for rel_path in strong:
                if rel_path.lower() == name:
                    logger.debug("Conventional entry file found: %s", rel_path)
                    return Resolved(rel_path)

        if len(strong) == 1:
            logger.debug("Single root API document found: %s", strong[0])
            return Resolved(strong[0])

        pool = strong if len(strong) > 1 else candidates
        logger.debug("Entry point is ambiguous between %d files", len(pool))
        return Ambiguous(tuple(pool))

    def verify(self, main_file: str) -> str:
        """Check that *main_file* names a file inside the working directory.

        Returns:
            The entry file as a normalized POSIX relative path.

        Raises:
            UsageError: If the file does not exist or lies outside the
                working directory.
        """
        root = self._working_dir.resolve()
        target = (root / main_file).resolve()
        if root not in target.parents or not target.is_file():
            raise UsageError(f"API main file does not exist: {main_file}")
        return target.relative_to(root).as_posix()
