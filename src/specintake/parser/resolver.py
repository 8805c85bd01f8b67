"""Resolve ``$ref`` JSON Reference pointers in OAS documents.

OAS documents use ``$ref`` pointers (``{"$ref": "#/definitions/Pet"}``) to
avoid repetition, and multi-file APIs shipped as archives point across files
(``{"$ref": "schemas/pet.yaml#/Pet"}``). This module performs a recursive
deep-copy traversal of the document, replacing every ``$ref`` with the
referenced object.

Relative file references are resolved against the directory of the document
that contains them, so references inside a referenced file work as authors
expect. Remote (``http://``, ``https://``) references are not fetched and
raise :class:`~specintake.exceptions.ParseError`.

Circular references are detected via a ``seen`` set and left unresolved to
prevent infinite recursion: a schema that references itself keeps its
``$ref`` dict at the cycle point.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from specintake.exceptions import ParseError
from specintake.parser.loader import load_document


@dataclass
class _Scope:
    """The document a ``$ref`` is resolved against, plus a shared file cache."""

    root: Any
    path: Optional[Path]
    cache: dict[Path, Any] = field(default_factory=dict)

    def open(self, location: str) -> _Scope:
        """Return the scope of the file *location*, relative to this document."""
        if location.startswith(("http://", "https://")):
            raise ParseError(f"Remote $ref not supported: {location}")
        if self.path is None:
            raise ParseError(
                f"External $ref not supported: {location}. "
                "The document has no location on disk."
            )
        target = (self.path.parent / location).resolve()
        if target not in self.cache:
            if not target.is_file():
                raise ParseError(f"Cannot resolve $ref: file not found: {location}")
            self.cache[target] = load_document(target)
        return _Scope(root=self.cache[target], path=target, cache=self.cache)


def resolve_refs(spec: dict[str, Any], location: Optional[Path] = None) -> dict[str, Any]:
    """Resolve all ``$ref`` pointers in *spec*.

    Args:
        spec: The parsed document.
        location: Path of the document on disk. Required for relative file
            references; without it only internal ``#/...`` references work.

    Returns:
        A **new** dictionary (deep copy) with all resolvable ``$ref``
        pointers replaced by their target objects.

    Raises:
        ParseError: If a reference points to a missing file or a path that
            does not exist in the target document.

    Example::

        raw = load_document(Path("api/swagger.yaml"))
        resolved = resolve_refs(raw, Path("api/swagger.yaml"))
    """
    root = copy.deepcopy(spec)
    scope = _Scope(root=root, path=location.resolve() if location else None)
    return _deep_resolve(root, scope, seen=None)


def _resolve_pointer(pointer: str, root: Any, ref: str) -> Any:
    """Navigate *root* following a JSON Pointer fragment (``/a/b/0``).

    Handles RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``). An empty
    pointer addresses the whole document.
    """
    if pointer == "":
        return root
    if not pointer.startswith("/"):
        raise ParseError(f"Cannot resolve $ref '{ref}': unsupported fragment '#{pointer}'")

    current: Any = root
    for segment in pointer[1:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")

        if isinstance(current, dict):
            if segment not in current:
                raise ParseError(
                    f"Cannot resolve $ref '{ref}': key '{segment}' not found at path"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise ParseError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                ) from exc
        else:
            raise ParseError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}"
            )

    return current


def _deep_resolve(obj: Any, scope: _Scope, seen: set[str] | None = None) -> Any:
    """Recursively resolve all ``$ref`` pointers within *obj*.

    ``seen`` holds the ``file#pointer`` keys currently on the resolution
    stack. A new set is created per branch so sibling references do not
    interfere with each other.
    """
    if seen is None:
        seen = set()

    if isinstance(obj, dict):
        ref = obj.get("$ref")
        if isinstance(ref, str):
            location, _, pointer = ref.partition("#")
            target = scope.open(location) if location else scope
            key = f"{target.path}#{pointer}"
            if key in seen:
                return obj
            resolved = _resolve_pointer(pointer, target.root, ref)
            return _deep_resolve(copy.deepcopy(resolved), target, seen | {key})

        return {key: _deep_resolve(value, scope, seen) for key, value in obj.items()}

    if isinstance(obj, list):
        return [_deep_resolve(item, scope, seen) for item in obj]

    return obj
