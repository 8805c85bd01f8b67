"""Load API documents (RAML, OAS JSON or YAML) from disk into Python objects.

This is the I/O layer of the reference parser that runs inside the worker
process:

* :func:`load_document` -- Read a file and parse it. RAML files are YAML
  documents whose ``!include`` tags are expanded relative to the including
  file; everything else goes through :func:`parse_content`.
* :func:`parse_content` -- Parse a string as JSON or YAML with format
  detection.

After loading, OAS documents are passed to
:func:`~specintake.parser.resolver.resolve_refs` to inline ``$ref`` pointers.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from specintake.exceptions import ParseError

_STRUCTURED_SUFFIXES = (".raml", ".yaml", ".yml", ".json")


def load_document(path: Path, raml: bool = False) -> dict[str, Any]:
    """Load and parse the document at *path*.

    Args:
        path: Path to the API document.
        raml: Parse as RAML, expanding ``!include`` tags.

    Returns:
        The parsed document as a dictionary.

    Raises:
        ParseError: If the file cannot be read or parsed.
    """
    content = _read_text(path)
    if not content.strip():
        raise ParseError(f"API file is empty: {path}")

    if raml:
        try:
            result = yaml.load(content, Loader=_raml_loader(path, frozenset({path.resolve()})))
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid RAML document {path}: {exc}") from exc
        if not isinstance(result, dict):
            raise ParseError(f"RAML document must be a mapping: {path}")
        return result

    suffix = path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"
    return parse_content(content, hint=hint)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Failed to read API file {path}: {exc}") from exc


def parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Args:
        content: The raw string content.
        hint: Optional format hint ('json' or 'yaml').

    Returns:
        The parsed dictionary.

    Raises:
        ParseError: If the content cannot be parsed as either format.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
            if not isinstance(result, dict):
                raise ParseError(
                    f"API document must be a JSON/YAML object (got {type(result).__name__})"
                )
            return result
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise ParseError(f"Invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
        if not isinstance(result, dict):
            raise ParseError(
                "API document must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result
    except yaml.YAMLError as exc:
        yaml_error = exc

    msg = "Failed to parse API document as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise ParseError(msg)


def _raml_loader(path: Path, stack: frozenset[Path]) -> type[yaml.SafeLoader]:
    """Build a SafeLoader subclass that expands ``!include`` relative to *path*.

    *stack* holds the files currently being included so that a cycle raises
    instead of recursing forever.
    """

    class RamlLoader(yaml.SafeLoader):
        pass

    def _include(loader: yaml.SafeLoader, node: yaml.Node) -> Any:
        target = (path.parent / loader.construct_scalar(node)).resolve()
        if target in stack:
            raise ParseError(f"Circular !include of {target}")
        return _load_included(target, stack | {target})

    RamlLoader.add_constructor("!include", _include)
    return RamlLoader


def _load_included(target: Path, stack: frozenset[Path]) -> Any:
    """Load an included file: structured documents are parsed, anything else is text."""
    content = _read_text(target)
    if target.suffix.lower() not in _STRUCTURED_SUFFIXES:
        return content
    try:
        return yaml.load(content, Loader=_raml_loader(target, stack))
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid included document {target}: {exc}") from exc


def read_root_keys(path: Path) -> Optional[set[str]]:
    """Return the top-level keys of the JSON/YAML document at *path*.

    Used as the fallback of type sniffing when a file's header is
    inconclusive. Returns ``None`` when the file is not a parsable mapping.
    """
    try:
        document = load_document(path)
    except ParseError:
        return None
    return {str(key) for key in document}
