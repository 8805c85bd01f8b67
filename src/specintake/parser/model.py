"""Build the interchange model for a parsed API document.

The model is a JSON string with a fixed envelope::

    {
      "type": "OAS 2.0",
      "contentType": "application/json",
      "location": "api.json",
      "document": { ... fully resolved document ... }
    }

:func:`validate_document` produces the optional informational report the
worker sends back before the model when validation is requested. It checks
structure only (version markers and required root keys), never API semantics.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from specintake.exceptions import ParseError
from specintake.models import ApiType
from specintake.parser.loader import load_document
from specintake.parser.resolver import resolve_refs

_SUPPORTED_TYPES = frozenset({"RAML 0.8", "RAML 1.0", "OAS 1.0", "OAS 2.0", "OAS 3.0"})


def parse_api(source: Path, api_type: ApiType) -> dict[str, Any]:
    """Load the API document at *source* and inline everything it references.

    RAML ``!include`` tags are expanded while loading; OAS ``$ref`` pointers
    (internal and relative-file) are resolved afterwards.

    Raises:
        ParseError: For unsupported types or documents that cannot be loaded.
    """
    if api_type.type not in _SUPPORTED_TYPES:
        raise ParseError(f"Unsupported API type: {api_type.type}")
    document = load_document(source, raml=api_type.is_raml)
    if api_type.is_oas:
        document = resolve_refs(document, source)
    return document


def generate_model(document: dict[str, Any], api_type: ApiType, source: Path) -> str:
    """Serialise *document* into the model envelope."""
    envelope = {
        "type": api_type.type,
        "contentType": api_type.content_type,
        "location": source.name,
        "document": document,
    }
    return json.dumps(envelope, ensure_ascii=False, default=str)


def validate_document(document: dict[str, Any], api_type: ApiType) -> list[str]:
    """Return a list of structural problems found in *document*.

    An empty list means the document conforms.
    """
    problems: list[str] = []
    if api_type.is_raml:
        if not document.get("title"):
            problems.append("RAML root must declare a 'title'")
        return problems

    if api_type.type == "OAS 3.0":
        version = str(document.get("openapi", ""))
        if not version.startswith("3."):
            problems.append(f"Unsupported OpenAPI version: {version or 'missing'}")
        if "paths" not in document and "webhooks" not in document and "components" not in document:
            problems.append("OpenAPI document must declare 'paths', 'webhooks' or 'components'")
    elif api_type.type == "OAS 2.0":
        if str(document.get("swagger", "")) != "2.0":
            problems.append(f"Unsupported Swagger version: {document.get('swagger')}")
        if "paths" not in document:
            problems.append("Swagger document must declare 'paths'")

    info = document.get("info")
    if not isinstance(info, dict):
        problems.append("Missing 'info' object")
    else:
        for key in ("title", "version"):
            if key not in info:
                problems.append(f"Missing 'info.{key}'")
    return problems


def format_report(problems: list[str], api_type: ApiType) -> str:
    """Render a validation report in the form the worker sends to the supervisor."""
    lines = [f"Model: {api_type.type}", f"Conforms: {'true' if not problems else 'false'}"]
    lines.extend(f"- {problem}" for problem in problems)
    return "\n".join(lines)
