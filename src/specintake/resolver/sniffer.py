"""Detect an API document's spec family and media type from its header.

The type of an API file is never trusted from its extension: ``.yaml`` may be
RAML, Swagger, OpenAPI, or a data fragment. Instead the first
:data:`HEADER_SIZE` bytes are read and matched against:

* a RAML version comment on the first meaningful line (``#%RAML 1.0``),
  optionally followed by a fragment qualifier (``#%RAML 1.0 DataType``);
* a root-level ``swagger`` or ``openapi`` key, in JSON or YAML form.

When the header is inconclusive, :func:`read_api_type` falls back to loading
the whole document in the host process and inspecting its root keys. That
fallback only runs for files up to :data:`ROOT_KEYS_LIMIT` bytes; larger files
with an inconclusive header are reported as unsupported without being loaded.
A file that fails both is reported as unsupported; in particular an OAS
document whose version key is neither in the header window nor at the root is
a false negative.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from specintake.exceptions import ResolutionError
from specintake.models import ApiType
from specintake.parser.loader import read_root_keys

logger = logging.getLogger(__name__)

HEADER_SIZE = 1024

ROOT_KEYS_LIMIT = 5 * 1024 * 1024
"""Largest file, in bytes, whose root keys are read when the header is inconclusive."""

RAML_CONTENT_TYPE = "application/yaml"
JSON_CONTENT_TYPE = "application/json"
YAML_CONTENT_TYPE = "application/yaml"

_RAML_HEADER = re.compile(r"^#%RAML[ \t]+(0\.8|1\.0)(?:[ \t]+(\S.*?))?[ \t]*$")
# JSON may be minified, so the key is matched anywhere with a version-like
# string value; YAML root keys start in column 0.
_JSON_OAS_KEY = re.compile(r""""(swagger|openapi)"\s*:\s*"(\d[^"]*)\"""")
_YAML_OAS_KEY = re.compile(r"""^["']?(swagger|openapi)["']?[ \t]*:[ \t]*["']?([^"'\s#]*)""", re.MULTILINE)


@dataclass(frozen=True)
class HeaderMatch:
    """A recognised document header.

    Attributes:
        api_type: The sniffed type.
        fragment: RAML fragment qualifier (``DataType``, ``Library``, ...)
            or ``None`` for a root document.
    """

    api_type: ApiType
    fragment: Optional[str] = None

    @property
    def is_root(self) -> bool:
        """Whether the header declares a root API document (a plausible entry point)."""
        return self.fragment is None


def read_header(path: Path, size: int = HEADER_SIZE) -> Optional[str]:
    """Read the first *size* bytes of *path* as text.

    Returns:
        The decoded header, or ``None`` for unreadable or binary files.
    """
    try:
        with path.open("rb") as fh:
            data = fh.read(size)
    except OSError:
        return None
    if b"\x00" in data:
        return None
    decoder = codecs.getincrementaldecoder("utf-8-sig")()
    try:
        # final=False tolerates a multi-byte character cut by the window.
        return decoder.decode(data, final=False)
    except UnicodeDecodeError:
        return None


def sniff_header(header: str) -> Optional[HeaderMatch]:
    """Match *header* text against the known spec headers."""
    text = header.lstrip()
    if not text:
        return None

    first_line = text.splitlines()[0].strip()
    raml = _RAML_HEADER.match(first_line)
    if raml:
        return HeaderMatch(
            api_type=ApiType(type=f"RAML {raml.group(1)}", content_type=RAML_CONTENT_TYPE),
            fragment=raml.group(2),
        )

    if text.startswith("{"):
        oas = _JSON_OAS_KEY.search(text)
        content_type = JSON_CONTENT_TYPE
    else:
        oas = _YAML_OAS_KEY.search(text)
        content_type = YAML_CONTENT_TYPE
    if oas:
        return HeaderMatch(api_type=ApiType(type=_oas_family(oas.group(1), oas.group(2)), content_type=content_type))
    return None


def _oas_family(key: str, version: str) -> str:
    if key == "openapi":
        return "OAS 3.0"
    if version.startswith("1."):
        return "OAS 1.0"
    return "OAS 2.0"


def sniff_file(path: Path) -> Optional[HeaderMatch]:
    """Read and sniff the header of *path*; ``None`` when unreadable or unrecognised."""
    header = read_header(path)
    if header is None:
        return None
    return sniff_header(header)


def read_api_type(path: Path) -> ApiType:
    """Determine the API type of the entry file at *path*.

    Raises:
        ResolutionError: If the file is unreadable or not a supported API document.
    """
    header = read_header(path)
    if header is None:
        raise ResolutionError(f"Unsupported API file: {path.name} is unreadable or binary")

    match = sniff_header(header)
    if match is not None:
        return match.api_type

    if path.stat().st_size > ROOT_KEYS_LIMIT:
        logger.debug("Skipping root key detection for %s: larger than %d bytes", path.name, ROOT_KEYS_LIMIT)
        raise ResolutionError(f"Unsupported API file: {path.name}")

    keys = read_root_keys(path)
    if keys:
        content_type = JSON_CONTENT_TYPE if header.lstrip().startswith("{") else YAML_CONTENT_TYPE
        if "openapi" in keys:
            return ApiType(type="OAS 3.0", content_type=content_type)
        if "swagger" in keys:
            return ApiType(type="OAS 2.0", content_type=content_type)
    raise ResolutionError(f"Unsupported API file: {path.name}")
