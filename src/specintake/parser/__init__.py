"""Reference API parser -- the computation the isolated worker runs.

Turns an entry file plus its sniffed :class:`~specintake.models.ApiType`
into a model string. Everything here may be slow or blow up on pathological
input, which is why it only ever runs inside
:mod:`specintake.worker.process`.

Typical usage::

    from specintake.parser import generate_model, parse_api

    document = parse_api(Path("api.raml"), ApiType(type="RAML 1.0", content_type="application/yaml"))
    model = generate_model(document, api_type, Path("api.raml"))

Sub-modules:

* :mod:`~specintake.parser.loader` -- JSON/YAML/RAML loading with ``!include``.
* :mod:`~specintake.parser.resolver` -- ``$ref`` resolution across files.
* :mod:`~specintake.parser.model` -- model envelope and validation report.
"""

from specintake.parser.loader import load_document, parse_content
from specintake.parser.model import format_report, generate_model, parse_api, validate_document

__all__ = [
    "format_report",
    "generate_model",
    "load_document",
    "parse_api",
    "parse_content",
    "validate_document",
]
