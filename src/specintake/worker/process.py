"""The parser worker -- the child-process side of the isolation boundary.

Parsing can take practically forever or exhaust memory on pathological
input (for example a type declared as a union of many unions), so it never
runs in the host process. The supervisor starts this module as
``python -m specintake.worker`` and talks to it over newline-delimited JSON:

* request (stdin): ``{"source": <abs path>, "from": {"type", "contentType"}, "validate": bool}``
* replies (stdout): zero or more ``{"validation": str}`` frames followed by
  exactly one terminal ``{"api": str}`` or ``{"error": str}`` frame.

stdout carries protocol frames only; anything else the parser prints is
redirected to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, TextIO

from specintake.models import ApiType
from specintake.parser import format_report, generate_model, parse_api, validate_document

logger = logging.getLogger(__name__)

Send = Callable[[dict[str, Any]], None]


def handle_request(request: dict[str, Any], send: Send) -> None:
    """Parse the API named by *request* and send the replies through *send*.

    Every request gets exactly one terminal frame, whatever happens while
    parsing.
    """
    source = request.get("source")
    try:
        api_type = ApiType.model_validate(request.get("from") or {})
        path = Path(str(source))
        document = parse_api(path, api_type)
        if request.get("validate"):
            send({"validation": format_report(validate_document(document, api_type), api_type)})
        model = generate_model(document, api_type, path)
    except Exception as exc:
        logger.debug("Parsing %s failed", source, exc_info=True)
        send({"error": f"Unable to parse API {source}.\n{exc}"})
        return
    send({"api": model})


def serve(stdin: TextIO, stdout: TextIO) -> None:
    """Answer requests read from *stdin* until it is closed."""

    def send(message: dict[str, Any]) -> None:
        stdout.write(json.dumps(message, ensure_ascii=False) + "\n")
        stdout.flush()

    for line in stdin:
        if not line.strip():
            continue
        try:
            request = json.loads(line)
        except json.JSONDecodeError as exc:
            send({"error": f"Invalid parse request: {exc}"})
            continue
        if not isinstance(request, dict):
            send({"error": "Invalid parse request: expected a JSON object"})
            continue
        handle_request(request, send)


def main() -> None:
    """Worker entry point: serve the protocol on the real stdin/stdout."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.WARNING,
        format="specintake-worker %(levelname)s %(name)s: %(message)s",
    )
    protocol_out = sys.stdout
    sys.stdout = sys.stderr
    try:
        serve(sys.stdin, protocol_out)
    except KeyboardInterrupt:
        sys.exit(130)
