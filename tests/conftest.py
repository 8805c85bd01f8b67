"""Shared test fixtures for specintake.

Provides fixture API documents, zip builders, isolated config environments,
output state management, fake parser workers, and the CLI runner. These
fixtures are automatically discovered by pytest and available to all test
modules without explicit imports.
"""

from __future__ import annotations

import io
import logging
import sys
import zipfile
from pathlib import Path
from typing import Union

import pytest

from specintake.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"

RAML_ROOT = """#%RAML 1.0
title: {title}
/items:
  get:
    description: List items
"""

RAML_FRAGMENT = """#%RAML 1.0 DataType
type: object
properties:
  name: string
"""


def make_zip(entries: dict[str, Union[str, bytes]]) -> bytes:
    """Build an in-memory zip archive from ``{member name: content}``."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def raml_root(title: str = "Items API") -> str:
    """A minimal RAML 1.0 root document."""
    return RAML_ROOT.format(title=title)


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and log handlers after every test.

    The OutputManager and the Rich log handler cache references to
    sys.stdout/sys.stderr at creation time. When Typer's CliRunner
    redirects those streams during a test and the test finishes, the
    cached references become stale ("I/O operation on closed file").
    """
    yield
    reset_output()
    logger = logging.getLogger("specintake")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# API document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def raml_dir() -> Path:
    """Directory holding ``api.raml`` and its ``types/Pet.raml`` include."""
    return FIXTURES_DIR / "raml"


@pytest.fixture
def swagger_path() -> Path:
    """A single-file Swagger 2.0 petstore in JSON."""
    return FIXTURES_DIR / "petstore-swagger.json"


@pytest.fixture
def multi_file_dir() -> Path:
    """An OpenAPI 3.0 document referencing ``schemas/pet.yaml``."""
    return FIXTURES_DIR / "multi-file"


@pytest.fixture
def raml_zip(raml_dir: Path) -> bytes:
    """The RAML fixture zipped inside a wrapper folder, with macOS junk."""
    return make_zip({
        "pets-api-1.0.0/api.raml": (raml_dir / "api.raml").read_text(),
        "pets-api-1.0.0/types/Pet.raml": (raml_dir / "types" / "Pet.raml").read_text(),
        "__MACOSX/pets-api-1.0.0/._api.raml": b"\x00\x05\x16\x07",
    })


@pytest.fixture
def ambiguous_zip() -> bytes:
    """Two RAML root documents and nothing to tell them apart."""
    return make_zip({
        "a.raml": raml_root("A"),
        "b.raml": raml_root("B"),
    })


# ---------------------------------------------------------------------------
# Fake parser workers
# ---------------------------------------------------------------------------


@pytest.fixture
def hanging_worker() -> list[str]:
    """A worker that reads the request and never answers."""
    return [sys.executable, "-c", "import sys, time; sys.stdin.readline(); time.sleep(60)"]


@pytest.fixture
def crashing_worker() -> list[str]:
    """A worker that reads the request and exits with code 3."""
    return [sys.executable, "-c", "import sys; sys.stdin.readline(); sys.exit(3)"]


@pytest.fixture
def garbage_worker() -> list[str]:
    """A worker that answers with a line that is not JSON, then hangs."""
    return [
        sys.executable,
        "-c",
        "import sys, time; sys.stdin.readline(); print('not json', flush=True); time.sleep(60)",
    ]


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config, and clears all SPECINTAKE_*
    environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: True)

    for var in [
        "SPECINTAKE_PARSE_TIMEOUT",
        "SPECINTAKE_IDLE_TIMEOUT",
        "SPECINTAKE_VALIDATE",
    ]:
        monkeypatch.delenv(var, raising=False)

    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
