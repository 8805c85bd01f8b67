"""Canonical Pydantic models shared across all specintake modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory
or passed per call:
    :class:`OutputConfig`, :class:`IntakeConfig`, and
    :class:`ProcessingOptions`.

**Pipeline models** -- produced while a source moves through the pipeline:
    :class:`ApiType` (the sniffed spec family and media type) and
    :class:`ParseResult` (the model string returned by the worker).

``ApiType`` serialises with the ``contentType`` alias because it travels
over the worker protocol as the ``from`` object of a parse request.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`IntakeConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class IntakeConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specintake/config.json``.

    Loaded and saved by :func:`~specintake.config.load_config` and
    :func:`~specintake.config.save_config`. Values here have the lowest
    precedence and can be overridden by environment variables or CLI flags.
    See :func:`~specintake.config.resolve_config` for the full chain.
    """

    parse_timeout_ms: int = Field(
        default=180000,
        gt=0,
        description="Hard limit for a single parse before the worker is killed",
    )
    idle_timeout_ms: int = Field(
        default=60000,
        gt=0,
        description="How long an idle worker is kept alive after a parse",
    )
    validate_api: bool = Field(
        default=False, description="Ask the worker for a validation report"
    )
    download_timeout: float = Field(
        default=30.0, gt=0, description="Timeout in seconds for remote sources"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def parse_timeout(self) -> float:
        """Parse timeout in seconds."""
        return self.parse_timeout_ms / 1000

    @property
    def idle_timeout(self) -> float:
        """Idle worker timeout in seconds."""
        return self.idle_timeout_ms / 1000


class ProcessingOptions(BaseModel):
    """Per-source processing options.

    ``archive`` is tri-state: ``True`` forces zip extraction, ``False``
    disables it, and ``None`` lets byte sources be detected by their zip
    signature.
    """

    archive: Optional[bool] = None
    main_file: Optional[str] = Field(
        default=None, description="Entry file relative to the working directory"
    )
    validate_api: bool = False


# --- Pipeline ---


class ApiType(BaseModel):
    """API spec family and media type sniffed from an entry file's header.

    Example::

        ApiType(type="RAML 1.0", content_type="application/yaml")
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str = Field(description="Spec family: RAML 0.8, RAML 1.0, OAS 2.0, OAS 3.0")
    content_type: str = Field(alias="contentType")

    @property
    def is_raml(self) -> bool:
        return self.type.startswith("RAML")

    @property
    def is_oas(self) -> bool:
        return self.type.startswith("OAS")


class ParseResult(BaseModel):
    """A parsed model string and the type it was parsed as."""

    model: str
    type: ApiType
