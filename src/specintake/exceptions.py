"""Exception hierarchy for specintake.

All exceptions inherit from :class:`SpecIntakeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specintake.exit_codes`.
The top-level error handler in :func:`specintake.app.main` catches
``SpecIntakeError`` and exits with the appropriate code.

An ambiguous entry point is *not* an error: it is returned as an
:class:`~specintake.resolver.search.Ambiguous` result.

Subclass hierarchy::

    SpecIntakeError (exit 1)
    +-- UsageError          (exit 2)
    +-- PreparationError    (exit 3)
    +-- ResolutionError     (exit 4)
    +-- ParseError          (exit 5)
    |   +-- ParseTimeoutError (exit 6)
    +-- IntegrityError      (exit 8)
    +-- DownloadError       (exit 9)
    +-- ConfigError         (exit 1)
"""

from specintake.exit_codes import (
    EXIT_DOWNLOAD_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INTEGRITY_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_PARSE_ERROR,
    EXIT_PARSE_TIMEOUT,
    EXIT_PREPARATION_ERROR,
    EXIT_RESOLUTION_ERROR,
)


class SpecIntakeError(Exception):
    """Base exception for all specintake errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class UsageError(SpecIntakeError):
    """Raised when session operations are called out of order, or a named entry file does not exist."""

    exit_code = EXIT_INVALID_USAGE


class PreparationError(SpecIntakeError):
    """Raised when a source cannot be read, written to a temp location, or unpacked."""

    exit_code = EXIT_PREPARATION_ERROR


class ResolutionError(SpecIntakeError):
    """Raised when no API entry point can be found, or a file is not a supported API document."""

    exit_code = EXIT_RESOLUTION_ERROR


class ParseError(SpecIntakeError):
    """Raised when the parser worker reports a failure, exits, or breaks the protocol."""

    exit_code = EXIT_PARSE_ERROR


class ParseTimeoutError(ParseError):
    """Raised when the parser worker does not reply within the parse timeout."""

    exit_code = EXIT_PARSE_TIMEOUT


class IntegrityError(SpecIntakeError):
    """Raised when a downloaded source fails its MD5 checksum."""

    exit_code = EXIT_INTEGRITY_ERROR


class DownloadError(SpecIntakeError):
    """Raised on HTTP errors or network failures while fetching a remote source."""

    exit_code = EXIT_DOWNLOAD_ERROR


class ConfigError(SpecIntakeError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
