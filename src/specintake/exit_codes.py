"""Numeric process exit codes for the ``specintake`` CLI.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specintake.exceptions.SpecIntakeError` subclass.
Scripts wrapping the CLI can inspect the exit code to tell a corrupt archive
from a parser timeout without parsing stderr.

Example::

    $ specintake parse broken.zip
    $ echo $?
    3   # EXIT_PREPARATION_ERROR -- the archive could not be extracted
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Operations were called out of order or an unknown entry file was named."""

EXIT_PREPARATION_ERROR = 3
"""The source could not be read or unpacked."""

EXIT_RESOLUTION_ERROR = 4
"""No API entry point could be found in the source."""

EXIT_PARSE_ERROR = 5
"""The parser worker reported a failure or crashed."""

EXIT_PARSE_TIMEOUT = 6
"""The parser worker did not answer within the parse timeout."""

EXIT_INTEGRITY_ERROR = 8
"""The downloaded source did not match its expected checksum."""

EXIT_DOWNLOAD_ERROR = 9
"""A remote source could not be downloaded."""
