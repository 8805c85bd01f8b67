"""Fetch remote API sources and verify their integrity.

Remote sources (typically zip assets published by an API registry) are
downloaded into memory with :mod:`httpx` and then handed to the pipeline as
a byte buffer. When the publisher provides an MD5 checksum,
:func:`check_integrity` must pass before the buffer is prepared.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional

import httpx

from specintake.exceptions import DownloadError, IntegrityError

logger = logging.getLogger(__name__)


def download_source(url: str, timeout: float = 30.0) -> bytes:
    """Download *url* and return the response body.

    Args:
        url: An ``http://`` or ``https://`` URL.
        timeout: Request timeout in seconds.

    Raises:
        DownloadError: On a non-2xx status or a network-level failure.
    """
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise DownloadError(
            f"Unable to download the asset. Status: {exc.response.status_code}"
        ) from exc
    except httpx.RequestError as exc:
        raise DownloadError(f"Failed to fetch {url}: {exc}") from exc

    logger.debug("Downloaded %d bytes from %s", len(response.content), url)
    return response.content


def check_integrity(buffer: bytes, md5: Optional[str]) -> bytes:
    """Check *buffer* against an expected MD5 hex digest.

    A missing digest skips the check.

    Returns:
        The unchanged buffer.

    Raises:
        IntegrityError: When the computed digest does not match.
    """
    if not md5:
        return buffer
    digest = hashlib.md5(buffer).hexdigest()
    if digest == md5.lower():
        return buffer
    raise IntegrityError("API file integrity test failed. Checksum mismatch.")
