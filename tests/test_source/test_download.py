"""Tests for specintake.source.download -- remote assets and checksums."""

from __future__ import annotations

import hashlib
from unittest.mock import patch

import httpx
import pytest

from specintake.exceptions import DownloadError, IntegrityError
from specintake.source.download import check_integrity, download_source

URL = "https://exchange.example.com/assets/pets-api.zip"


def _response(status: int, content: bytes = b"") -> httpx.Response:
    return httpx.Response(
        status_code=status,
        content=content,
        request=httpx.Request("GET", URL),
    )


class TestDownloadSource:
    def test_returns_body(self) -> None:
        with patch("specintake.source.download.httpx.get", return_value=_response(200, b"PK\x03\x04")) as mock_get:
            assert download_source(URL, timeout=5.0) == b"PK\x03\x04"
        mock_get.assert_called_once_with(URL, timeout=5.0, follow_redirects=True)

    def test_http_error_reports_status(self) -> None:
        with patch("specintake.source.download.httpx.get", return_value=_response(404)):
            with pytest.raises(DownloadError, match="Status: 404"):
                download_source(URL)

    def test_network_error(self) -> None:
        with patch(
            "specintake.source.download.httpx.get",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            with pytest.raises(DownloadError, match="Failed to fetch"):
                download_source(URL)


class TestCheckIntegrity:
    def test_matching_digest(self) -> None:
        data = b"#%RAML 1.0\n"
        assert check_integrity(data, hashlib.md5(data).hexdigest()) == data

    def test_digest_is_case_insensitive(self) -> None:
        data = b"#%RAML 1.0\n"
        assert check_integrity(data, hashlib.md5(data).hexdigest().upper()) == data

    def test_missing_digest_skips_check(self) -> None:
        assert check_integrity(b"anything", None) == b"anything"

    def test_mismatch(self) -> None:
        with pytest.raises(IntegrityError, match="Checksum mismatch"):
            check_integrity(b"tampered", hashlib.md5(b"original").hexdigest())
