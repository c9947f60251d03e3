"""Tests for the overlay cache.

These tests use mocked HTTP responses to test URL hashing, cache
resolution and the atomic download path.
"""

import re
import threading
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import respx

from bonnibel.errors import (
    DownloadCancelledError,
    NetworkError,
    OverlayError,
    URLError,
)
from bonnibel.overlays.cache import Overlay, download_overlay, url_filename, url_hash

ARCHIVE_URL = "https://example.com/dist/libfoo-1.0.tar.gz"


class RecordingObserver:
    """Observer that records every notification."""

    def __init__(self) -> None:
        self.lengths: list[int] = []
        self.chunks: list[int] = []

    def on_length(self, total: int) -> None:
        self.lengths.append(total)

    def on_chunk(self, size: int) -> None:
        self.chunks.append(size)


class BrokenStream(httpx.SyncByteStream):
    """Response body that fails after the first chunk."""

    def __iter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


def make_overlay(cache_root: Path, url: str = ARCHIVE_URL) -> Overlay:
    overlay = Overlay(url=url, path=Path("external/libfoo"))
    overlay.resolve(cache_root)
    return overlay


def bucket_files(overlay: Overlay) -> list[str]:
    return sorted(p.name for p in overlay.bucket.iterdir())


class TestUrlHash:
    """Tests for url_hash function."""

    def test_deterministic(self):
        """The same URL should always hash to the same value."""
        assert url_hash(ARCHIVE_URL) == url_hash(ARCHIVE_URL)

    def test_distinct_urls(self):
        """Different URLs should land in different buckets."""
        assert url_hash(ARCHIVE_URL) != url_hash(ARCHIVE_URL + "?v=2")

    def test_fits_64_bits(self):
        """The hash should be an unsigned 64-bit value."""
        assert 0 <= url_hash(ARCHIVE_URL) < 2**64


class TestUrlFilename:
    """Tests for url_filename function."""

    def test_last_segment(self):
        """Should return the last path segment."""
        assert url_filename(ARCHIVE_URL) == "libfoo-1.0.tar.gz"

    def test_ignores_query(self):
        """The query string is not part of the filename."""
        assert url_filename("https://example.com/a/b.zip?token=1") == "b.zip"

    def test_trailing_slash(self):
        """A URL ending in a slash has no filename."""
        with pytest.raises(URLError) as exc_info:
            url_filename("https://example.com/dist/")
        assert "no filename" in str(exc_info.value)

    def test_no_path(self):
        """A bare host has no filename."""
        with pytest.raises(URLError):
            url_filename("https://example.com")

    def test_unparseable(self):
        """A string without a scheme is not a URL."""
        with pytest.raises(URLError) as exc_info:
            url_filename("libfoo.tar.gz")
        assert "couldn't parse url" in str(exc_info.value)

    def test_unsupported_scheme(self):
        """Only http and https URLs are accepted."""
        with pytest.raises(URLError):
            url_filename("ssh://example.com/dist/libfoo.tar.gz")
        with pytest.raises(URLError):
            url_filename("file:///srv/dist/libfoo.tar.gz")

    def test_encoded_dot_segment(self):
        """An encoded '..' segment is not a filename."""
        with pytest.raises(URLError):
            url_filename("https://example.com/a/%2E%2E")
        with pytest.raises(URLError):
            url_filename("https://example.com/a/%2e")

    def test_encoded_slash_kept(self):
        """An encoded slash stays part of the last segment."""
        assert url_filename("https://example.com/a/a%2Fb.tgz") == "a%2Fb.tgz"


class TestOverlayResolve:
    """Tests for Overlay.resolve."""

    def test_layout(self, tmp_path):
        """Cached path should be <root>/<16 hex digits>/<filename>."""
        overlay = make_overlay(tmp_path)

        assert overlay.filename == "libfoo-1.0.tar.gz"
        assert overlay.hash == url_hash(ARCHIVE_URL)
        assert overlay.cached.parent.parent == tmp_path
        assert overlay.cached.name == "libfoo-1.0.tar.gz"
        assert re.fullmatch(r"[0-9a-f]{16}", overlay.cached.parent.name)
        assert overlay.cached.parent.name == f"{overlay.hash:016x}"

    def test_creates_bucket(self, tmp_path):
        """Resolving should create the bucket directory."""
        overlay = make_overlay(tmp_path / "cache")
        assert overlay.bucket.is_dir()

    def test_idempotent(self, tmp_path):
        """Resolving twice against one root should give the same path."""
        overlay = make_overlay(tmp_path)
        first = overlay.cached
        assert overlay.resolve(tmp_path) == first

    def test_is_cached(self, tmp_path):
        """is_cached should reflect the presence of the archive."""
        overlay = make_overlay(tmp_path)
        assert overlay.is_cached() is False

        overlay.cached.write_bytes(b"data")
        assert overlay.is_cached() is True

    def test_unresolved(self):
        """Using an unresolved overlay is a programming error."""
        overlay = Overlay(url=ARCHIVE_URL, path=Path("x"))
        with pytest.raises(RuntimeError):
            overlay.is_cached()

    def test_bad_url(self, tmp_path):
        """Resolving an overlay with a bad URL should fail."""
        overlay = Overlay(url="https://example.com/", path=Path("x"))
        with pytest.raises(URLError):
            overlay.resolve(tmp_path)

    def test_file_url(self, tmp_path):
        """A file URL cannot be downloaded and is rejected up front."""
        archive = tmp_path / "libfoo.tar.gz"
        overlay = Overlay(url=archive.as_uri(), path=Path("x"))
        with pytest.raises(URLError):
            overlay.resolve(tmp_path / "cache")

    def test_cache_root_not_a_directory(self, tmp_path):
        """A bucket that cannot be created should raise OverlayError."""
        cache_root = tmp_path / "cache"
        cache_root.write_text("not a directory")
        overlay = Overlay(url=ARCHIVE_URL, path=Path("x"))

        with pytest.raises(OverlayError) as exc_info:
            overlay.resolve(cache_root)
        assert exc_info.value.code == "io_error"


class TestDownloadOverlay:
    """Tests for download_overlay function."""

    @respx.mock
    def test_successful_download(self, tmp_path):
        """Should store the body at the cached path."""
        content = b"archive bytes"
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=content))
        overlay = make_overlay(tmp_path)

        with httpx.Client() as client:
            result = download_overlay(overlay, client)

        assert result == overlay.cached
        assert overlay.cached.read_bytes() == content
        assert overlay.is_cached()
        assert bucket_files(overlay) == ["libfoo-1.0.tar.gz"]

    @respx.mock
    def test_observer_notifications(self, tmp_path):
        """Observer gets the length once, then every chunk."""
        content = b"x" * 10
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=content))
        overlay = make_overlay(tmp_path)
        observer = RecordingObserver()

        with httpx.Client() as client:
            download_overlay(overlay, client, observer=observer, chunk_size=4)

        assert observer.lengths == [10]
        assert observer.chunks == [4, 4, 2]

    @respx.mock
    def test_replaces_existing(self, tmp_path):
        """A forced download should overwrite a cached archive."""
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=b"new"))
        overlay = make_overlay(tmp_path)
        overlay.cached.write_bytes(b"old")

        with httpx.Client() as client:
            download_overlay(overlay, client)

        assert overlay.cached.read_bytes() == b"new"

    @respx.mock
    def test_http_error(self, tmp_path):
        """Should raise NetworkError on a non-2xx status."""
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(404))
        overlay = make_overlay(tmp_path)

        with httpx.Client() as client, pytest.raises(NetworkError) as exc_info:
            download_overlay(overlay, client)

        assert exc_info.value.code == "http_error"
        assert "404" in str(exc_info.value)
        assert not overlay.is_cached()
        assert bucket_files(overlay) == []

    @respx.mock
    def test_timeout_error(self, tmp_path):
        """Should raise NetworkError on timeout."""
        respx.get(ARCHIVE_URL).mock(
            side_effect=httpx.TimeoutException("Connection timed out")
        )
        overlay = make_overlay(tmp_path)

        with httpx.Client() as client, pytest.raises(NetworkError) as exc_info:
            download_overlay(overlay, client)

        assert exc_info.value.code == "timeout"
        assert bucket_files(overlay) == []

    @respx.mock
    def test_connection_error(self, tmp_path):
        """Should raise NetworkError when the host cannot be reached."""
        respx.get(ARCHIVE_URL).mock(side_effect=httpx.ConnectError("refused"))
        overlay = make_overlay(tmp_path)

        with httpx.Client() as client, pytest.raises(NetworkError) as exc_info:
            download_overlay(overlay, client)

        assert exc_info.value.code == "network_error"

    def test_truncated_download(self, tmp_path):
        """A body cut off mid-transfer must not leave a cached file."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Length": "1000"}, stream=BrokenStream()
            )

        overlay = make_overlay(tmp_path)
        observer = RecordingObserver()

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(NetworkError):
                download_overlay(overlay, client, observer=observer)

        assert observer.lengths == [1000]
        assert not overlay.is_cached()
        assert bucket_files(overlay) == []

    @respx.mock
    def test_cancelled(self, tmp_path):
        """A set cancel event should abort the transfer."""
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=b"data"))
        overlay = make_overlay(tmp_path)
        cancel = threading.Event()
        cancel.set()

        with httpx.Client() as client, pytest.raises(DownloadCancelledError):
            download_overlay(overlay, client, cancel=cancel)

        assert not overlay.is_cached()
        assert bucket_files(overlay) == []

    def test_cancelled_mid_transfer(self, tmp_path):
        """Cancelling between chunks should stop before the next write."""
        cancel = threading.Event()

        class CancellingStream(httpx.SyncByteStream):
            def __iter__(self):
                yield b"aaaa"
                cancel.set()
                yield b"bbbb"
                yield b"cccc"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=CancellingStream())

        overlay = make_overlay(tmp_path)
        observer = RecordingObserver()

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(DownloadCancelledError):
                download_overlay(
                    overlay, client, observer=observer, cancel=cancel, chunk_size=4
                )

        assert observer.chunks == [4]
        assert not overlay.is_cached()
        assert bucket_files(overlay) == []

    @respx.mock
    def test_rename_failure(self, tmp_path):
        """A failed rename into the cache should raise OverlayError."""
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=b"data"))
        overlay = make_overlay(tmp_path)

        with patch(
            "bonnibel.overlays.cache.os.replace",
            side_effect=OSError(28, "No space left on device"),
        ):
            with httpx.Client() as client, pytest.raises(OverlayError) as exc_info:
                download_overlay(overlay, client)

        assert exc_info.value.code == "io_error"
        assert "No space left on device" in str(exc_info.value)
        assert not overlay.is_cached()
        assert bucket_files(overlay) == []

    @respx.mock
    def test_temp_file_failure(self, tmp_path):
        """A temporary file that cannot be created should raise OverlayError."""
        respx.get(ARCHIVE_URL).mock(return_value=httpx.Response(200, content=b"data"))
        overlay = make_overlay(tmp_path)
        overlay.bucket.rmdir()

        with httpx.Client() as client, pytest.raises(OverlayError) as exc_info:
            download_overlay(overlay, client)

        assert exc_info.value.code == "io_error"
