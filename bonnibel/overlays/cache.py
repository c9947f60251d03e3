"""Content-addressed overlay cache.

This module handles:
- Hashing overlay URLs into cache buckets
- Deriving the cached file name from the URL
- Streaming downloads into the cache with atomic persistence

Cache layout: ``<cache_root>/<16 hex digit url hash>/<filename>``.

The bucket key is a hash of the URL only. It is used for bucketing and
gives no guarantee about the integrity of the downloaded content.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO
from urllib.parse import unquote

import httpx

from bonnibel.errors import DownloadCancelledError, NetworkError, OverlayError, URLError
from bonnibel.types import DownloadObserver, NullObserver

logger = logging.getLogger(__name__)

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB

# Schemes an overlay URL may be downloaded from
URL_SCHEMES = ("http", "https")


def url_hash(url: str) -> int:
    """Compute a stable 64-bit hash of a URL.

    Args:
        url: URL string.

    Returns:
        Unsigned 64-bit integer, identical across runs and processes.
    """
    digest = hashlib.blake2b(url.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def url_filename(url: str) -> str:
    """Return the last path segment of a URL, still percent-encoded.

    A path ending in ``/`` has an empty last segment and so no filename.

    Raises:
        URLError: If the URL cannot be parsed, is not http(s), or has no
            usable filename.
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise URLError(f"couldn't parse url: {url}") from e

    if parsed.scheme not in URL_SCHEMES:
        raise URLError(f"couldn't parse url: {url}")

    raw_path = parsed.raw_path.decode("ascii").partition("?")[0]
    filename = raw_path.rsplit("/", 1)[-1]
    if not filename or unquote(filename) in (".", ".."):
        raise URLError(f"url has no filename: {url}")
    return filename


@dataclass
class Overlay:
    """An external archive extracted into the source tree.

    The derived fields are computed by ``resolve()`` once per cache root
    and are never persisted.

    Attributes:
        url: Download URL.
        path: Destination directory, relative to the source root.
        hash: 64-bit hash of the URL.
        cached: Path of the cached archive.
        filename: File name taken from the URL.
    """

    url: str
    path: Path
    hash: int | None = field(default=None, init=False)
    cached: Path | None = field(default=None, init=False)
    filename: str | None = field(default=None, init=False)
    _cache_root: Path | None = field(default=None, init=False, repr=False)

    def resolve(self, cache_root: Path) -> Path:
        """Resolve the cache location of this overlay.

        Creates the cache bucket directory if it does not exist.

        Args:
            cache_root: Root directory of the overlay cache.

        Returns:
            Path of the cached archive.

        Raises:
            URLError: If the URL cannot be parsed or has no filename.
            OverlayError: If the bucket directory cannot be created.
        """
        cache_root = Path(cache_root)
        if self.cached is not None and self._cache_root == cache_root:
            return self.cached

        filename = url_filename(self.url)
        digest = url_hash(self.url)
        bucket = cache_root / f"{digest:016x}"
        try:
            bucket.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OverlayError(
                f"Failed to create cache directory {bucket}: {e}", code="io_error"
            ) from e

        self.hash = digest
        self.filename = filename
        self.cached = bucket / filename
        self._cache_root = cache_root
        logger.debug("Overlay %s resolves to %s", self.url, self.cached)
        return self.cached

    @property
    def bucket(self) -> Path:
        """Cache bucket directory of this overlay."""
        return self.require_cached().parent

    def is_cached(self) -> bool:
        """Return True if the archive is already in the cache."""
        return self.require_cached().is_file()

    def require_cached(self) -> Path:
        """Return the cached path, failing if the overlay is unresolved."""
        if self.cached is None:
            raise RuntimeError(f"overlay {self.url} has not been resolved")
        return self.cached


def _content_length(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("content-length", 0))
    except ValueError:
        return 0


def download_overlay(
    overlay: Overlay,
    client: httpx.Client,
    observer: DownloadObserver | None = None,
    cancel: threading.Event | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> Path:
    """Download an overlay archive into its cache bucket.

    The body is streamed into a temporary file inside the bucket, which is
    renamed onto the cached path only once the whole body has arrived. A
    failed or cancelled download never leaves a file at the cached path.

    Args:
        overlay: Resolved overlay.
        client: HTTPX client instance.
        observer: Progress observer.
        cancel: Event that cancels the download when set.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.

    Returns:
        Path of the cached archive.

    Raises:
        NetworkError: If the request fails or returns a non-2xx status.
        DownloadCancelledError: If ``cancel`` is set during the transfer.
        OverlayError: If the archive cannot be written to the cache.
    """
    if observer is None:
        observer = NullObserver()
    cached = overlay.require_cached()

    logger.info("Downloading %s to %s", overlay.url, cached)

    try:
        tmp_file = tempfile.NamedTemporaryFile(
            dir=cached.parent, prefix=f".{cached.name}.", suffix=".part", delete=False
        )
    except OSError as e:
        raise OverlayError(
            f"Failed to create temporary file in {cached.parent}: {e}",
            code="io_error",
        ) from e
    tmp_path = Path(tmp_file.name)

    try:
        with tmp_file:
            total_bytes = _stream_body(
                overlay, client, tmp_file, observer, cancel, timeout, chunk_size
            )
        os.replace(tmp_path, cached)
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            f"HTTP error downloading {overlay.url}: "
            f"{e.response.status_code} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise NetworkError(f"Timeout downloading {overlay.url}", code="timeout") from e
    except httpx.RequestError as e:
        raise NetworkError(f"Network error downloading {overlay.url}: {e}") from e
    except OSError as e:
        raise OverlayError(f"Failed to write {cached}: {e}", code="io_error") from e
    finally:
        # No-op after a successful rename
        tmp_path.unlink(missing_ok=True)

    logger.info("Downloaded %s (%d bytes)", cached.name, total_bytes)
    return cached


def _stream_body(
    overlay: Overlay,
    client: httpx.Client,
    out: IO[bytes],
    observer: DownloadObserver,
    cancel: threading.Event | None,
    timeout: float,
    chunk_size: int,
) -> int:
    with client.stream(
        "GET", overlay.url, timeout=timeout, follow_redirects=True
    ) as response:
        response.raise_for_status()
        observer.on_length(_content_length(response))

        total_bytes = 0
        for chunk in response.iter_bytes(chunk_size):
            if cancel is not None and cancel.is_set():
                raise DownloadCancelledError(f"download of {overlay.url} cancelled")
            out.write(chunk)
            total_bytes += len(chunk)
            observer.on_chunk(len(chunk))
    return total_bytes


__all__ = [
    "DOWNLOAD_CHUNK_SIZE",
    "DOWNLOAD_TIMEOUT",
    "Overlay",
    "download_overlay",
    "url_filename",
    "url_hash",
]
