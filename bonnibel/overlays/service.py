"""Overlay sync service.

This module provides the high-level API used by ``bonnibel sync``:
- sync_overlays(): Resolve, fetch and extract every overlay of a project
- fetch_overlay(): Download one overlay with optional retries

Downloads of distinct overlays run concurrently; each lands in its own
cache bucket through an atomic rename. Extraction runs afterwards, in
declaration order.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from bonnibel.errors import DownloadCancelledError, NetworkError
from bonnibel.overlays.cache import DOWNLOAD_TIMEOUT, Overlay, download_overlay
from bonnibel.overlays.extract import extract_overlay
from bonnibel.types import DownloadObserver, NullObserver

if TYPE_CHECKING:
    from bonnibel.project.models import Project

logger = logging.getLogger(__name__)

# Seconds to wait before each retry, multiplied by the attempt number
RETRY_BACKOFF = 2.0

ObserverFactory = Callable[[Overlay], DownloadObserver]


@dataclass
class OverlaySyncResult:
    """Outcome of syncing one overlay.

    Attributes:
        url: Overlay URL.
        cached: Path of the cached archive.
        destination: Directory the overlay was extracted into.
        downloaded: False if the archive was already cached.
    """

    url: str
    cached: Path
    destination: Path
    downloaded: bool


@dataclass
class SyncResult:
    """Outcome of syncing every overlay of a project."""

    results: list[OverlaySyncResult] = field(default_factory=list)

    @property
    def downloaded(self) -> int:
        return sum(1 for r in self.results if r.downloaded)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if not r.downloaded)


def fetch_overlay(
    overlay: Overlay,
    client: httpx.Client,
    observer: DownloadObserver | None = None,
    cancel: threading.Event | None = None,
    retries: int = 0,
    timeout: float = DOWNLOAD_TIMEOUT,
    backoff: float = RETRY_BACKOFF,
) -> Path:
    """Download an overlay, retrying network failures.

    Only NetworkError is retried; every other failure propagates at once.

    Args:
        overlay: Resolved overlay.
        client: HTTPX client instance.
        observer: Progress observer.
        cancel: Event that cancels the download when set.
        retries: Number of retries after the first attempt.
        timeout: Download timeout in seconds.
        backoff: Base delay between attempts in seconds.

    Returns:
        Path of the cached archive.

    Raises:
        NetworkError: If the last attempt fails.
        DownloadCancelledError: If ``cancel`` is set.
    """
    attempt = 0
    while True:
        try:
            return download_overlay(
                overlay, client, observer=observer, cancel=cancel, timeout=timeout
            )
        except NetworkError as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "Download of %s failed (%s), retry %d/%d",
                overlay.url,
                e,
                attempt,
                retries,
            )
            if cancel is not None and cancel.wait(backoff * attempt):
                raise DownloadCancelledError(
                    f"download of {overlay.url} cancelled"
                ) from e
            if cancel is None:
                time.sleep(backoff * attempt)


def sync_overlays(
    project: Project,
    cache_root: Path,
    client: httpx.Client | None = None,
    observer_factory: ObserverFactory | None = None,
    force: bool = False,
    retries: int = 0,
    max_concurrent_downloads: int = 2,
    timeout: float = DOWNLOAD_TIMEOUT,
    tar: str = "tar",
) -> SyncResult:
    """Fetch and extract every overlay of a project.

    Overlays already in the cache are not downloaded again unless
    ``force`` is set. The first failure cancels outstanding downloads and
    is re-raised.

    Args:
        project: Loaded project.
        cache_root: Root directory of the overlay cache.
        client: HTTPX client instance (one is created if not given).
        observer_factory: Builds a progress observer per downloaded overlay.
        force: Download even if already cached.
        retries: Retries per overlay for network failures.
        max_concurrent_downloads: Size of the download thread pool.
        timeout: Download timeout in seconds.
        tar: Extraction tool executable.

    Returns:
        SyncResult describing every overlay.

    Raises:
        URLError: If an overlay URL cannot be parsed.
        NetworkError: If a download fails.
        ExtractionError: If an extraction fails.
    """
    overlays = project.overlays
    for overlay in overlays:
        overlay.resolve(cache_root)

    pending = [o for o in overlays if force or not o.is_cached()]
    pending_ids = {id(o) for o in pending}
    for overlay in overlays:
        if id(overlay) not in pending_ids:
            logger.info("Overlay %s already cached", overlay.filename)

    if pending:
        if client is None:
            with httpx.Client(follow_redirects=True) as own_client:
                _download_all(
                    pending,
                    own_client,
                    observer_factory,
                    retries,
                    max_concurrent_downloads,
                    timeout,
                )
        else:
            _download_all(
                pending,
                client,
                observer_factory,
                retries,
                max_concurrent_downloads,
                timeout,
            )

    result = SyncResult()
    for overlay in overlays:
        destination = extract_overlay(overlay, project.root, tar=tar)
        result.results.append(
            OverlaySyncResult(
                url=overlay.url,
                cached=overlay.require_cached(),
                destination=destination,
                downloaded=id(overlay) in pending_ids,
            )
        )
    return result


def _download_all(
    overlays: list[Overlay],
    client: httpx.Client,
    observer_factory: ObserverFactory | None,
    retries: int,
    max_workers: int,
    timeout: float,
) -> None:
    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(
                fetch_overlay,
                overlay,
                client,
                observer_factory(overlay) if observer_factory else NullObserver(),
                cancel,
                retries,
                timeout,
            )
            for overlay in overlays
        ]
        try:
            for future in as_completed(futures):
                future.result()
        except BaseException:
            cancel.set()
            for future in futures:
                future.cancel()
            raise


__all__ = [
    "OverlaySyncResult",
    "SyncResult",
    "fetch_overlay",
    "sync_overlays",
]
