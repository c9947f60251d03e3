"""Overlay extraction.

Extraction is delegated to the system ``tar`` command, which picks the
decompressor from the archive itself.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from bonnibel.errors import ExtractionError
from bonnibel.overlays.cache import Overlay

logger = logging.getLogger(__name__)


def overlay_destination(overlay: Overlay, source_root: Path) -> Path:
    """Return the directory an overlay is extracted into.

    Raises:
        ExtractionError: If the overlay path escapes the source root.
    """
    path = Path(overlay.path)
    if path.is_absolute() or ".." in path.parts:
        raise ExtractionError(
            f"Refusing to extract {overlay.url} to {path}: path traversal detected",
            code="path_traversal",
        )
    return Path(source_root) / path


def compose_extract_command(archive: Path, dest_dir: Path, tar: str = "tar") -> list[str]:
    """Compose the extraction command for an archive.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [tar, "-xf", str(archive), "-C", str(dest_dir)]


def extract_overlay(overlay: Overlay, source_root: Path, tar: str = "tar") -> Path:
    """Extract a cached overlay into the source tree.

    Args:
        overlay: Resolved and cached overlay.
        source_root: Root of the source tree.
        tar: Extraction tool executable.

    Returns:
        Directory the overlay was extracted into.

    Raises:
        ExtractionError: If the tool cannot be started or exits nonzero.
    """
    dest_dir = overlay_destination(overlay, source_root)
    archive = overlay.require_cached()

    logger.info("Extracting %s to %s", archive.name, dest_dir)

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExtractionError(
            f"Failed to create {dest_dir}: {e}", code="os_error"
        ) from e

    cmd = compose_extract_command(archive, dest_dir, tar=tar)
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise ExtractionError(
            f"Failed to run {tar}: {e}", code="spawn_error"
        ) from e

    if result.returncode != 0:
        raise ExtractionError(
            f"Failed to extract {archive}: {result.stderr.strip()}",
            code="tar_error",
        )

    logger.debug("Extracted %s", archive.name)
    return dest_dir


__all__ = ["compose_extract_command", "extract_overlay", "overlay_destination"]
