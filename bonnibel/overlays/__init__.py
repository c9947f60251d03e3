"""Overlay cache module.

This module handles:
- Resolving overlay URLs to cache bucket paths
- Atomic downloads into the cache
- Extraction into the source tree

The sync service (``bonnibel.overlays.service``) is imported on demand to
avoid circular imports with ``bonnibel.project``.
"""

from bonnibel.overlays.cache import Overlay, download_overlay, url_hash
from bonnibel.overlays.extract import extract_overlay

__all__ = ["Overlay", "download_overlay", "extract_overlay", "url_hash"]
