"""Shared type definitions for bonnibel.

This module contains enums and protocols shared across subpackages to
avoid circular imports.
"""

from enum import Enum
from typing import Protocol


class ModuleKind(str, Enum):
    """Kind of a build module."""

    LIBRARY = "lib"
    EXECUTABLE = "exe"


class TemplateKind(str, Enum):
    """Kind tag used to select a code generation template."""

    EXECUTABLE = "exe"
    LIBRARY = "lib"
    TARGET = "target"


class DownloadObserver(Protocol):
    """Receives progress notifications for an overlay download.

    ``on_length`` is called exactly once with the declared content length
    (0 if unknown), then ``on_chunk`` once per write with the byte count.
    """

    def on_length(self, total: int) -> None: ...

    def on_chunk(self, size: int) -> None: ...


class NullObserver:
    """Observer that ignores all progress notifications."""

    def on_length(self, total: int) -> None:
        pass

    def on_chunk(self, size: int) -> None:
        pass


__all__ = [
    "DownloadObserver",
    "ModuleKind",
    "NullObserver",
    "TemplateKind",
]
