"""Template selection.

Templates live flat in the project's template root and are named
``<kind>.<name>.j2``. When no template exists for a specific module or
target, ``<kind>.default.j2`` is used instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bonnibel.errors import MissingTemplateError, SchemaError
from bonnibel.types import TemplateKind

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"
DEFAULT_TEMPLATE_NAME = "default"
TOP_LEVEL_TEMPLATE = "build.ninja.j2"


class TemplateResolver:
    """Maps a (name, kind) pair to a template file.

    Attributes:
        root: Template root directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def candidates(self, name: str, kind: TemplateKind | str) -> list[Path]:
        """Return the template paths tried for an entity, in order."""
        tag = _kind_tag(kind)
        return [
            self.root / f"{tag}.{name}{TEMPLATE_SUFFIX}",
            self.root / f"{tag}.{DEFAULT_TEMPLATE_NAME}{TEMPLATE_SUFFIX}",
        ]

    def resolve(self, name: str, kind: TemplateKind | str) -> Path:
        """Resolve the template of an entity.

        Args:
            name: Module or target name.
            kind: Template kind tag.

        Returns:
            Path of the specific template if it exists, else the default.

        Raises:
            MissingTemplateError: If neither template exists.
            SchemaError: If the kind tag is unknown.
        """
        for candidate in self.candidates(name, kind):
            if candidate.is_file():
                logger.debug("Template for %s %s: %s", _kind_tag(kind), name, candidate)
                return candidate
        raise MissingTemplateError(name, _kind_tag(kind))

    def top_level(self) -> Path:
        """Return the top-level ``build.ninja.j2`` template.

        Raises:
            MissingTemplateError: If it does not exist.
        """
        path = self.root / TOP_LEVEL_TEMPLATE
        if not path.is_file():
            raise MissingTemplateError("build.ninja")
        return path


def _kind_tag(kind: TemplateKind | str) -> str:
    try:
        return TemplateKind(kind).value
    except ValueError:
        raise SchemaError(f"unknown template kind {kind!r}", code="unknown_kind") from None


__all__ = [
    "DEFAULT_TEMPLATE_NAME",
    "TEMPLATE_SUFFIX",
    "TOP_LEVEL_TEMPLATE",
    "TemplateResolver",
]
