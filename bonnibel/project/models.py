"""Project domain models.

A Project exclusively owns its modules. Modules refer to each other only
by name; all traversal goes through the owning Project (see
``bonnibel.project.graph``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from bonnibel.errors import NoSuchModuleError
from bonnibel.types import ModuleKind, TemplateKind

if TYPE_CHECKING:
    from bonnibel.overlays.cache import Overlay
    from bonnibel.project.schema import ModuleSchema

# Action used for source files without an extension
UNKNOWN_ACTION = "unknown"

# Name used for a source path without a file name
UNNAMED_SOURCE = "unnamed"


@dataclass(frozen=True)
class SourceItem:
    """A single source file of a module.

    Attributes:
        name: File name of the source.
        input: Path of the source file.
        output: Object file path (``<input>.<ext>.o``).
        action: Build action, the source's extension.
    """

    name: str
    input: Path
    output: Path
    action: str

    @classmethod
    def from_path(cls, path: str | Path) -> SourceItem:
        """Derive a source item from a source file path.

        Args:
            path: Path of the source file.

        Returns:
            SourceItem with inferred output path and action.
        """
        path = Path(path)
        action = path.suffix[1:] if path.suffix else UNKNOWN_ACTION
        name = path.name or UNNAMED_SOURCE
        if path.suffix:
            output = path.with_suffix(f".{action}.o")
        elif path.name:
            output = path.with_name(f"{path.name}.{action}.o")
        else:
            output = path / f"{name}.{action}.o"
        return cls(
            name=name,
            input=path,
            output=output,
            action=action,
        )


@dataclass
class Module:
    """A named compilation unit.

    Attributes:
        name: Module name (its key in the project's module mapping).
        kind: Library or executable.
        output: Output file path.
        depends: Names of modules this module depends on.
        defines: Preprocessor defines.
        includes: Include paths (libraries only).
        source: Source items.
        target: Target name (executables only).
    """

    name: str
    kind: ModuleKind
    output: Path
    depends: list[str] = field(default_factory=list)
    defines: list[str] = field(default_factory=list)
    includes: list[Path] = field(default_factory=list)
    source: list[SourceItem] = field(default_factory=list)
    target: str | None = None

    @classmethod
    def from_schema(cls, name: str, schema: ModuleSchema) -> Module:
        """Build a module from its validated config entry."""
        kind = ModuleKind(schema.kind)
        includes: list[Path] = []
        target: str | None = None
        if kind is ModuleKind.LIBRARY:
            includes = [Path(p) for p in schema.includes]
        elif kind is ModuleKind.EXECUTABLE:
            target = schema.target
        else:
            raise AssertionError(f"unhandled module kind: {kind}")

        return cls(
            name=name,
            kind=kind,
            output=Path(schema.output),
            depends=list(schema.depends),
            defines=list(schema.defines),
            includes=includes,
            source=[SourceItem.from_path(p) for p in schema.source],
            target=target,
        )

    @property
    def is_library(self) -> bool:
        return self.kind is ModuleKind.LIBRARY

    @property
    def is_executable(self) -> bool:
        return self.kind is ModuleKind.EXECUTABLE

    @property
    def template_kind(self) -> TemplateKind:
        """Template kind tag for this module."""
        if self.kind is ModuleKind.LIBRARY:
            return TemplateKind.LIBRARY
        if self.kind is ModuleKind.EXECUTABLE:
            return TemplateKind.EXECUTABLE
        raise AssertionError(f"unhandled module kind: {self.kind}")


@dataclass
class Project:
    """A loaded modules file.

    Attributes:
        name: Project name.
        root: Project root, the directory holding the modules file. This is
            also the source root overlays are extracted into.
        templates: Template root directory.
        config_file: Path of the modules file.
        vars: Build variables.
        modules: Modules keyed by name.
        overlays: External overlays.
    """

    name: str
    root: Path
    templates: Path
    config_file: Path
    vars: dict[str, str] = field(default_factory=dict)
    modules: dict[str, Module] = field(default_factory=dict)
    overlays: list[Overlay] = field(default_factory=list)

    def module(self, name: str) -> Module:
        """Look up a module by name.

        Raises:
            NoSuchModuleError: If no module has that name.
        """
        try:
            return self.modules[name]
        except KeyError:
            raise NoSuchModuleError(name) from None

    @property
    def default_build_dir(self) -> Path:
        return self.root / "build"


__all__ = ["Module", "Project", "SourceItem", "UNKNOWN_ACTION", "UNNAMED_SOURCE"]
