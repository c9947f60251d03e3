"""Pydantic models for project config validation.

This module defines the Pydantic models for validating the modules file
(``modules.yaml``) before a Project is built from it.
"""

from pathlib import PurePath
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Module names that would collide with generated files (build.ninja)
RESERVED_MODULE_NAMES = frozenset({"build"})


def _check_path_name(what: str, value: str) -> str:
    """Reject names that are not a single plain path component."""
    if value in ("", ".", "..") or "/" in value or "\\" in value:
        raise ValueError(f"{what} name {value!r} must be a plain file name")
    return value


def _stringify_mapping(v: Any) -> Any:
    """Coerce YAML scalars in a mapping to strings."""
    if v is None:
        return {}
    if isinstance(v, dict):
        return {
            str(key): "" if value is None else _scalar_to_str(value)
            for key, value in v.items()
        }
    return v


def _scalar_to_str(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _ModuleBase(BaseModel):
    """Fields shared by every module kind."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    depends: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("depends", "deps"),
        description="Names of modules this module depends on",
    )
    defines: list[str] = Field(
        default_factory=list, description="Preprocessor defines"
    )
    output: str = Field(min_length=1, description="Output file path")
    source: list[str] = Field(default_factory=list, description="Source files")

    @field_validator("depends", "defines", "source", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        """Treat an explicit null list as empty."""
        return [] if v is None else v

    @field_validator("source")
    @classmethod
    def source_has_file_name(cls, v: list[str]) -> list[str]:
        """Every source entry must name a file."""
        for entry in v:
            if PurePath(entry).name in ("", ".", ".."):
                raise ValueError(f"source entry {entry!r} has no file name")
        return v


class LibraryModuleSchema(_ModuleBase):
    """Schema for a library module.

    Attributes:
        includes: Include paths exported by the library.
    """

    kind: Literal["lib"]
    includes: list[str] = Field(default_factory=list, description="Include paths")

    @field_validator("includes", mode="before")
    @classmethod
    def includes_none_as_empty(cls, v: Any) -> Any:
        """Treat an explicit null list as empty."""
        return [] if v is None else v


class ExecutableModuleSchema(_ModuleBase):
    """Schema for an executable module.

    Attributes:
        target: Name of the target this executable belongs to.
    """

    kind: Literal["exe"]
    target: str = Field(min_length=1, description="Target name")

    @field_validator("target")
    @classmethod
    def target_is_plain_name(cls, v: str) -> str:
        """Target names become build directory components."""
        return _check_path_name("target", v)


ModuleSchema = Annotated[
    Union[LibraryModuleSchema, ExecutableModuleSchema],
    Field(discriminator="kind"),
]


class OverlaySchema(BaseModel):
    """Schema for an external source overlay.

    Attributes:
        url: Download URL of the overlay archive.
        path: Destination directory relative to the source root.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, description="Archive URL")
    path: str = Field(min_length=1, description="Destination relative path")


class ProjectSchema(BaseModel):
    """Complete schema of a modules file.

    Attributes:
        name: Project name.
        templates: Template directory, relative to the modules file.
        vars: Default build variables.
        overlays: External overlays to sync into the source tree.
        modules: Module definitions keyed by module name.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, description="Project name")
    templates: str = Field(min_length=1, description="Template directory")
    vars: dict[str, str] = Field(default_factory=dict)
    overlays: list[OverlaySchema] = Field(default_factory=list)
    modules: dict[str, ModuleSchema] = Field(default_factory=dict)

    @field_validator("vars", mode="before")
    @classmethod
    def vars_as_strings(cls, v: Any) -> Any:
        """Coerce variable values to strings."""
        return _stringify_mapping(v)

    @field_validator("overlays", mode="before")
    @classmethod
    def overlays_none_as_empty(cls, v: Any) -> Any:
        """Treat an explicit null list as empty."""
        return [] if v is None else v

    @field_validator("modules", mode="before")
    @classmethod
    def modules_none_as_empty(cls, v: Any) -> Any:
        """Treat an explicit null mapping as empty."""
        return {} if v is None else v

    @field_validator("modules")
    @classmethod
    def module_names_are_plain(cls, v: dict[str, Any]) -> dict[str, Any]:
        """Module names become build file names."""
        for name in v:
            _check_path_name("module", name)
            if name in RESERVED_MODULE_NAMES:
                raise ValueError(f"module name {name!r} is reserved")
        return v


__all__ = [
    "RESERVED_MODULE_NAMES",
    "ExecutableModuleSchema",
    "LibraryModuleSchema",
    "ModuleSchema",
    "OverlaySchema",
    "ProjectSchema",
]
