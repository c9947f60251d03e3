"""Modules file loading.

This module reads a YAML modules file, validates it against the project
schema, and builds a Project from it. Dependency resolution is a separate,
explicit step (``bonnibel.project.graph.build_graph``).
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from bonnibel.errors import ConfigError, SchemaError
from bonnibel.overlays.cache import Overlay
from bonnibel.project.models import Module, Project
from bonnibel.project.schema import ProjectSchema

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        ConfigError: If the file cannot be read, is not valid YAML,
            or is not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"opening file {path}: {e.strerror or e}", code="open_file") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing config file {path}", code="parse_config") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"parsing config file {path}: expected a YAML mapping, "
            f"got {type(data).__name__}",
            code="parse_config",
        )
    return data


def parse_project_data(data: dict[str, Any]) -> ProjectSchema:
    """Validate modules file data against the schema.

    Raises:
        SchemaError: If data does not match the schema.
    """
    try:
        return ProjectSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"invalid modules file: {e}") from e


def project_from_schema(schema: ProjectSchema, config_file: Path) -> Project:
    """Build a Project from a validated schema.

    Relative template paths are resolved against the directory holding
    the modules file.

    Args:
        schema: Validated modules file.
        config_file: Path of the modules file.

    Returns:
        Project instance.
    """
    config_file = config_file.resolve()
    root = config_file.parent
    templates = Path(schema.templates)
    if not templates.is_absolute():
        templates = root / templates

    return Project(
        name=schema.name,
        root=root,
        templates=templates,
        config_file=config_file,
        vars=dict(schema.vars),
        modules={
            name: Module.from_schema(name, module)
            for name, module in schema.modules.items()
        },
        overlays=[Overlay(url=o.url, path=Path(o.path)) for o in schema.overlays],
    )


def load_project(path: Path) -> Project:
    """Load a Project from a modules file.

    Args:
        path: Path to the modules file.

    Returns:
        Project instance.

    Raises:
        ConfigError: If the file cannot be opened or parsed.
        SchemaError: If the file does not match the schema.
    """
    logger.debug("Loading project from %s", path)
    schema = parse_project_data(load_yaml(Path(path)))
    project = project_from_schema(schema, Path(path))
    logger.info(
        "Loaded project %s: %d module(s), %d overlay(s)",
        project.name,
        len(project.modules),
        len(project.overlays),
    )
    return project


__all__ = [
    "load_project",
    "load_yaml",
    "parse_project_data",
    "project_from_schema",
]
