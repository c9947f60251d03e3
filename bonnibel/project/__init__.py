"""Project management module.

This module handles:
- Modules file validation (YAML)
- Project, Module and SourceItem models
- Dependency resolution of modules and targets
"""

from bonnibel.project.graph import ModuleGraph, build_graph, close_over
from bonnibel.project.io import load_project, load_yaml
from bonnibel.project.models import Module, Project, SourceItem
from bonnibel.project.schema import (
    ExecutableModuleSchema,
    LibraryModuleSchema,
    OverlaySchema,
    ProjectSchema,
)

__all__ = [
    # Models
    "Module",
    "Project",
    "SourceItem",
    # Schema
    "ExecutableModuleSchema",
    "LibraryModuleSchema",
    "OverlaySchema",
    "ProjectSchema",
    # IO functions
    "load_project",
    "load_yaml",
    # Graph
    "ModuleGraph",
    "build_graph",
    "close_over",
]
