"""Build file generation module.

This module handles:
- Template selection with default fallback
- Build variables persisted in the build directory
- Source tree versioning from git
- Rendering per-module, per-target and top-level Ninja files
"""

from bonnibel.generate.generator import (
    BuildGenerator,
    GenerationResult,
    generate,
    initialize_build_dir,
    load_vars,
)
from bonnibel.generate.templates import TemplateResolver
from bonnibel.generate.variables import VariableStore, parse_vars
from bonnibel.generate.version import (
    GitVersionOracle,
    StaticVersionOracle,
    Version,
    parse_describe,
)

__all__ = [
    # Generation
    "BuildGenerator",
    "GenerationResult",
    "generate",
    "initialize_build_dir",
    "load_vars",
    # Templates
    "TemplateResolver",
    # Variables
    "VariableStore",
    "parse_vars",
    # Versioning
    "GitVersionOracle",
    "StaticVersionOracle",
    "Version",
    "parse_describe",
]
