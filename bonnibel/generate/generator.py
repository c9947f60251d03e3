"""Ninja build file generation.

This module handles:
- Rendering one build file per module and per target
- Rendering the top-level ``build.ninja`` that ties them together
- Loading and saving the build variables of a build directory

The top-level file is always rendered last: it lists every file and
template used by the per-module and per-target steps. It refers to itself
by the relative name ``build.ninja``, since ninja does not reload a
manifest correctly through an absolute self reference.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2

from bonnibel.errors import BuildIOError, TemplateRenderingError
from bonnibel.generate.templates import TemplateResolver
from bonnibel.generate.variables import VariableStore
from bonnibel.generate.version import GitVersionOracle, Version, VersionOracle
from bonnibel.project.graph import ModuleGraph, build_graph
from bonnibel.project.models import Project
from bonnibel.types import TemplateKind

logger = logging.getLogger(__name__)

BUILD_FILE_SUFFIX = ".ninja"
TARGET_BUILD_FILE = "target.ninja"
TOP_LEVEL_BUILD_FILE = "build.ninja"


@dataclass
class GenerationResult:
    """Files produced by a generation run.

    Attributes:
        build_files: Every build file written, top level last.
        templates: Every template consulted, in order of use.
        version: Version embedded in the build files.
    """

    build_files: list[Path] = field(default_factory=list)
    templates: list[Path] = field(default_factory=list)
    version: Version | None = None


def generator_path() -> Path:
    """Return the absolute path of the running generator executable."""
    return Path(sys.argv[0]).resolve()


def create_environment(template_root: Path) -> jinja2.Environment:
    """Create the Jinja2 environment used to render build files."""
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_root)),
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


class BuildGenerator:
    """Renders the Ninja build files of a project.

    Attributes:
        project: Loaded project.
        graph: Resolved module graph.
        build_dir: Directory the build files are written to.
    """

    def __init__(
        self,
        project: Project,
        graph: ModuleGraph,
        build_dir: Path,
        version_oracle: VersionOracle | None = None,
        generator: Path | None = None,
    ) -> None:
        self.project = project
        self.graph = graph
        self.build_dir = Path(build_dir)
        self.version_oracle = version_oracle or GitVersionOracle()
        self.generator = generator or generator_path()
        self.resolver = TemplateResolver(project.templates)
        self.env = create_environment(project.templates)

    def generate(self) -> GenerationResult:
        """Render every build file.

        The version is resolved before anything is written, so a version
        failure leaves the build directory untouched.

        Returns:
            GenerationResult listing the files and templates used.

        Raises:
            VersionError: If the version cannot be determined.
            MissingTemplateError: If a template cannot be found.
            TemplateRenderingError: If a template fails to render.
            BuildIOError: If a build file cannot be written.
            DependencyError: If module dependencies cannot be resolved.
        """
        version = self.version_oracle.version(self.project.root)
        result = GenerationResult(version=version)

        self._mkdir(self.build_dir)

        for name in sorted(self.project.modules):
            self.generate_module(name, version, result)

        for target in sorted(self.graph.targets):
            self.generate_target(target, version, result)

        self.generate_top_level(version, result)

        logger.info(
            "Generated %d build file(s) in %s", len(result.build_files), self.build_dir
        )
        return result

    def base_context(self, version: Version) -> dict[str, Any]:
        """Context shared by every build file."""
        return {
            "vars": dict(self.project.vars),
            "buildroot": self.build_dir,
            "srcroot": self.project.root,
            "version": str(version),
        }

    def generate_module(
        self, name: str, version: Version, result: GenerationResult
    ) -> Path:
        """Render ``<build_dir>/<module>.ninja``."""
        module = self.project.module(name)
        template = self.resolver.resolve(name, module.template_kind)
        buildfile = self.build_dir / f"{name}{BUILD_FILE_SUFFIX}"

        context = self.base_context(version)
        context.update(
            module=module,
            name=name,
            buildfile=buildfile,
            depmods=self.graph.depmods(name),
            deplibs=self.graph.deplibs(name),
            depexes=self.graph.depexes(name),
        )

        self.render(template, context, buildfile)
        result.templates.append(template)
        result.build_files.append(buildfile)
        return buildfile

    def generate_target(
        self, target: str, version: Version, result: GenerationResult
    ) -> Path:
        """Render ``<build_dir>/<target>/target.ninja``."""
        template = self.resolver.resolve(target, TemplateKind.TARGET)
        target_dir = self.build_dir / target
        self._mkdir(target_dir)
        buildfile = target_dir / TARGET_BUILD_FILE

        context = self.base_context(version)
        context.update(
            target=target,
            modules=self.graph.target_modules(target),
        )

        self.render(template, context, buildfile)
        result.templates.append(template)
        result.build_files.append(buildfile)
        return buildfile

    def generate_top_level(self, version: Version, result: GenerationResult) -> Path:
        """Render ``<build_dir>/build.ninja`` from every earlier output."""
        template = self.resolver.top_level()
        buildfile = self.build_dir / TOP_LEVEL_BUILD_FILE

        templates = [*result.templates, template]
        buildfiles = [*result.build_files, Path(TOP_LEVEL_BUILD_FILE)]

        context = self.base_context(version)
        context.update(
            targets=sorted(self.graph.targets),
            modules=[self.project.modules[n] for n in sorted(self.project.modules)],
            modulefile=self.project.config_file,
            version_major=version.major,
            version_minor=version.minor,
            version_patch=version.patch,
            version_sha=version.sha,
            buildfiles=buildfiles,
            templates=templates,
            generator=self.generator,
        )

        self.render(template, context, buildfile)
        result.templates.append(template)
        result.build_files.append(buildfile)
        return buildfile

    def render(self, template: Path, context: dict[str, Any], output: Path) -> None:
        """Render a template file and write the result.

        Raises:
            TemplateRenderingError: If the template fails to parse or render.
            BuildIOError: If the output cannot be written.
        """
        try:
            relative = template.relative_to(self.project.templates).as_posix()
            text = self.env.get_template(relative).render(**context)
        except Exception as e:
            raise TemplateRenderingError(template, e) from e

        logger.debug("Writing %s from %s", output, template.name)
        try:
            output.write_text(text, encoding="utf-8")
        except OSError as e:
            raise BuildIOError(f"writing {output}: {e}") from e

    @staticmethod
    def _mkdir(path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildIOError(f"creating {path}: {e}") from e


def initialize_build_dir(
    project: Project, build_dir: Path, entries: Iterable[str]
) -> dict[str, str]:
    """Parse ``name=value`` entries, persist them and apply them.

    Returns:
        The project's effective variables.

    Raises:
        InvalidVariableError: If an entry is malformed.
        VariableError: If the variables cannot be saved.
    """
    variables = VariableStore(build_dir).init(entries)
    project.vars.update(variables)
    return project.vars


def load_vars(project: Project, build_dir: Path) -> dict[str, str]:
    """Apply the variables persisted in a build directory.

    Raises:
        VariableError: If the build directory was never initialized.
    """
    project.vars.update(VariableStore(build_dir).load())
    return project.vars


def generate(
    project: Project,
    build_dir: Path,
    version_oracle: VersionOracle | None = None,
) -> GenerationResult:
    """Resolve a project's graph and render its build files."""
    graph = build_graph(project)
    return BuildGenerator(
        project, graph, build_dir, version_oracle=version_oracle
    ).generate()


__all__ = [
    "BUILD_FILE_SUFFIX",
    "BuildGenerator",
    "GenerationResult",
    "TARGET_BUILD_FILE",
    "TOP_LEVEL_BUILD_FILE",
    "create_environment",
    "generate",
    "generator_path",
    "initialize_build_dir",
    "load_vars",
]
