"""Module dependency resolution.

This module handles:
- Building the target map from executable modules
- Reflexive-transitive dependency closures over ``depends``
- Cycle detection during traversal

Closures are computed with an explicit work list and a three-state marker
per module name, so a cycle fails with DependencyCycleError instead of
looping forever.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from bonnibel.errors import DependencyCycleError
from bonnibel.project.models import Module, Project
from bonnibel.types import ModuleKind

logger = logging.getLogger(__name__)


class _Mark(Enum):
    VISITING = 1
    CLOSED = 2


def close_over(project: Project, seeds: Iterable[str]) -> set[str]:
    """Compute the reflexive-transitive closure of ``seeds`` over depends.

    Args:
        project: Project owning the modules.
        seeds: Initial module names; all of them are part of the result.

    Returns:
        Set of every module name reachable from the seeds, seeds included.

    Raises:
        NoSuchModuleError: If any visited name is not a module.
        DependencyCycleError: If a dependency cycle is reachable.
    """
    marks: dict[str, _Mark] = {}

    for seed in seeds:
        if marks.get(seed) is _Mark.CLOSED:
            continue

        work = [iter(project.module(seed).depends)]
        marks[seed] = _Mark.VISITING
        path = [seed]

        while work:
            dep = next(work[-1], None)
            if dep is None:
                work.pop()
                marks[path.pop()] = _Mark.CLOSED
                continue

            mark = marks.get(dep)
            if mark is _Mark.CLOSED:
                continue
            if mark is _Mark.VISITING:
                cycle = path[path.index(dep) :] + [dep]
                raise DependencyCycleError(cycle)

            module = project.module(dep)
            marks[dep] = _Mark.VISITING
            path.append(dep)
            work.append(iter(module.depends))

    return set(marks)


@dataclass
class ModuleGraph:
    """Resolved dependency view of a project.

    Attributes:
        project: Project owning the modules.
        targets: Target name to the closed set of its module names.
    """

    project: Project
    targets: dict[str, frozenset[str]] = field(default_factory=dict)

    def depmods(self, name: str) -> list[Module]:
        """Return every module transitively required by a module.

        Args:
            name: Module name.

        Returns:
            Modules sorted by name, each appearing once.
        """
        module = self.project.module(name)
        closed = close_over(self.project, [name])
        closed.discard(module.name)
        return [self.project.modules[n] for n in sorted(closed)]

    def deplibs(self, name: str) -> list[Module]:
        """Return the library modules among ``depmods(name)``."""
        return [m for m in self.depmods(name) if _kind_matches(m, ModuleKind.LIBRARY)]

    def depexes(self, name: str) -> list[Module]:
        """Return the executable modules among ``depmods(name)``."""
        return [
            m for m in self.depmods(name) if _kind_matches(m, ModuleKind.EXECUTABLE)
        ]

    def target_modules(self, target: str) -> list[str]:
        """Return the sorted module names of a target.

        Raises:
            KeyError: If no executable declares the target.
        """
        return sorted(self.targets[target])


def _kind_matches(module: Module, kind: ModuleKind) -> bool:
    if module.kind is ModuleKind.LIBRARY:
        return kind is ModuleKind.LIBRARY
    if module.kind is ModuleKind.EXECUTABLE:
        return kind is ModuleKind.EXECUTABLE
    raise AssertionError(f"unhandled module kind: {module.kind}")


def build_graph(project: Project) -> ModuleGraph:
    """Resolve the targets of a project.

    Every executable registers itself into the target it names; each
    target's seed set is then closed over ``depends``.

    Args:
        project: Loaded project.

    Returns:
        ModuleGraph with the target map filled in.

    Raises:
        NoSuchModuleError: If any dependency names an unknown module.
        DependencyCycleError: If a target's closure contains a cycle.
    """
    seeds: dict[str, set[str]] = {}
    for name in sorted(project.modules):
        module = project.modules[name]
        if module.kind is ModuleKind.EXECUTABLE:
            seeds.setdefault(module.target or "", set()).add(name)
        elif module.kind is not ModuleKind.LIBRARY:
            raise AssertionError(f"unhandled module kind: {module.kind}")

    targets: dict[str, frozenset[str]] = {}
    for target in sorted(seeds):
        targets[target] = frozenset(close_over(project, sorted(seeds[target])))
        logger.debug(
            "Target %s resolves to %s", target, ", ".join(sorted(targets[target]))
        )

    return ModuleGraph(project=project, targets=targets)


__all__ = ["ModuleGraph", "build_graph", "close_over"]
