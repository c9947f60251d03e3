"""Source tree versioning.

The version embedded in generated build files comes from ``git describe``
run in the project root: the nearest reachable tag, plus the distance and
dirty state when the tree is not exactly at that tag.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from bonnibel.errors import VersionError

logger = logging.getLogger(__name__)

# Abbreviated commit id length
SHA_LENGTH = 7

DESCRIBE_PATTERN = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)"
    r"(?:[-.][0-9A-Za-z.]+?)?"
    r"-(?P<distance>\d+)-g(?P<sha>[0-9a-f]+)"
    r"(?P<dirty>-dirty)?$"
)
BARE_SHA_PATTERN = re.compile(r"^(?P<sha>[0-9a-f]+)(?P<dirty>-dirty)?$")


@dataclass(frozen=True)
class Version:
    """A semantic version with build metadata.

    Attributes:
        major: Major version.
        minor: Minor version.
        patch: Patch version.
        metadata: Build metadata identifiers; the first is always ``sha``.
        sha: Abbreviated commit id.
    """

    major: int
    minor: int
    patch: int
    sha: str
    metadata: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.metadata or self.metadata[0] != self.sha:
            object.__setattr__(self, "metadata", (self.sha, *self.metadata))

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}+{'.'.join(self.metadata)}" if self.metadata else base


class VersionOracle(Protocol):
    """Supplies the version of a source tree."""

    def version(self, root: Path) -> Version: ...


def parse_describe(output: str) -> Version:
    """Parse ``git describe --tags --long --dirty --always`` output.

    Args:
        output: Output of git describe, e.g. ``v1.2.3-4-gabc1234-dirty``.

    Returns:
        Parsed Version. Untagged trees are reported as 0.0.0.

    Raises:
        VersionError: If the output is not recognised.
    """
    output = output.strip()

    match = DESCRIBE_PATTERN.match(output)
    if match:
        distance = int(match["distance"])
        metadata = [match["sha"]]
        if distance:
            metadata.append(str(distance))
        if match["dirty"]:
            metadata.append("dirty")
        return Version(
            major=int(match["major"]),
            minor=int(match["minor"]),
            patch=int(match["patch"]),
            sha=match["sha"],
            metadata=tuple(metadata),
        )

    match = BARE_SHA_PATTERN.match(output)
    if match:
        metadata = [match["sha"]]
        if match["dirty"]:
            metadata.append("dirty")
        return Version(0, 0, 0, sha=match["sha"], metadata=tuple(metadata))

    raise VersionError(f"unrecognised version description {output!r}")


class GitVersionOracle:
    """Reads the version of a source tree from git."""

    def __init__(self, git: str = "git") -> None:
        self.git = git

    def version(self, root: Path) -> Version:
        """Return the version of the repository at ``root``.

        Raises:
            VersionError: If ``root`` is not a repository, has no commits,
                or git cannot be run.
        """
        cmd = [
            self.git,
            "describe",
            "--tags",
            "--long",
            "--dirty",
            "--always",
            f"--abbrev={SHA_LENGTH}",
        ]
        try:
            result = subprocess.run(
                cmd, cwd=root, capture_output=True, text=True, check=False
            )
        except OSError as e:
            raise VersionError(f"running {self.git}: {e}", code="git_error") from e

        if result.returncode != 0:
            raise VersionError(
                f"finding version of {root}: {result.stderr.strip()}",
                code="git_error",
            )

        version = parse_describe(result.stdout)
        logger.debug("Version of %s is %s", root, version)
        return version


class StaticVersionOracle:
    """Returns a fixed version, regardless of the source tree."""

    def __init__(self, version: Version) -> None:
        self._version = version

    def version(self, root: Path) -> Version:
        return self._version


__all__ = [
    "GitVersionOracle",
    "StaticVersionOracle",
    "Version",
    "VersionOracle",
    "parse_describe",
]
