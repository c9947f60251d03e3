"""Build executor shim.

``bonnibel build`` is a shortcut for running ninja in the build directory.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from bonnibel.errors import BuildExecutionError
from bonnibel.generate.generator import TOP_LEVEL_BUILD_FILE

logger = logging.getLogger(__name__)

# Ninja target built in release mode
RELEASE_TARGET = "release"


def compose_ninja_command(
    build_dir: Path,
    release: bool = False,
    ninja: str = "ninja",
) -> list[str]:
    """Compose the ninja command for a build directory.

    Args:
        build_dir: Generated build directory.
        release: Build the release target.
        ninja: Ninja executable.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [ninja, "-C", str(build_dir)]
    if release:
        cmd.append(RELEASE_TARGET)
    return cmd


def run_ninja(
    build_dir: Path,
    release: bool = False,
    ninja: str = "ninja",
) -> int:
    """Run ninja in a generated build directory.

    Output goes straight to the terminal.

    Returns:
        Ninja's exit code.

    Raises:
        BuildExecutionError: If the build directory was never generated or
            ninja cannot be started.
    """
    if not (Path(build_dir) / TOP_LEVEL_BUILD_FILE).is_file():
        raise BuildExecutionError(
            f"no {TOP_LEVEL_BUILD_FILE} in {build_dir}, run 'bonnibel init' first",
            code="not_generated",
        )

    cmd = compose_ninja_command(build_dir, release=release, ninja=ninja)
    logger.info("Executing build: %s", shlex.join(cmd))

    try:
        result = subprocess.run(cmd, check=False)
    except OSError as e:
        raise BuildExecutionError(
            f"Failed to execute {ninja}: {e}", code="execution_error"
        ) from e

    if result.returncode != 0:
        logger.error("Build failed with exit code %d", result.returncode)
    return result.returncode


__all__ = ["RELEASE_TARGET", "compose_ninja_command", "run_ninja"]
