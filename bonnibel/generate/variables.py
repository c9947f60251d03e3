"""Persisted build variables.

Variables given to ``bonnibel init`` are stored in a hidden YAML file at
the root of the build directory, and loaded again by every later
``generate``. This file is the only state kept between invocations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import yaml

from bonnibel.errors import InvalidVariableError, VariableError

logger = logging.getLogger(__name__)

VARS_FILENAME = ".bonnibel_vars"


def parse_vars(entries: Iterable[str]) -> dict[str, str]:
    """Parse ``name=value`` entries into a mapping.

    Each entry is split at its first ``=``, so values may contain further
    ``=`` characters. Later entries override earlier ones.

    Raises:
        InvalidVariableError: If an entry has no ``=`` or an empty name.
    """
    result: dict[str, str] = {}
    for entry in entries:
        name, sep, value = entry.partition("=")
        if not sep or not name:
            raise InvalidVariableError(entry)
        result[name] = value
    return result


class VariableStore:
    """Build variables persisted in a build directory.

    Attributes:
        build_dir: Build directory holding the state file.
    """

    def __init__(self, build_dir: Path) -> None:
        self.build_dir = Path(build_dir)

    @property
    def path(self) -> Path:
        return self.build_dir / VARS_FILENAME

    def save(self, variables: dict[str, str]) -> Path:
        """Write variables to the state file, creating the build directory.

        Raises:
            VariableError: If the file cannot be written.
        """
        try:
            self.build_dir.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    dict(variables), f, default_flow_style=False, sort_keys=True
                )
        except OSError as e:
            raise VariableError(f"writing {self.path}: {e}", code="write_error") from e
        logger.debug("Saved %d variable(s) to %s", len(variables), self.path)
        return self.path

    def init(self, entries: Iterable[str]) -> dict[str, str]:
        """Parse ``name=value`` entries and save them.

        Returns:
            The parsed variables.
        """
        variables = parse_vars(entries)
        self.save(variables)
        return variables

    def load(self) -> dict[str, str]:
        """Read variables from the state file.

        Raises:
            VariableError: If the file is missing or malformed.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise VariableError(
                f"no variables in {self.build_dir}, run 'bonnibel init' first",
                code="missing_state",
            ) from e
        except OSError as e:
            raise VariableError(f"reading {self.path}: {e}", code="read_error") from e
        except yaml.YAMLError as e:
            raise VariableError(f"parsing {self.path}", code="corrupt_state") from e

        if data is None:
            return {}
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise VariableError(
                f"parsing {self.path}: expected a mapping of strings",
                code="corrupt_state",
            )
        return data


__all__ = ["VARS_FILENAME", "VariableStore", "parse_vars"]
