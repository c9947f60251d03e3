"""Error taxonomy for bonnibel.

Every failure raised by the core derives from BonnibelError and carries a
stable ``code`` for structured handling. Errors are never recovered
internally; the CLI prints the flattened cause chain and exits nonzero.
"""

from __future__ import annotations

from pathlib import Path


class BonnibelError(Exception):
    """Base class for all bonnibel errors."""

    default_code = "bonnibel_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        """Initialize BonnibelError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code or self.default_code


class ConfigError(BonnibelError):
    """Raised when the project config file cannot be opened or parsed."""

    default_code = "config_error"


class SchemaError(BonnibelError):
    """Raised when the project config does not match the schema."""

    default_code = "schema_error"


class DependencyError(BonnibelError):
    """Raised when module dependencies cannot be resolved."""

    default_code = "dependency_error"


class NoSuchModuleError(DependencyError):
    """Raised when a dependency names a module that does not exist."""

    default_code = "no_such_module"

    def __init__(self, name: str) -> None:
        super().__init__(f"no module named {name!r}")
        self.name = name


class DependencyCycleError(DependencyError):
    """Raised when the depends graph contains a cycle."""

    default_code = "dependency_cycle"

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"dependency cycle: {' -> '.join(cycle)}")
        self.cycle = cycle


class TemplateError(BonnibelError):
    """Raised when a template cannot be found or rendered."""

    default_code = "template_error"


class MissingTemplateError(TemplateError):
    """Raised when neither a specific nor a default template exists."""

    default_code = "missing_template"

    def __init__(self, name: str, kind: str | None = None) -> None:
        label = f"{kind}.{name}" if kind else name
        super().__init__(f"no template found for {label}")
        self.name = name
        self.kind = kind


class TemplateRenderingError(TemplateError):
    """Raised when the template engine fails to render a template."""

    default_code = "template_rendering"

    def __init__(self, template: Path, cause: BaseException) -> None:
        super().__init__(f"rendering {template}: {format_error_chain(cause)}")
        self.template = template


class BuildIOError(BonnibelError):
    """Raised when a generated file cannot be created or written."""

    default_code = "io_error"


class VersionError(BonnibelError):
    """Raised when the source tree version cannot be determined."""

    default_code = "version_error"


class VariableError(BonnibelError):
    """Raised when build variables cannot be loaded or parsed."""

    default_code = "variable_error"


class InvalidVariableError(VariableError):
    """Raised when a variable entry is not of the form name=value."""

    default_code = "invalid_variable"

    def __init__(self, entry: str) -> None:
        super().__init__(f"invalid variable {entry!r}, expected name=value")
        self.entry = entry


class OverlayError(BonnibelError):
    """Base class for overlay cache failures."""

    default_code = "overlay_error"


class NetworkError(OverlayError):
    """Raised when an overlay download fails."""

    default_code = "network_error"


class DownloadCancelledError(OverlayError):
    """Raised when an in-flight overlay download is cancelled."""

    default_code = "download_cancelled"


class URLError(OverlayError):
    """Raised when an overlay URL cannot be parsed into a filename."""

    default_code = "url_error"


class ExtractionError(OverlayError):
    """Raised when an overlay archive cannot be extracted."""

    default_code = "extraction_error"


class BuildExecutionError(BonnibelError):
    """Raised when the build executor cannot be started."""

    default_code = "build_error"

    def __init__(
        self, message: str, exit_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message, code=code)
        self.exit_code = exit_code


def format_error_chain(exc: BaseException) -> str:
    """Flatten an exception and its causes into a single message.

    Follows ``__cause__`` first, then ``__context__`` unless suppressed,
    joining each message with ``": "``. A message already contained in
    the previous one is skipped.

    Args:
        exc: Exception to describe.

    Returns:
        One-line description of the whole causal chain.
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        if not parts or message not in parts[-1]:
            parts.append(message)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    return ": ".join(parts)


__all__ = [
    "BonnibelError",
    "BuildExecutionError",
    "BuildIOError",
    "ConfigError",
    "DependencyCycleError",
    "DependencyError",
    "DownloadCancelledError",
    "ExtractionError",
    "InvalidVariableError",
    "MissingTemplateError",
    "NetworkError",
    "NoSuchModuleError",
    "OverlayError",
    "SchemaError",
    "TemplateError",
    "TemplateRenderingError",
    "URLError",
    "VariableError",
    "VersionError",
    "format_error_chain",
]
