"""Tests for the error taxonomy."""

from pathlib import Path

from bonnibel.errors import (
    BonnibelError,
    ConfigError,
    DependencyCycleError,
    DependencyError,
    MissingTemplateError,
    NetworkError,
    NoSuchModuleError,
    OverlayError,
    TemplateRenderingError,
    format_error_chain,
)


class TestErrorCodes:
    """Tests for error codes."""

    def test_default_code(self):
        """Each class should carry its own default code."""
        assert BonnibelError("x").code == "bonnibel_error"
        assert ConfigError("x").code == "config_error"
        assert NetworkError("x").code == "network_error"

    def test_explicit_code(self):
        """An explicit code should override the default."""
        assert NetworkError("x", code="timeout").code == "timeout"

    def test_hierarchy(self):
        """Specific errors should be catchable by their family."""
        assert isinstance(NoSuchModuleError("a"), DependencyError)
        assert isinstance(DependencyCycleError(["a", "a"]), DependencyError)
        assert isinstance(NetworkError("x"), OverlayError)
        assert isinstance(OverlayError("x"), BonnibelError)

    def test_missing_template_message(self):
        """The message should name the kind and entity."""
        assert str(MissingTemplateError("kernel", "exe")) == (
            "no template found for exe.kernel"
        )
        assert str(MissingTemplateError("build.ninja")) == (
            "no template found for build.ninja"
        )


class TestFormatErrorChain:
    """Tests for format_error_chain function."""

    def test_single(self):
        """A lone error should format as its message."""
        assert format_error_chain(ConfigError("bad config")) == "bad config"

    def test_chain(self):
        """Causes should be joined with ': '."""
        try:
            try:
                raise OSError("No such file or directory")
            except OSError as e:
                raise ConfigError("opening modules.yaml") from e
        except ConfigError as e:
            chained = e

        assert format_error_chain(chained) == (
            "opening modules.yaml: No such file or directory"
        )

    def test_implicit_context(self):
        """An implicit context should be followed too."""
        try:
            try:
                raise ValueError("inner")
            except ValueError:
                raise RuntimeError("outer")  # noqa: B904
        except RuntimeError as e:
            chained = e

        assert format_error_chain(chained) == "outer: inner"

    def test_suppressed_context(self):
        """A context suppressed with 'from None' should be skipped."""
        try:
            try:
                raise ValueError("inner")
            except ValueError:
                raise RuntimeError("outer") from None
        except RuntimeError as e:
            chained = e

        assert format_error_chain(chained) == "outer"

    def test_empty_message(self):
        """An error without a message should use its type name."""
        assert format_error_chain(KeyError()) == "KeyError"

    def test_rendering_error_not_repeated(self):
        """A cause already folded into the message should not repeat."""
        cause = ValueError("unexpected end of template")
        try:
            raise TemplateRenderingError(Path("lib.default.j2"), cause) from cause
        except TemplateRenderingError as e:
            message = format_error_chain(e)

        assert message == "rendering lib.default.j2: unexpected end of template"
