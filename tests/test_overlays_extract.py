"""Tests for overlay extraction."""

import tarfile
from io import BytesIO
from pathlib import Path

import pytest

from bonnibel.errors import ExtractionError
from bonnibel.overlays.cache import Overlay
from bonnibel.overlays.extract import (
    compose_extract_command,
    extract_overlay,
    overlay_destination,
)


def write_archive(path: Path, files: dict[str, bytes]) -> None:
    with tarfile.open(path, "w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, BytesIO(data))


@pytest.fixture
def cached_overlay(tmp_path) -> Overlay:
    overlay = Overlay(
        url="https://example.com/dist/libfoo-1.0.tar.gz",
        path=Path("external/libfoo"),
    )
    overlay.resolve(tmp_path / "cache")
    write_archive(
        overlay.cached,
        {"include/foo.h": b"int foo(void);\n", "src/foo.c": b"int foo(void) { return 1; }\n"},
    )
    return overlay


class TestOverlayDestination:
    """Tests for overlay_destination function."""

    def test_relative(self, tmp_path):
        """Destination is the overlay path under the source root."""
        overlay = Overlay(url="https://example.com/a.tar", path=Path("ext/a"))
        assert overlay_destination(overlay, tmp_path) == tmp_path / "ext" / "a"

    def test_absolute_rejected(self, tmp_path):
        """An absolute overlay path should be rejected."""
        overlay = Overlay(url="https://example.com/a.tar", path=Path("/etc"))
        with pytest.raises(ExtractionError) as exc_info:
            overlay_destination(overlay, tmp_path)
        assert exc_info.value.code == "path_traversal"

    def test_dotdot_rejected(self, tmp_path):
        """A path escaping the source root should be rejected."""
        overlay = Overlay(url="https://example.com/a.tar", path=Path("ext/../../x"))
        with pytest.raises(ExtractionError):
            overlay_destination(overlay, tmp_path)


class TestComposeExtractCommand:
    """Tests for compose_extract_command function."""

    def test_command(self):
        """Should build a tar extraction command."""
        cmd = compose_extract_command(Path("/c/a.tar.xz"), Path("/src/ext"))
        assert cmd == ["tar", "-xf", "/c/a.tar.xz", "-C", "/src/ext"]

    def test_custom_tool(self):
        """Should use the configured tool."""
        cmd = compose_extract_command(Path("a.tar"), Path("d"), tar="bsdtar")
        assert cmd[0] == "bsdtar"


class TestExtractOverlay:
    """Tests for extract_overlay function."""

    def test_extract(self, cached_overlay, tmp_path):
        """Should unpack the archive into the destination directory."""
        source_root = tmp_path / "src"
        source_root.mkdir()

        dest = extract_overlay(cached_overlay, source_root)

        assert dest == source_root / "external" / "libfoo"
        assert (dest / "include" / "foo.h").read_bytes() == b"int foo(void);\n"
        assert (dest / "src" / "foo.c").exists()

    def test_extract_twice(self, cached_overlay, tmp_path):
        """Extracting over an existing tree should succeed."""
        extract_overlay(cached_overlay, tmp_path / "src")
        dest = extract_overlay(cached_overlay, tmp_path / "src")
        assert (dest / "include" / "foo.h").exists()

    def test_corrupt_archive(self, tmp_path):
        """A corrupt archive should fail with the tool's error."""
        overlay = Overlay(url="https://example.com/bad.tar.gz", path=Path("bad"))
        overlay.resolve(tmp_path / "cache")
        overlay.cached.write_bytes(b"this is not an archive")

        with pytest.raises(ExtractionError) as exc_info:
            extract_overlay(overlay, tmp_path / "src")
        assert exc_info.value.code == "tar_error"

    def test_missing_tool(self, cached_overlay, tmp_path):
        """A tool that cannot be started should fail with spawn_error."""
        with pytest.raises(ExtractionError) as exc_info:
            extract_overlay(
                cached_overlay, tmp_path / "src", tar="/nonexistent/bin/tar"
            )
        assert exc_info.value.code == "spawn_error"
