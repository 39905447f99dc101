"""Tests for synth/locator.py."""

from pathlib import Path

import pytest

from pyactions.errors import LocationNotFound
from pyactions.synth.locator import (
    PACKAGE_ROOT,
    SourceLocation,
    capture_stack,
    find_source_location,
    is_internal,
    locate_source,
    parse_frames,
)


def _frame(path, line, func="fn"):
    return f'  File "{path}", line {line}, in {func}\n    code()\n'


class TestParseFrames:
    """Test extraction of (file, line) pairs."""

    def test_parses_formatted_stack(self):
        """Test frames come back oldest first."""
        stack = _frame("/a/one.py", 3) + _frame("/b/two.py", 14)
        assert parse_frames(stack) == [("/a/one.py", 3), ("/b/two.py", 14)]

    def test_ignores_non_frame_lines(self):
        """Test source lines and blank lines are skipped."""
        assert parse_frames("Traceback:\n    x = 1\n\n") == []

    def test_capture_stack_includes_caller(self):
        """Test the live stack contains this test file."""
        frames = parse_frames(capture_stack())
        assert any(Path(f).name == "test_locator.py" for f, _ in frames)


class TestFindSourceLocation:
    """Test choosing the declaring frame."""

    def test_innermost_user_frame_wins(self, tmp_path):
        """Test the last existing user file in the stack is returned."""
        outer = tmp_path / "outer.py"
        inner = tmp_path / "inner.py"
        outer.write_text("x = 1\n")
        inner.write_text("y = 2\n")

        stack = _frame(outer, 1) + _frame(inner, 7)
        loc = find_source_location(stack)
        assert loc == SourceLocation(file=inner.resolve(), line=7)

    def test_skips_missing_and_pseudo_files(self, tmp_path):
        """Test <string> frames and deleted files never match."""
        real = tmp_path / "real.py"
        real.write_text("pass\n")
        stack = _frame(real, 2) + _frame(tmp_path / "gone.py", 5) + _frame("<string>", 1)

        loc = find_source_location(stack)
        assert loc.file == real.resolve()
        assert loc.line == 2

    def test_skips_package_internals(self, tmp_path):
        """Test frames inside pyactions itself are skipped."""
        user = tmp_path / "wf.py"
        user.write_text("pass\n")
        stack = _frame(user, 9) + _frame(PACKAGE_ROOT / "dsl.py", 100)

        loc = find_source_location(stack)
        assert loc.file == user.resolve()

    def test_extra_internal_roots(self, tmp_path):
        """Test caller-supplied roots are treated as internal."""
        lib = tmp_path / "lib"
        lib.mkdir()
        helper = lib / "helper.py"
        helper.write_text("pass\n")

        assert find_source_location(_frame(helper, 1), internal_roots=[lib]) is None

    def test_locate_source_raises(self):
        """Test LocationNotFound when no user frame exists."""
        with pytest.raises(LocationNotFound) as exc:
            locate_source(_frame("<stdin>", 1), function="build")
        assert exc.value.function == "build"
        assert exc.value.frames == 1
        assert "build" in str(exc.value)


class TestIsInternal:
    """Test dependency and build directory detection."""

    def test_site_packages(self):
        """Test site-packages paths are internal anywhere."""
        assert is_internal(Path("/opt/venv/lib/python3.12/site-packages/click/core.py"))

    def test_build_output_below_cwd(self, tmp_path, monkeypatch):
        """Test build/ and dist/ count only below the working directory."""
        root = tmp_path.resolve()
        monkeypatch.chdir(root)
        assert is_internal(root / "build" / "lib" / "wf.py")
        assert not is_internal(root / "src" / "wf.py")

    def test_package_root(self):
        """Test files in the pyactions package are internal."""
        assert is_internal(PACKAGE_ROOT / "model.py")
