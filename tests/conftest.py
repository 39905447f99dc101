"""Shared fixtures for pyactions tests."""

import os
import stat
import subprocess
import sys
from pathlib import Path

import pytest

from pyactions.synth.extractor import extract_function
from pyactions.synth.locator import SourceLocation
from pyactions.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def console():
    """Fresh non-debug console for every test."""
    c = Console(debug=False)
    set_console(c)
    return c


@pytest.fixture
def extracted():
    """Extract a function defined in a test module."""
    def _extract(fn):
        code = fn.__code__
        return extract_function(fn, SourceLocation(Path(code.co_filename), code.co_firstlineno))
    return _extract


@pytest.fixture
def run_script():
    """Run a synthesized script under the current interpreter, fed on stdin."""
    def _run(code, env=None):
        full_env = dict(os.environ)
        full_env.update(env or {})
        return subprocess.run(
            [sys.executable, "-"],
            input=code,
            text=True,
            capture_output=True,
            env=full_env,
            timeout=60,
        )
    return _run


@pytest.fixture
def identity_bundler(tmp_path):
    """A bundler that prints its entry file unchanged."""
    path = tmp_path / "fake-bundler"
    path.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        "with open(sys.argv[1], encoding='utf-8') as f:\n"
        "    sys.stdout.write(f.read())\n",
        encoding="utf-8",
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


@pytest.fixture
def failing_bundler(tmp_path):
    """A bundler that always exits 2."""
    path = tmp_path / "broken-bundler"
    path.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        "sys.stderr.write('cannot resolve imports')\n"
        "sys.exit(2)\n",
        encoding="utf-8",
    )
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)
