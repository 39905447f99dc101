# synth/locator.py
from __future__ import annotations

import re
import sysconfig
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..errors import LocationNotFound

# '  File "/path/to/workflow.py", line 12, in workflow'
_FRAME_RE = re.compile(r'File "(?P<file>[^"]+)", line (?P<line>\d+)')

# Installed dependencies, matched anywhere in a path
_DEPENDENCY_PARTS = {"site-packages", "dist-packages", ".venv", "node_modules"}

# Build output, matched only below the working directory
_BUILD_PARTS = {"build", "dist"}

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class SourceLocation:
    file: Path
    line: int


def capture_stack() -> str:
    """Snapshot the current call stack as text (oldest frame first)."""
    return "".join(traceback.format_stack()[:-1])


def parse_frames(stack: str) -> List[Tuple[str, int]]:
    """Extract (file, line) pairs from a formatted stack, oldest first."""
    frames = []
    for raw in stack.splitlines():
        m = _FRAME_RE.search(raw)
        if m:
            frames.append((m.group("file"), int(m.group("line"))))
    return frames


def _stdlib_roots() -> List[Path]:
    roots = []
    for key in ("stdlib", "platstdlib"):
        p = sysconfig.get_paths().get(key)
        if p:
            roots.append(Path(p).resolve())
    return roots


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def is_internal(path: Path, internal_roots: Iterable[Path] = ()) -> bool:
    """True for files that belong to pyactions, the stdlib, or dependencies."""
    if _DEPENDENCY_PARTS.intersection(path.parts):
        return True
    cwd = Path.cwd().resolve()
    if _is_within(path, cwd) and _BUILD_PARTS.intersection(path.relative_to(cwd).parts):
        return True
    for root in (PACKAGE_ROOT, *_stdlib_roots(), *internal_roots):
        if _is_within(path, Path(root).resolve()):
            return True
    return False


def find_source_location(
    stack: str,
    *,
    internal_roots: Iterable[Path] = (),
) -> Optional[SourceLocation]:
    """
    Return the innermost frame in an existing, user-owned source file.

    The innermost user frame is the line that declared the function step.
    """
    roots = list(internal_roots)
    for file, line in reversed(parse_frames(stack)):
        if file.startswith("<"):
            continue
        path = Path(file).expanduser().resolve()
        if not path.is_file() or is_internal(path, roots):
            continue
        return SourceLocation(file=path, line=line)
    return None


def locate_source(
    stack: str,
    *,
    function: str = "<function>",
    internal_roots: Iterable[Path] = (),
) -> SourceLocation:
    """Like find_source_location, but raises LocationNotFound."""
    location = find_source_location(stack, internal_roots=internal_roots)
    if location is None:
        raise LocationNotFound(function=function, frames=len(parse_frames(stack)))
    return location
