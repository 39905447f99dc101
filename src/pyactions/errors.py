# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


class SynthError(Exception):
    """
    Base class for synthesis errors.

    `job` and `step` are filled in by the step processor so the CLI can say
    where in the workflow the failure happened.
    """
    job: str | None = None
    step: str | None = None

    def where(self) -> str:
        parts = []
        if self.job:
            parts.append(f"job={self.job}")
        if self.step:
            parts.append(f"step={self.step}")
        return " ".join(parts)


@dataclass
class LocationNotFound(SynthError):
    """The captured stack has no frame in an existing, user-owned source file."""
    function: str
    frames: int = 0

    def __str__(self) -> str:
        return (
            f"Could not determine the source file of function '{self.function}' "
            f"({self.frames} stack frame(s) inspected). "
            "Define function steps in a .py file, not in an interactive session."
        )


@dataclass
class NodeNotFound(SynthError):
    """No matching function definition near the located line."""
    function: str
    file: Path
    line: int
    reason: str = ""

    def __str__(self) -> str:
        msg = f"Could not find the definition of '{self.function}' in {self.file} near line {self.line}"
        if self.reason:
            msg += f" ({self.reason})"
        return msg


@dataclass
class SelfContainmentError(SynthError):
    """The function depends on names defined outside its own body."""
    function: str
    names: list[str] = field(default_factory=list)
    reason: str = "references names defined outside its body"

    def __str__(self) -> str:
        msg = f"Function '{self.function}' {self.reason}"
        if self.names:
            msg += f": {', '.join(self.names)}"
        return msg + ". Move imports and helpers inside the function or pass values as arguments."


@dataclass
class BundleFailure(SynthError):
    """The external bundler is missing or exited with an error."""
    command: str
    message: str
    exit_code: int | None = None

    def __str__(self) -> str:
        code = f" (exit={self.exit_code})" if self.exit_code is not None else ""
        return f"Bundler '{self.command}' failed{code}: {self.message}"


@dataclass
class WorkflowLoadError(SynthError):
    """A workflow file could not be loaded."""
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"
