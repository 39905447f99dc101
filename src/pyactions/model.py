# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .expressions import ArgumentValue


@dataclass(frozen=True)
class FunctionCall:
    """
    A callable registered to run in its own interpreter process.

    `stack` is the call stack captured when the step was declared; it is the
    only link back to the file that defines `fn`.
    """
    fn: Callable[..., Any]
    args: Tuple[ArgumentValue, ...] = ()
    runtime: str = "python"
    version: str | None = None
    requirements: Tuple[str, ...] = ()
    stack: str = ""
    name: str | None = None


@dataclass(frozen=True)
class Step:
    """A single step inside a job: a shell command, an action, or a function."""
    name: str | None = None
    run: str | None = None
    uses: str | None = None
    with_: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    id: str | None = None
    if_: str | None = None
    continue_on_error: bool | None = None
    timeout_minutes: int | None = None
    working_directory: str | None = None

    # transient: replaced by a `run` step during synthesis
    function: FunctionCall | None = None

    def __post_init__(self) -> None:
        kinds = [k for k in ("run", "uses", "function") if getattr(self, k) is not None]
        if len(kinds) > 1:
            raise ValueError(
                f"Invalid step {self.name!r}: a step cannot have both "
                f"{kinds[0]!r} and {kinds[1]!r}"
            )
        if self.with_ and self.uses is None:
            raise ValueError(f"Invalid step {self.name!r}: 'with' requires 'uses'")

    @property
    def is_function(self) -> bool:
        return self.function is not None


@dataclass
class Job:
    """
    A workflow job: an ordered list of steps plus runner metadata.

    `name` is the job id used as the key under `jobs:` and in `needs`.
    """
    name: str
    steps: list[Step]

    runs_on: Union[str, List[str]] = "ubuntu-latest"
    needs: list[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    if_: Optional[str] = None
    timeout_minutes: Optional[int] = None
    continue_on_error: Optional[bool] = None
    outputs: Dict[str, str] = field(default_factory=dict)


@dataclass
class Workflow:
    """A named workflow: triggers plus jobs, in declaration order."""
    name: str
    jobs: list[Job] = field(default_factory=list)

    on: Dict[str, Any] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    permissions: Optional[Dict[str, str]] = None
    run_name: Optional[str] = None

    def job(self, name: str) -> Job:
        for j in self.jobs:
            if j.name == name:
                return j
        raise KeyError(f"Workflow '{self.name}' has no job named '{name}'")
