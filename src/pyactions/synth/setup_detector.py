# synth/setup_detector.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ..model import Job, Step, Workflow
from ..ui.console import get_console
from .runtimes import RUNTIMES, get_runtime


@dataclass(frozen=True)
class SetupRequirement:
    runtime: str
    version: str

    def to_step(self) -> Step:
        family = get_runtime(self.runtime)
        return Step(
            name=family.setup_name,
            uses=family.setup_action,
            with_={family.version_input: self.version},
        )


def _satisfied_runtimes(job: Job) -> set[str]:
    return {
        name
        for step in job.steps
        for name, family in RUNTIMES.items()
        if family.is_setup(step.uses)
    }


def detect_setup_requirements(job: Job) -> List[SetupRequirement]:
    """
    Setup steps the job's function steps need and the job does not already have.

    The first version seen for a runtime wins; later conflicting versions
    only produce a warning.
    """
    wanted: Dict[str, str] = {}
    for step in job.steps:
        call = step.function
        if call is None:
            continue
        version = call.version or get_runtime(call.runtime).default_version
        seen = wanted.get(call.runtime)
        if seen is None:
            wanted[call.runtime] = version
        elif seen != version:
            get_console().print_warning(
                f"Job '{job.name}': step {step.name or '<unnamed>'!r} wants {call.runtime} {version}, "
                f"but {seen} was requested first; using {seen}"
            )

    satisfied = _satisfied_runtimes(job)
    return [SetupRequirement(r, v) for r, v in wanted.items() if r not in satisfied]


def prepend_setup_steps(job: Job, missing: List[SetupRequirement]) -> None:
    for req in missing:
        get_console().print_warning(
            f"Job '{job.name}': adding '{get_runtime(req.runtime).setup_action}' "
            f"({req.version}) for its Python function steps"
        )
    job.steps[:0] = [req.to_step() for req in missing]


def add_setup_steps(workflow: Workflow) -> Workflow:
    """Prepend missing setup steps to every job, in place. Running it twice is a no-op."""
    for job in workflow.jobs:
        prepend_setup_steps(job, detect_setup_requirements(job))
    return workflow
