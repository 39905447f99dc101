# serialize.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from . import settings
from .dag import validate_jobs
from .model import Job, Step, Workflow
from .schema import WorkflowSchema
from .synth.processor import synthesize_workflow


# ---------------------------------------------------------------------
# Model -> wire dict
# ---------------------------------------------------------------------

def _or_none(value):
    # empty collections are omitted from the YAML
    return value if value else None


def step_to_dict(step: Step) -> Dict[str, Any]:
    if step.is_function:
        raise ValueError(
            f"Step {step.name!r} is still a function step; run synthesize_workflow() first"
        )
    return {
        "name": step.name,
        "id": step.id,
        "if": step.if_,
        "uses": step.uses,
        "with": _or_none(step.with_),
        "run": step.run,
        "working-directory": step.working_directory,
        "env": _or_none(step.env),
        "continue-on-error": step.continue_on_error,
        "timeout-minutes": step.timeout_minutes,
    }


def job_to_dict(job: Job) -> Dict[str, Any]:
    return {
        "runs-on": job.runs_on,
        "needs": _or_none(job.needs),
        "if": job.if_,
        "env": _or_none(job.env),
        "timeout-minutes": job.timeout_minutes,
        "continue-on-error": job.continue_on_error,
        "outputs": _or_none(job.outputs),
        "steps": [step_to_dict(s) for s in job.steps],
    }


def workflow_to_dict(workflow: Workflow) -> Dict[str, Any]:
    """
    Validate `workflow` and return it as a plain dict in wire format.

    Raises:
        ValueError: on function steps, invalid steps or a broken job graph
    """
    validate_jobs(workflow.jobs)
    raw = {
        "name": workflow.name,
        "run-name": workflow.run_name,
        "on": workflow.on,
        "permissions": workflow.permissions,
        "env": _or_none(workflow.env),
        "jobs": {j.name: job_to_dict(j) for j in workflow.jobs},
    }
    return WorkflowSchema.model_validate(raw).to_wire()


# ---------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------

class _WorkflowDumper(yaml.SafeDumper):
    """SafeDumper that writes multi-line strings (run scripts) as block scalars."""


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_WorkflowDumper.add_representer(str, _str_representer)


def to_yaml(workflow: Workflow) -> str:
    return yaml.dump(
        workflow_to_dict(workflow),
        Dumper=_WorkflowDumper,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
    )


def workflow_filename(workflow: Workflow) -> str:
    """'Build and Test' -> 'build-and-test.yml'"""
    return re.sub(r"\s+", "-", workflow.name.strip().lower()) + ".yml"


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def render(
    workflow: Workflow,
    *,
    bundle: bool = True,
    bundler: str | None = None,
    max_workers: Optional[int] = None,
    env_prefix: str | None = None,
) -> str:
    """Synthesize all function steps of `workflow` and return its YAML."""
    validate_jobs(workflow.jobs)
    synthesize_workflow(
        workflow,
        bundle=bundle,
        bundler=bundler,
        max_workers=max_workers,
        env_prefix=env_prefix,
    )
    return to_yaml(workflow)


def synthesize_multiple(
    workflows: Iterable[Workflow],
    output_dir: str | Path | None = None,
    **options: Any,
) -> List[Path]:
    """
    Render every workflow, then write them all to `output_dir`.

    Nothing is written unless every workflow renders.
    """
    workflows = list(workflows)
    names = [workflow_filename(w) for w in workflows]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Workflows would overwrite each other: {dupes}")

    rendered = [(name, render(w, **options)) for name, w in zip(names, workflows)]

    out_dir = Path(output_dir or settings.OUTPUT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: List[Path] = []
    for name, text in rendered:
        path = out_dir / name
        path.write_text(text, encoding="utf-8")
        paths.append(path)
    return paths


def synthesize(workflow: Workflow, output_dir: str | Path | None = None, **options: Any) -> Path:
    """Render `workflow` and write it to `<output_dir>/<name>.yml`."""
    return synthesize_multiple([workflow], output_dir, **options)[0]
