# loader.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import List

from .errors import WorkflowLoadError
from .model import Workflow

WORKFLOW_SOURCE_DIR = Path(".github") / "workflows-src"


def find_workflow_files(root: str | Path = ".") -> list[Path]:
    """
    Find workflow source files under `root`.

    Looks in .github/workflows-src/*.py and for *_workflow.py at the top level.
    """
    root = Path(root)
    found = set(p for p in (root / WORKFLOW_SOURCE_DIR).glob("*.py") if not p.name.startswith("_"))
    found.update(root.glob("*_workflow.py"))
    return sorted(found)


def load_workflows(path: str | Path) -> List[Workflow]:
    """
    Load workflows from a python file path.

    The file must define either:
      - workflow() -> Workflow | List[Workflow]
      - WORKFLOWS = [Workflow, ...]

    Raises:
      WorkflowLoadError
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise WorkflowLoadError(path=wf_path, message="file not found")
    if wf_path.suffix != ".py":
        raise WorkflowLoadError(path=wf_path, message=f"workflow must be a .py file, got: {wf_path.name}")

    module_name = f"pyactions_workflow_{wf_path.stem}"
    try:
        globals_dict = runpy.run_path(str(wf_path), run_name=module_name)
    except Exception as e:
        raise WorkflowLoadError(path=wf_path, message=f"{type(e).__name__}: {e}") from e

    result = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        try:
            result = globals_dict["workflow"]()
        except TypeError as e:
            if "missing" in str(e) and "required positional argument" in str(e):
                raise WorkflowLoadError(
                    path=wf_path,
                    message=(
                        "workflow is the wf() helper, not a workflow() function "
                        "(name collision). Use `from pyactions import wf` and "
                        "`def workflow(): return wf(\"CI\", job(...))`"
                    ),
                ) from e
            raise WorkflowLoadError(path=wf_path, message=f"workflow() failed: {e}") from e
        except Exception as e:
            raise WorkflowLoadError(path=wf_path, message=f"workflow() failed: {type(e).__name__}: {e}") from e
    elif "WORKFLOWS" in globals_dict:
        result = globals_dict["WORKFLOWS"]

    workflows = [result] if isinstance(result, Workflow) else result
    if not isinstance(workflows, list) or not workflows or not all(isinstance(w, Workflow) for w in workflows):
        raise WorkflowLoadError(
            path=wf_path,
            message=(
                "file must define workflow() -> Workflow | List[Workflow] "
                "or WORKFLOWS = [Workflow, ...]"
            ),
        )
    return workflows
