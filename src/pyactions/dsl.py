# dsl.py
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .expressions import classify
from .model import FunctionCall, Job, Step, Workflow
from .synth.extractor import declared_name
from .synth.locator import capture_stack
from .synth.runtimes import get_runtime


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    id: str | None = None,
    env: Optional[Dict[str, str]] = None,
    if_: str | None = None,
    continue_on_error: bool | None = None,
    timeout_minutes: int | None = None,
    working_directory: str | None = None,
) -> Step:
    """Create a shell step."""
    return Step(
        name=name,
        run=cmd,
        id=id,
        env=env or {},
        if_=if_,
        continue_on_error=continue_on_error,
        timeout_minutes=timeout_minutes,
        working_directory=working_directory,
    )


def uses(
    name: str,
    action: str,
    inputs: Optional[Dict[str, Any]] = None,
    *,
    id: str | None = None,
    env: Optional[Dict[str, str]] = None,
    if_: str | None = None,
    continue_on_error: bool | None = None,
    timeout_minutes: int | None = None,
) -> Step:
    """Create a step that runs an action, e.g. uses("Checkout", "actions/checkout@v4")."""
    return Step(
        name=name,
        uses=action,
        with_=dict(inputs or {}),
        id=id,
        env=env or {},
        if_=if_,
        continue_on_error=continue_on_error,
        timeout_minutes=timeout_minutes,
    )


def py(
    fn: Callable[..., Any],
    *args: Any,
    name: str | None = None,
    runtime: str = "python",
    version: str | None = None,
    requirements: Optional[Iterable[str]] = None,
    id: str | None = None,
    env: Optional[Dict[str, str]] = None,
    if_: str | None = None,
    continue_on_error: bool | None = None,
    timeout_minutes: int | None = None,
    working_directory: str | None = None,
) -> Step:
    """
    Create a step that runs `fn(*args)` in its own Python process on the runner.

    `fn` must be a plain function or lambda defined in a .py file, and must
    not use anything from outside its own body: do imports inside it and pass
    values in as arguments. Wrap a value in expr() to have GitHub fill it in:

        py(deploy, expr("${{ github.ref_name }}"), "prod", name="Deploy")
    """
    if not callable(fn) or getattr(fn, "__code__", None) is None:
        raise TypeError(f"py() expects a Python function or lambda, got {type(fn).__name__}")
    get_runtime(runtime)

    call = FunctionCall(
        fn=fn,
        args=tuple(classify(a) for a in args),
        runtime=runtime,
        version=version,
        requirements=tuple(requirements or ()),
        stack=capture_stack(),
        name=declared_name(fn),
    )
    return Step(
        name=name or call.name,
        function=call,
        id=id,
        env=env or {},
        if_=if_,
        continue_on_error=continue_on_error,
        timeout_minutes=timeout_minutes,
        working_directory=working_directory,
    )


run_python = py


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), py(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    runs_on: Union[str, List[str]] = "ubuntu-latest",
    needs: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    if_: str | None = None,
    timeout_minutes: int | None = None,
    continue_on_error: bool | None = None,
    outputs: Optional[Dict[str, str]] = None,
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    return Job(
        name=name,
        steps=steps_final,
        runs_on=runs_on,
        needs=list(needs or []),
        env=env or {},
        if_=if_,
        timeout_minutes=timeout_minutes,
        continue_on_error=continue_on_error,
        outputs=outputs or {},
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._runs_on: Union[str, List[str]] = "ubuntu-latest"
        self._needs: list[str] = []
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}

    def runs_on(self, *labels: str):
        self._runs_on = labels[0] if len(labels) == 1 else list(labels)
        return self

    def depends_on(self, *job_names: str):
        self._needs.extend(job_names)
        return self

    def step(self, name: str, run: str, **kwargs):
        self._steps.append(sh(name, run, **kwargs))
        return self

    def use(self, name: str, action: str, inputs: Optional[Dict[str, Any]] = None, **kwargs):
        self._steps.append(uses(name, action, inputs, **kwargs))
        return self

    def run_python(self, fn: Callable[..., Any], *args: Any, **kwargs):
        self._steps.append(py(fn, *args, **kwargs))
        return self

    def with_env(self, **env):
        # env values end up in YAML strings
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def build(self) -> Job:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        return Job(
            name=self.name,
            steps=list(self._steps),
            runs_on=self._runs_on,
            needs=list(self._needs),
            env=dict(self._env),
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('test').step(...).run_python(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(
    name: str,
    *jobs: Job,
    on: Optional[Dict[str, Any]] = None,
    env: Optional[Dict[str, str]] = None,
    permissions: Optional[Dict[str, str]] = None,
    run_name: str | None = None,
) -> Workflow:
    """
    Workflow definition helper. Use this name so you can define your own
    def workflow(): return wf("CI", job(...), job(...)).

    Users can write:
        from pyactions import wf, job, sh, py

        def workflow():
            return wf(
                "CI",
                job("test", sh("Test", "pytest")),
                on={"push": {"branches": ["main"]}},
            )

    Or use WORKFLOWS directly:
        WORKFLOWS = [wf("CI", job(...))]
    """
    return Workflow(
        name=name,
        jobs=list(jobs),
        on=on or {"push": {}},
        env=env or {},
        permissions=permissions,
        run_name=run_name,
    )


workflow = wf  # alias (avoid naming your function workflow if you use it)
