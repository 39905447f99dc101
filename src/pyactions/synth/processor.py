# synth/processor.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import List, Optional, Tuple

from ..errors import SynthError
from ..model import Job, Step, Workflow
from ..ui.console import get_console
from .extractor import declared_name, extract_function
from .locator import locate_source
from .runtimes import get_runtime
from .scripts import StepScriptRequest, check_self_contained, synthesize_script
from .setup_detector import detect_setup_requirements, prepend_setup_steps
from .shell import embed_script, pip_install

# (job, index in job.steps, step)
_Slot = Tuple[Job, int, Step]


def materialize_step(
    step: Step,
    *,
    bundle: bool = True,
    bundler: str | None = None,
    env_prefix: str | None = None,
) -> Step:
    """
    Turn a function step into the equivalent `run` step.

    The new step keeps the function step's metadata; its env gains one entry
    per deferred argument.
    """
    call = step.function
    if call is None:
        return step

    label = call.name or declared_name(call.fn) or "<lambda>"
    runtime = get_runtime(call.runtime)
    version = call.version or runtime.default_version

    location = locate_source(call.stack, function=label)
    get_console().print_debug(f"{label}: declared at {location.file}:{location.line}")

    extracted = extract_function(call.fn, location, name=call.name)
    check_self_contained(extracted, call.fn)
    get_console().print_debug(
        f"{label}: extracted lines {extracted.start_line}-{extracted.end_line} of {extracted.file}"
    )

    script = synthesize_script(
        StepScriptRequest(
            function=extracted,
            args=call.args,
            runtime=call.runtime,
            version=version,
            requirements=call.requirements,
            env_prefix=env_prefix,
        ),
        bundle=bundle,
        bundler=bundler,
    )
    if script.dependencies:
        get_console().print_debug(f"{label}: imports {', '.join(script.dependencies)}")

    pre: List[str] = []
    if runtime.name == "python" and call.requirements:
        pre.append(pip_install(call.requirements))
    run = embed_script(script.code, runtime.interpreter(version), pre)

    return replace(step, function=None, run=run, env={**step.env, **script.env})


def _function_slots(workflow: Workflow) -> List[_Slot]:
    return [
        (job, i, step)
        for job in workflow.jobs
        for i, step in enumerate(job.steps)
        if step.is_function
    ]


def _materialize_slot(slot: _Slot, **kwargs) -> Step:
    job, index, step = slot
    try:
        return materialize_step(step, **kwargs)
    except SynthError as e:
        e.job = job.name
        e.step = step.name or f"#{index + 1}"
        raise


def synthesize_workflow(
    workflow: Workflow,
    *,
    bundle: bool = True,
    bundler: str | None = None,
    max_workers: Optional[int] = None,
    env_prefix: str | None = None,
) -> Workflow:
    """
    Replace every function step in `workflow` with a `run` step, in place.

    Missing setup steps are detected up front and prepended at the end.
    Nothing is written back until every function step has been
    materialized, so a fatal error leaves the step lists untouched.
    """
    missing = [detect_setup_requirements(job) for job in workflow.jobs]

    slots = _function_slots(workflow)
    kwargs = dict(bundle=bundle, bundler=bundler, env_prefix=env_prefix)

    if max_workers and max_workers > 1 and len(slots) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [pool.submit(_materialize_slot, slot, **kwargs) for slot in slots]
            # graph order: the first failing step is the one reported
            results = [f.result() for f in futures]
    else:
        results = [_materialize_slot(slot, **kwargs) for slot in slots]

    for (job, index, _step), new_step in zip(slots, results):
        job.steps[index] = new_step
    for job, reqs in zip(workflow.jobs, missing):
        prepend_setup_steps(job, reqs)

    get_console().print_debug(f"Workflow '{workflow.name}': {len(slots)} function step(s) synthesized")
    return workflow
