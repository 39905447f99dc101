from .dsl import job, sh, uses, py, run_python, wf, workflow, JobBuilder, build
from .expressions import expr, Literal, Deferred
from .model import FunctionCall, Job, Step, Workflow
from .serialize import render, synthesize, synthesize_multiple, to_yaml, workflow_to_dict
from .synth.processor import synthesize_workflow

__all__ = [
    "job", "sh", "uses", "py", "run_python", "wf", "workflow", "JobBuilder", "build",
    "expr", "Literal", "Deferred",
    "FunctionCall", "Job", "Step", "Workflow",
    "render", "synthesize", "synthesize_multiple", "to_yaml", "workflow_to_dict",
    "synthesize_workflow",
]
