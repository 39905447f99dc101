# dag.py
from __future__ import annotations

from typing import Dict, List, Set

from .model import Job


def build_dag(jobs: List[Job]) -> Dict[str, Set[str]]:
    """
    Map each job name to the names it `needs`.

    Raises:
        ValueError: on duplicate job names or a need naming no job
    """
    names = [j.name for j in jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate job names found: {dupes}")

    known = set(names)
    graph: Dict[str, Set[str]] = {}
    for job in jobs:
        for need in job.needs:
            if need not in known:
                raise ValueError(
                    f"Job '{job.name}' needs missing job '{need}'. "
                    f"Known jobs: {sorted(known)}"
                )
        graph[job.name] = set(job.needs)
    return graph


def find_cycle(graph: Dict[str, Set[str]]) -> List[str]:
    """A `needs` cycle as [a, b, ..., a], or [] if the graph is acyclic."""
    done: Set[str] = set()
    path: List[str] = []
    on_path: Set[str] = set()

    def visit(name: str) -> List[str]:
        if name in on_path:
            return path[path.index(name):] + [name]
        if name in done:
            return []
        path.append(name)
        on_path.add(name)
        for need in sorted(graph[name]):
            cycle = visit(need)
            if cycle:
                return cycle
        path.pop()
        on_path.discard(name)
        done.add(name)
        return []

    for name in sorted(graph):
        cycle = visit(name)
        if cycle:
            return cycle
    return []


def validate_jobs(jobs: List[Job]) -> None:
    """Raise ValueError on duplicate names, unknown needs or cycles."""
    cycle = find_cycle(build_dag(jobs))
    if cycle:
        raise ValueError(f"Job graph has a cycle: {' -> '.join(cycle)}")
