# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, List, Set, Tuple

from .model import Job


def build_dag(jobs: List[Job]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Index the `needs` edges of a workflow's jobs.

    Returns (adj, indeg): adj maps each job to the jobs waiting on it, indeg counts
    the unmet needs of each job. Raises ValueError on duplicate names, unknown needs
    and self-needs.
    """
    names = [j.name for j in jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate job names found: {dupes}")

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in names}
    indeg: Dict[str, int] = {n: 0 for n in names}

    for job in jobs:
        for dep in job.needs:
            if dep not in name_set:
                raise ValueError(
                    f"Job '{job.name}' needs missing job '{dep}'. "
                    f"Known jobs: {sorted(name_set)}"
                )
            if dep == job.name:
                raise ValueError(f"Job '{job.name}' needs itself")
            # edge dep -> job.name
            if job.name not in adj[dep]:
                adj[dep].add(job.name)
                indeg[job.name] += 1

    return adj, indeg


def topo_levels(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[List[str]]:
    """
    Group jobs into stages: every job's needs sit in earlier stages.
    Jobs in one stage do not depend on each other and may run in parallel.
    Stage members keep the order the jobs were declared in.
    """
    order = {name: i for i, name in enumerate(indeg)}
    indeg = dict(indeg)
    q = deque(n for n, d in indeg.items() if d == 0)

    levels: List[List[str]] = []
    processed = 0

    while q:
        level_size = len(q)
        level: List[str] = []

        for _ in range(level_size):
            node = q.popleft()
            level.append(node)
            processed += 1

            for child in sorted(adj.get(node, set()), key=order.__getitem__):
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

        levels.append(level)

    if processed != len(indeg):
        remaining = [n for n, d in indeg.items() if d > 0]
        raise ValueError(f"DAG has a cycle. Stuck jobs: {remaining}")

    return levels


def plan_stages(jobs: List[Job]) -> List[List[str]]:
    """Validate the job graph and return its execution stages."""
    adj, indeg = build_dag(jobs)
    return topo_levels(adj, indeg)
