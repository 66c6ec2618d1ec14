# src/bookci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .model import Job, Step, Workflow, WorkflowTrigger


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None, env: Optional[Dict[str, str]] = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd, env=env or {})


def uses(
    name: str,
    action: str,
    with_: Optional[Dict[str, object]] = None,
    *,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    **params: object,
) -> Step:
    """
    Create an action step.

        uses("Install rust", "actions-rs/toolchain@v1", toolchain="stable")
        uses("Checkout", "actions/checkout@v2", {"fetch-depth": 0})

    Parameter values are stored as strings; booleans become "true"/"false".
    """
    merged = dict(with_ or {})
    merged.update(params)
    return Step(
        name=name,
        uses=action,
        params={k: as_param(v) for k, v in merged.items()},
        cwd=cwd,
        env=env or {},
    )


def as_param(value: object) -> str:
    """Normalise a `with:` value to the string form actions receive."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,  # allow: job("x", steps_list=[...])
    needs: Optional[List[str]] = None,
    condition: Optional[str] = None,  # the `if:` expression
    display_name: Optional[str] = None,
    runs_on: str = "ubuntu-latest",
    env: Optional[Dict[str, str]] = None,
    timeout_minutes: Optional[float] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(steps)

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Job(
        name=name,
        steps=steps_final,
        needs=list(needs or []),
        condition=condition,
        display_name=display_name,
        runs_on=runs_on,
        env=dict(env or {}),
        timeout_minutes=timeout_minutes,
    )


# ---------------------------------------------------------------------
# Triggers + workflow
# ---------------------------------------------------------------------

def on(
    event: str,
    *,
    paths: Iterable[str] = (),
    paths_ignore: Iterable[str] = (),
    branches: Iterable[str] = (),
) -> WorkflowTrigger:
    """A trigger: on("push", paths=["docs/book/**"])."""
    return WorkflowTrigger(
        event=event,
        paths=tuple(paths),
        paths_ignore=tuple(paths_ignore),
        branches=tuple(branches),
    )


def wf(*jobs: Job, name: str = "workflow", triggers: Iterable[WorkflowTrigger] = ()) -> Workflow:
    """
    Workflow definition helper. Use this name so you can define your own
    def workflow(): return wf(job(...), job(...)).

        from bookci import wf, job, sh, on

        def workflow():
            return wf(
                job("tests", sh("Run", "make test")),
                name="Docs",
                triggers=[on("push", paths=["docs/**"])],
            )

    Or set WORKFLOW directly:
        WORKFLOW = wf(job(...), job(...))
    """
    return Workflow(name=name, triggers=list(triggers), jobs=list(jobs))
