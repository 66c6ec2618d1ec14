# workflow_file.py
"""Load GitHub-Actions-style YAML workflows into the bookci model."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .context import EVENTS
from .dag import plan_stages
from .dsl import as_param
from .errors import WorkflowError
from .model import Job, Step, Workflow, WorkflowTrigger

# -------------------- Schemas --------------------


class StepDoc(BaseModel):
    name: Optional[str] = None
    uses: Optional[str] = None
    run: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    env: Dict[str, Any] = Field(default_factory=dict)
    working_directory: Optional[str] = Field(None, alias="working-directory")

    @model_validator(mode="after")
    def _exactly_one_action(self) -> "StepDoc":
        if (self.uses is None) == (self.run is None):
            raise ValueError("a step needs exactly one of 'uses' or 'run'")
        if self.run is not None and self.with_:
            raise ValueError("'with' only applies to 'uses' steps")
        return self


class JobDoc(BaseModel):
    name: Optional[str] = None
    runs_on: Union[str, List[str]] = Field("ubuntu-latest", alias="runs-on")
    needs: Union[str, List[str]] = Field(default_factory=list)
    if_: Optional[Union[bool, str]] = Field(None, alias="if")
    env: Dict[str, Any] = Field(default_factory=dict)
    timeout_minutes: Optional[float] = Field(None, alias="timeout-minutes")
    steps: List[StepDoc] = Field(min_length=1)


class TriggerDoc(BaseModel):
    paths: List[str] = Field(default_factory=list)
    paths_ignore: List[str] = Field(default_factory=list, alias="paths-ignore")
    branches: List[str] = Field(default_factory=list)


class WorkflowDoc(BaseModel):
    name: Optional[str] = None
    # filters of events bookci cannot run (schedule: [{cron: ...}], ...) are not checked
    on: Union[str, List[str], Dict[str, Any]]
    env: Dict[str, Any] = Field(default_factory=dict)
    jobs: Dict[str, JobDoc] = Field(min_length=1)

    @field_validator("on")
    @classmethod
    def _event_filters(cls, on):
        if isinstance(on, dict):
            return {
                event: TriggerDoc.model_validate(filters or {}) if event in EVENTS else filters
                for event, filters in on.items()
            }
        return on

    @property
    def events(self) -> Tuple[str, ...]:
        """Every event named under `on:`, supported or not."""
        if isinstance(self.on, str):
            return (self.on,)
        return tuple(self.on)


# -------------------- Conversion --------------------

def _triggers(on: Union[str, List[str], Dict[str, Any]]) -> List[WorkflowTrigger]:
    if isinstance(on, str):
        on = [on]
    if isinstance(on, list):
        return [WorkflowTrigger(event=e) for e in on if e in EVENTS]

    out: List[WorkflowTrigger] = []
    for event, filters in on.items():
        if event not in EVENTS:
            continue
        out.append(
            WorkflowTrigger(
                event=event,
                paths=tuple(filters.paths),
                paths_ignore=tuple(filters.paths_ignore),
                branches=tuple(filters.branches),
            )
        )
    return out


def _step(doc: StepDoc) -> Step:
    name = doc.name or doc.uses or (doc.run or "").strip().splitlines()[0]
    return Step(
        name=name,
        run=doc.run,
        uses=doc.uses,
        params={k: as_param(v) for k, v in doc.with_.items()},
        env={k: as_param(v) for k, v in doc.env.items()},
        cwd=doc.working_directory,
    )


def _job(job_id: str, doc: JobDoc, workflow_env: Dict[str, str]) -> Job:
    condition = doc.if_
    if isinstance(condition, bool):
        condition = as_param(condition)
    runs_on = doc.runs_on if isinstance(doc.runs_on, str) else ",".join(doc.runs_on)
    return Job(
        name=job_id,
        steps=[_step(s) for s in doc.steps],
        needs=[doc.needs] if isinstance(doc.needs, str) else list(doc.needs),
        condition=condition,
        display_name=doc.name,
        runs_on=runs_on,
        env={**workflow_env, **{k: as_param(v) for k, v in doc.env.items()}},
        timeout_minutes=doc.timeout_minutes,
    )


def parse_workflow(raw: Any, *, source: str = "<workflow>") -> Workflow:
    """Validate an already-parsed YAML document and convert it."""
    if not isinstance(raw, dict):
        raise WorkflowError(f"{source}: workflow must be a mapping")

    raw = dict(raw)
    # YAML 1.1 reads a bare `on:` key as the boolean True
    if True in raw and "on" not in raw:
        raw["on"] = raw.pop(True)

    try:
        doc = WorkflowDoc.model_validate(raw)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise WorkflowError(f"{source}: invalid workflow", errors) from e

    workflow_env = {k: as_param(v) for k, v in doc.env.items()}
    workflow = Workflow(
        name=doc.name or Path(source).stem,
        triggers=_triggers(doc.on),
        declared_events=doc.events,
        jobs=[_job(job_id, job_doc, workflow_env) for job_id, job_doc in doc.jobs.items()],
    )

    try:
        plan_stages(workflow.jobs)
    except ValueError as e:
        raise WorkflowError(f"{source}: {e}") from e
    return workflow


def load_workflow_file(path: str | Path) -> Workflow:
    wf_path = Path(path)
    try:
        raw = yaml.safe_load(wf_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise WorkflowError(f"{wf_path}: invalid YAML", [str(e)]) from e
    return parse_workflow(raw, source=str(wf_path))
