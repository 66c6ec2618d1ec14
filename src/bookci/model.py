# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Step:
    """
    A single step inside a CI job.

    Exactly one of `run` (a shell command) or `uses` (an action reference such as
    "actions/checkout@v2") is set. `params` is the action's `with:` mapping.
    """
    name: str
    run: str | None = None
    uses: str | None = None
    params: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    def __post_init__(self) -> None:
        if (self.run is None) == (self.uses is None):
            raise ValueError(f"step {self.name!r} must set exactly one of 'run' or 'uses'")
        if self.run is not None and self.params:
            raise ValueError(f"step {self.name!r}: 'with' parameters only apply to 'uses' steps")

    @property
    def action(self) -> str | None:
        """Action name without the @version suffix."""
        if self.uses is None:
            return None
        return self.uses.split("@", 1)[0]

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return self.uses or (self.run or "").splitlines()[0]


@dataclass
class Job:
    """
    A CI job: ordered steps + dependencies + an optional run condition.

    `condition` is an expression (the `if:` of a workflow file), evaluated only after
    every job in `needs` has succeeded.
    """
    name: str
    steps: List[Step]

    needs: List[str] = field(default_factory=list)
    condition: Optional[str] = None

    display_name: Optional[str] = None
    runs_on: str = "ubuntu-latest"
    env: Dict[str, str] = field(default_factory=dict)
    timeout_minutes: Optional[float] = None

    @property
    def title(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class WorkflowTrigger:
    """An `on:` entry: event kind plus optional path/branch filters."""
    event: str
    paths: Tuple[str, ...] = ()
    paths_ignore: Tuple[str, ...] = ()
    branches: Tuple[str, ...] = ()


@dataclass
class Workflow:
    """
    `declared_events` lists every event named by a workflow file's `on:`, including
    kinds bookci cannot run (workflow_dispatch, schedule, ...). Empty means the
    workflow declared nothing at all.
    """
    name: str
    triggers: List[WorkflowTrigger]
    jobs: List[Job]
    declared_events: Tuple[str, ...] = ()


# ---------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------

class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.SKIPPED)


_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.SKIPPED, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
}


@dataclass
class JobResult:
    """Per-job record. Status only moves forward through the job state machine."""
    name: str
    status: JobStatus = JobStatus.PENDING
    reason: str = ""
    failed_step: Optional[str] = None
    exit_code: Optional[int] = None
    duration: Optional[float] = None
    log: str = ""

    def transition(self, new: JobStatus, reason: str = "") -> None:
        allowed = _TRANSITIONS.get(self.status, set())
        if new not in allowed:
            raise RuntimeError(
                f"job {self.name!r}: illegal transition {self.status.value} -> {new.value}"
            )
        self.status = new
        if reason:
            self.reason = reason


@dataclass
class RunResult:
    workflow: str
    started: bool
    trigger_reason: str
    jobs: Dict[str, JobResult] = field(default_factory=dict)

    @property
    def conclusion(self) -> str:
        if not self.started:
            return "not_started"
        if any(r.status is JobStatus.FAILED for r in self.jobs.values()):
            return "failure"
        return "success"

    def status_of(self, job_name: str) -> JobStatus:
        return self.jobs[job_name].status
