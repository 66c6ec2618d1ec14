from .dsl import job, sh, uses, on, wf
from .runner import run_dag, run_workflow, load_workflow
from .model import Job, Step, Workflow, WorkflowTrigger, JobStatus, JobResult, RunResult
from .context import RunContext

__all__ = [
    "job", "sh", "uses", "on", "wf",
    "run_dag", "run_workflow", "load_workflow",
    "Job", "Step", "Workflow", "WorkflowTrigger", "JobStatus", "JobResult", "RunResult",
    "RunContext",
]
