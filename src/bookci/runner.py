# runner.py
from __future__ import annotations

import os
import runpy
import shutil
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from . import settings
from .actions import ActionRegistry, default_registry
from .context import RunContext
from .dag import build_dag, topo_levels
from .errors import CIError, StepFailure, WorkflowError
from .expressions import ExpressionError, evaluate_condition, interpolate, interpolate_mapping
from .model import Job, JobResult, JobStatus, RunResult, Workflow
from .steps import StepContext, execute_step
from .triggers import match_workflow
from .ui.console import get_console
from .workflow_file import load_workflow_file

# status names as seen from expressions (needs.<job>.result)
RESULT_NAMES = {
    JobStatus.SUCCEEDED: "success",
    JobStatus.FAILED: "failure",
    JobStatus.SKIPPED: "skipped",
}


# ----------------------------------------------------------------------
# Workflow loading (local file/module)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python or YAML file.

    A python file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    A .yml/.yaml file is read as a GitHub Actions workflow.
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in (".yml", ".yaml"):
        return load_workflow_file(wf_path)
    if wf_path.suffix != ".py":
        raise WorkflowError(f"Workflow must be a .py, .yml or .yaml file, got: {wf_path.name}")

    module_name = f"bookci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    workflow = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        workflow = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        workflow = globals_dict["WORKFLOW"]

    if not isinstance(workflow, Workflow):
        raise WorkflowError(
            f"{wf_path.name}: workflow must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(...)."
        )

    try:
        adj, indeg = build_dag(workflow.jobs)
        topo_levels(adj, indeg)
    except ValueError as e:
        raise WorkflowError(f"{wf_path.name}: {e}") from e
    return workflow


# ----------------------------------------------------------------------
# Gating
# ----------------------------------------------------------------------

def _needs_results(job: Job, results: Dict[str, JobResult]) -> Dict[str, str]:
    """`needs.<job>.result` values for the jobs `job` depends on."""
    return {d: RESULT_NAMES[results[d].status] for d in job.needs}


def _gate(job: Job, results: Dict[str, JobResult], ctx: RunContext) -> Tuple[Optional[JobStatus], str]:
    """
    Decide whether a pending job may start.

    Returns (None, "") when eligible, otherwise the terminal status to record
    and why. Dependencies are checked first; the condition only runs once every
    dependency has succeeded.
    """
    for dep in job.needs:
        dep_status = results[dep].status
        if dep_status is not JobStatus.SUCCEEDED:
            return JobStatus.SKIPPED, f"dependency '{dep}' {dep_status.value}"

    if job.condition:
        expr_ctx = ctx.expression_context(env=job.env, needs=_needs_results(job, results))
        try:
            ok = evaluate_condition(job.condition, expr_ctx)
        except ExpressionError as e:
            return JobStatus.FAILED, f"InvalidCondition: {job.condition!r}: {e}"
        if not ok:
            return JobStatus.SKIPPED, f"condition not met: {job.condition}"

    return None, ""


# ----------------------------------------------------------------------
# Job execution
# ----------------------------------------------------------------------

@dataclass
class _Outcome:
    status: JobStatus
    reason: str = ""
    failed_step: Optional[str] = None
    exit_code: Optional[int] = None
    log: str = ""


def _run_steps(
    job: Job,
    ctx: RunContext,
    actions: ActionRegistry,
    workspace: Path,
    needs: Dict[str, str],
) -> _Outcome:
    console = get_console()
    log: List[str] = []
    timeout = job.timeout_minutes * 60 if job.timeout_minutes else None

    base_env = os.environ.copy()
    base_env.update(ctx.job_env(workspace))

    for step in job.steps:
        console.print_step(job.name, step.label)
        try:
            expr_ctx = ctx.expression_context(needs=needs, include_secrets=True)
            job_env = interpolate_mapping(job.env, expr_ctx)
            expr_ctx["env"] = dict(job_env)
            step_env = interpolate_mapping(step.env, expr_ctx)
            expr_ctx["env"].update(step_env)
            params = interpolate_mapping(step.params, expr_ctx)
            if step.run is not None:
                step = replace(step, run=interpolate(step.run, expr_ctx))
        except ExpressionError as e:
            reason = f"InvalidExpression: {e}"
            console.print_failure(step.label, reason)
            return _Outcome(JobStatus.FAILED, reason, step.label, None, "".join(log))

        sc = StepContext(
            job=job,
            step=step,
            ctx=ctx,
            workspace=workspace,
            env={**base_env, **job_env, **step_env},
            params=params,
            timeout=timeout,
            log=log,
        )

        try:
            execute_step(sc, actions)
        except StepFailure as e:
            console.print_failure(step.label, str(e), exit_code=e.exit_code)
            console.print_log_tail(job.name, e.log_tail)
            code = "timeout" if e.exit_code is None else f"exit {e.exit_code}"
            return _Outcome(JobStatus.FAILED, f"step '{step.label}' failed ({code})", step.label, e.exit_code, "".join(log))
        except CIError as e:
            hint = None
            if e.kind == "MissingTools":
                hint = "; ".join(e.details.get("hints", {}).values()) or None
            console.print_failure(step.label, ctx.mask(str(e)), hint=hint)
            return _Outcome(JobStatus.FAILED, ctx.mask(f"{e.kind}: {e.message}"), step.label, None, "".join(log))

    return _Outcome(JobStatus.SUCCEEDED, log="".join(log))


def _run_job(
    job: Job,
    ctx: RunContext,
    actions: ActionRegistry,
    workspace: Path,
    needs: Dict[str, str],
    cleanup: bool,
) -> _Outcome:
    """Run one job in its own workspace; steps stop at the first failure."""
    get_console().print_job_start(job.title, job.runs_on)
    workspace.mkdir(parents=True, exist_ok=True)
    try:
        return _run_steps(job, ctx, actions, workspace, needs)
    finally:
        if cleanup:
            shutil.rmtree(workspace, ignore_errors=True)


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_dag(
    jobs: List[Job],
    ctx: RunContext,
    *,
    actions: Optional[ActionRegistry] = None,
    repo_root: str | Path = ".",
    work_root: str | Path = settings.WORK_DIR,
    max_workers: int | None = None,
    fail_fast: bool = False,
    isolate: bool = True,
    keep_workspaces: bool = False,
    run_id: Optional[str] = None,
) -> Dict[str, JobResult]:
    """
    Execute jobs respecting `needs` edges and `condition` gates.

    Each job moves pending -> running -> succeeded/failed, or pending -> skipped
    when a dependency did not succeed or its condition is false. Independent
    jobs run concurrently. With isolate=True every job gets a fresh directory
    under work_root/<run_id>/; otherwise jobs run directly in repo_root.

    Returns job name -> JobResult in declaration order.
    """
    console = get_console()
    actions = actions if actions is not None else default_registry()

    adj, indeg = build_dag(jobs)
    topo_levels(adj, indeg)  # raises on cycles before anything runs

    by_name = {j.name: j for j in jobs}
    order = {j.name: i for i, j in enumerate(jobs)}
    results: Dict[str, JobResult] = {j.name: JobResult(j.name) for j in jobs}
    run_dir = Path(work_root).resolve() / (run_id or uuid.uuid4().hex[:12])
    root = Path(repo_root).resolve()

    ready: List[str] = [name for name, deg in indeg.items() if deg == 0]
    failed = False

    if max_workers is None:
        c = os.cpu_count() or 2
        max_workers = max(1, c - 1)

    in_flight: Dict[Future, Tuple[str, float]] = {}

    def release(name: str) -> None:
        for nxt in sorted(adj[name], key=order.__getitem__):
            indeg[nxt] -= 1
            if indeg[nxt] == 0:
                ready.append(nxt)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while ready or in_flight:
            # settle or schedule everything currently ready
            while ready:
                name = ready.pop(0)
                job = by_name[name]
                result = results[name]

                if fail_fast and failed:
                    verdict, reason = JobStatus.SKIPPED, "fail-fast: an earlier job failed"
                else:
                    verdict, reason = _gate(job, results, ctx)

                if verdict is not None:
                    result.transition(verdict, reason)
                    if verdict is JobStatus.FAILED:
                        failed = True
                        console.print_failure(name, reason, is_job=True)
                    else:
                        console.print_job_skipped(name, reason)
                    release(name)
                    continue

                result.transition(JobStatus.RUNNING)
                workspace = run_dir / name if isolate else root
                needs = _needs_results(job, results)
                fut = pool.submit(_run_job, job, ctx, actions, workspace, needs, isolate and not keep_workspaces)
                in_flight[fut] = (name, time.monotonic())

            if not in_flight:
                break

            # wait for one completion, then loop to settle newly-ready jobs
            fut = next(as_completed(list(in_flight.keys())))
            name, started = in_flight.pop(fut)
            result = results[name]

            try:
                outcome = fut.result()
            except Exception as e:
                console.print_exception(e)
                outcome = _Outcome(JobStatus.FAILED, f"unexpected error: {ctx.mask(str(e))}")

            result.transition(outcome.status, outcome.reason)
            result.failed_step = outcome.failed_step
            result.exit_code = outcome.exit_code
            result.log = outcome.log
            result.duration = time.monotonic() - started

            if outcome.status is JobStatus.FAILED:
                failed = True
                console.print_failure(name, outcome.reason, exit_code=outcome.exit_code, is_job=True)
            else:
                console.print_success(name, result.duration)
            release(name)

    if isolate and not keep_workspaces and run_dir.is_dir() and not any(run_dir.iterdir()):
        run_dir.rmdir()

    return results


def run_workflow(workflow: Workflow, ctx: RunContext, **options) -> RunResult:
    """
    Trigger check + job graph. A trigger mismatch is not an error: the run simply
    does not start and no job leaves `pending`.

    `options` are passed through to run_dag.
    """
    console = get_console()
    match = match_workflow(workflow, ctx)
    console.print_trigger(match.matched, match.reason)

    if not match:
        return RunResult(
            workflow=workflow.name,
            started=False,
            trigger_reason=match.reason,
            jobs={j.name: JobResult(j.name) for j in workflow.jobs},
        )

    console.print_run_started(
        workflow=workflow.name,
        event=ctx.event_name,
        ref=ctx.ref,
        job_count=len(workflow.jobs),
    )
    jobs = run_dag(workflow.jobs, ctx, **options)
    return RunResult(workflow=workflow.name, started=True, trigger_reason=match.reason, jobs=jobs)
