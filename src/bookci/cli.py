# cli.py
from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import settings
from .context import EVENTS, RunContext, context_from_git, parse_secrets
from .dag import plan_stages
from .expressions import ExpressionError, evaluate_condition
from .runner import load_workflow, run_workflow
from .triggers import match_workflow
from .ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "bookci_workflow.py"


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """
    Candidate workflow files, in priority order:
      bookci_workflow.py, then *_workflow.py, then .github/workflows/*.yml|yaml
    """
    default_workflow = root / DEFAULT_WORKFLOW
    if default_workflow.exists():
        return [default_workflow]

    python_files = sorted(root.glob("*_workflow.py"))
    if python_files:
        return python_files

    gh_dir = root / ".github" / "workflows"
    return sorted([*gh_dir.glob("*.yml"), *gh_dir.glob("*.yaml")])


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Resolve the workflow file from the --workflow argument or by discovery.

    Raises:
        SystemExit: If no workflow, or more than one candidate, is found
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix == "":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  bookci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {DEFAULT_WORKFLOW}",
                "  *_workflow.py",
                "  .github/workflows/*.yml",
            ],
            suggestion=f"Create {DEFAULT_WORKFLOW} or specify a workflow explicitly:\n  bookci run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion=f"Specify a workflow explicitly:\n  bookci run --workflow {workflow_files[0]}",
        )
        sys.exit(1)

    return workflow_files[0]


def build_context(
    *,
    event: str,
    ref: Optional[str],
    sha: Optional[str],
    base_ref: Optional[str],
    default_branch: str,
    changed: Tuple[str, ...],
    git_diff: bool,
    compare_ref: Optional[str],
    secrets: Tuple[str, ...],
) -> RunContext:
    """
    Build the RunContext from CLI options. Git is only consulted for values the
    options leave open.
    """
    secret_map = {}
    token = os.environ.get(settings.TOKEN_ENV)
    if token:
        secret_map[settings.TOKEN_ENV] = token
    secret_map.update(parse_secrets(secrets))

    changed_paths = list(changed) if (changed or not git_diff) else None

    if ref is not None and changed_paths is not None:
        return RunContext(
            event_name=event,
            ref=ref,
            sha=sha or "",
            base_ref=base_ref or (default_branch if event == "pull_request" else None),
            changed_paths=tuple(changed_paths),
            secrets=secret_map,
            default_branch=default_branch,
            repository=str(Path(".").resolve()),
        )

    return context_from_git(
        event_name=event,
        ref=ref,
        sha=sha,
        base_ref=base_ref,
        changed=changed_paths,
        compare_ref=compare_ref,
        secrets=secret_map,
        default_branch=default_branch,
    )


def context_options(fn):
    """Options shared by `run` and `plan`."""
    options = [
        click.option(
            "--workflow",
            default=None,
            help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
        ),
        click.option("--event", type=click.Choice(EVENTS), default="push", show_default=True, help="Triggering event"),
        click.option("--ref", default=None, help="Triggering ref (defaults to the current branch, e.g. refs/heads/master)"),
        click.option("--sha", default=None, help="Commit SHA (defaults to HEAD when git is consulted)"),
        click.option("--base-ref", default=None, help="Pull request target branch (defaults to the default branch)"),
        click.option(
            "--default-branch",
            default=settings.DEFAULT_BRANCH,
            show_default=True,
            help="Default branch name (env BOOKCI_DEFAULT_BRANCH)",
        ),
        click.option("--changed", multiple=True, help="Changed path (repeatable); disables git diff"),
        click.option("--git-diff/--no-git-diff", default=True, show_default=True, help="Take changed paths from git"),
        click.option("--compare-ref", default=None, help="Git ref to diff against (defaults to origin/<default branch>)"),
        click.option("--secret", "secrets", multiple=True, help="Secret as NAME=VALUE (repeatable)"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _load(ctx, workflow: str | None):
    console = get_console()
    workflow_path = discover_workflow(workflow)
    try:
        return workflow_path, load_workflow(workflow_path)
    except Exception as e:
        # workflow files are user code; anything they raise is a load failure
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)


def _context(ctx, **options) -> RunContext:
    console = get_console()
    try:
        return build_context(**options)
    except ValueError as e:
        console.print_error("Invalid run context", str(e))
        sys.exit(2)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        console.print_error(
            "Could not read git state",
            "Run inside a git repository, or pass --ref and --changed explicitly.",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full step output)",
)
@click.pass_context
def cli(ctx, debug):
    """bookci: run the docs book CI workflow locally."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@context_options
@click.option("--workers", default=None, type=int, help="Number of parallel workers")
@click.option("--work-dir", default=settings.WORK_DIR, show_default=True, help="Root for per-job workspaces")
@click.option("--keep-workspaces", is_flag=True, default=False, help="Keep job workspaces after the run")
@click.option("--isolate/--no-isolate", default=True, show_default=True, help="Run each job in a fresh workspace")
@click.option("--fail-fast/--no-fail-fast", default=False, show_default=True, help="Start no new jobs after a failure")
@click.pass_context
def run(ctx, workflow, workers, work_dir, keep_workspaces, isolate, fail_fast, **context):
    """Run a workflow."""
    console = get_console()
    workflow_path, wf = _load(ctx, workflow)
    run_ctx = _context(ctx, **context)

    try:
        result = run_workflow(
            wf,
            run_ctx,
            repo_root=".",
            work_root=work_dir,
            max_workers=workers,
            fail_fast=fail_fast,
            isolate=isolate,
            keep_workspaces=keep_workspaces,
        )
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if not result.started:
        console.print_info(f"{workflow_path.name}: not started ({result.trigger_reason})")
        return

    console.print_results(result.jobs)
    if result.conclusion == "failure":
        sys.exit(1)


@cli.command()
@context_options
@click.pass_context
def plan(ctx, workflow, **context):
    """Show whether a workflow would start and in which order its jobs run."""
    console = get_console()
    workflow_path, wf = _load(ctx, workflow)
    run_ctx = _context(ctx, **context)

    match = match_workflow(wf, run_ctx)
    console.print_header(f"{wf.name} ({workflow_path.name})")
    console.print_trigger(match.matched, match.reason)
    if not match:
        return

    console.print_info("Stages:")
    for index, stage in enumerate(plan_stages(wf.jobs), start=1):
        console.print_stage(index, stage)

    for job in wf.jobs:
        if not job.condition:
            continue
        # assume every dependency succeeds; that is the only case the condition is evaluated
        expr_ctx = run_ctx.expression_context(env=job.env, needs={d: "success" for d in job.needs})
        try:
            verdict = "runs" if evaluate_condition(job.condition, expr_ctx) else "skipped"
        except ExpressionError as e:
            verdict = f"invalid condition ({e})"
        console.print_info(f"  {job.name}: if {job.condition} -> {verdict}")


if __name__ == "__main__":
    cli()
