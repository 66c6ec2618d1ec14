# triggers.py
"""
Trigger matching: should a push / pull_request event start the workflow?

Path filters use GitHub Actions glob rules: `*` stays within one path segment,
`**` crosses segments, and a leading `!` re-excludes paths an earlier pattern
matched.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence

from .context import RunContext
from .model import Workflow, WorkflowTrigger


@dataclass(frozen=True)
class TriggerMatch:
    matched: bool
    reason: str
    trigger: Optional[WorkflowTrigger] = None

    def __bool__(self) -> bool:
        return self.matched


@lru_cache(maxsize=256)
def _glob_regex(pattern: str) -> re.Pattern:
    out: List[str] = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                # "**/" also matches zero directories
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def glob_match(path: str, pattern: str) -> bool:
    return _glob_regex(pattern).match(path) is not None


def matches_filters(value: str, patterns: Sequence[str]) -> bool:
    """Apply patterns in order; `!pattern` undoes an earlier match."""
    matched = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if matched and glob_match(value, pattern[1:]):
                matched = False
        elif not matched and glob_match(value, pattern):
            matched = True
    return matched


def _relevant_paths(trigger: WorkflowTrigger, changed: Iterable[str]) -> List[str]:
    paths = [p[2:] if p.startswith("./") else p for p in changed]
    if trigger.paths_ignore:
        paths = [p for p in paths if not matches_filters(p, trigger.paths_ignore)]
    return paths


def match_trigger(trigger: WorkflowTrigger, ctx: RunContext) -> TriggerMatch:
    if trigger.event != ctx.event_name:
        return TriggerMatch(False, f"event {ctx.event_name!r} is not {trigger.event!r}")

    if trigger.branches:
        branch = ctx.base_ref if ctx.event_name == "pull_request" else ctx.ref_name
        branch = (branch or "").removeprefix("refs/heads/")
        if not matches_filters(branch, trigger.branches):
            return TriggerMatch(False, f"branch {branch!r} not in {list(trigger.branches)}")

    paths = _relevant_paths(trigger, ctx.changed_paths)

    if not trigger.paths:
        if trigger.paths_ignore and not paths:
            return TriggerMatch(False, "all changed paths are ignored")
        return TriggerMatch(True, f"{trigger.event} (no path filter)", trigger)

    for path in paths:
        if matches_filters(path, trigger.paths):
            return TriggerMatch(True, f"{trigger.event}: {path} matched {list(trigger.paths)}", trigger)

    return TriggerMatch(False, f"no changed path matched {list(trigger.paths)}")


def evaluate_triggers(
    triggers: Sequence[WorkflowTrigger],
    ctx: RunContext,
    *,
    declared_events: Sequence[str] = (),
) -> TriggerMatch:
    """
    First matching trigger wins; otherwise explain why the last candidate missed.

    A workflow that declared no events at all always starts (local-only workflows).
    One whose `on:` named only events bookci cannot run never starts.
    """
    if not triggers:
        if declared_events:
            return TriggerMatch(False, f"workflow only runs on {list(declared_events)}")
        return TriggerMatch(True, "no triggers declared")
    miss = TriggerMatch(False, f"workflow has no {ctx.event_name!r} trigger")
    for trigger in triggers:
        result = match_trigger(trigger, ctx)
        if result:
            return result
        if trigger.event == ctx.event_name:
            miss = result
    return miss


def match_workflow(workflow: Workflow, ctx: RunContext) -> TriggerMatch:
    return evaluate_triggers(workflow.triggers, ctx, declared_events=workflow.declared_events)


def should_run(triggers: Sequence[WorkflowTrigger], ctx: RunContext) -> bool:
    return evaluate_triggers(triggers, ctx).matched
