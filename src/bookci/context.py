# context.py
from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from . import settings
from .git_facts.git import get_current_ref, head_sha, repo_root, working_changes

EVENTS = ("push", "pull_request")
MASK = "***"


def _freeze(secrets: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(secrets or {}))


@dataclass(frozen=True)
class RunContext:
    """
    Everything a run knows about its trigger. Built once per run, read-only after.

    `secrets` is kept out of repr() and only reaches steps through `${{ secrets.X }}`
    interpolation; use mask() on anything that is about to be printed.
    """
    event_name: str
    ref: str
    changed_paths: Tuple[str, ...] = ()
    secrets: Mapping[str, str] = field(default_factory=dict, repr=False)
    default_branch: str = settings.DEFAULT_BRANCH
    sha: str = ""
    base_ref: Optional[str] = None
    repository: str = "."

    def __post_init__(self) -> None:
        if self.event_name not in EVENTS:
            raise ValueError(f"unsupported event {self.event_name!r}; expected one of {EVENTS}")
        object.__setattr__(self, "changed_paths", tuple(self.changed_paths))
        object.__setattr__(self, "secrets", _freeze(self.secrets))

    @property
    def ref_name(self) -> str:
        for prefix in ("refs/heads/", "refs/tags/"):
            if self.ref.startswith(prefix):
                return self.ref[len(prefix):]
        return self.ref

    def mask(self, text: str) -> str:
        """Replace every secret value in `text` with ***."""
        if not text:
            return text
        # longest first so a secret containing another secret is masked whole
        for value in sorted(self.secrets.values(), key=len, reverse=True):
            if value:
                text = text.replace(value, MASK)
        return text

    def expression_context(
        self,
        *,
        env: Optional[Mapping[str, str]] = None,
        needs: Optional[Mapping[str, str]] = None,
        include_secrets: bool = False,
    ) -> Dict[str, Any]:
        """
        Build the lookup tree for `${{ }}` expressions.

        needs: job name -> result string ("success", "failure", "skipped").
        """
        ctx: Dict[str, Any] = {
            "github": {
                "event_name": self.event_name,
                "ref": self.ref,
                "ref_name": self.ref_name,
                "sha": self.sha,
                "base_ref": self.base_ref or "",
                "repository": self.repository,
                "event": {"repository": {"default_branch": self.default_branch}},
            },
            "env": dict(env or {}),
            "needs": {name: {"result": result} for name, result in (needs or {}).items()},
        }
        if include_secrets:
            ctx["secrets"] = dict(self.secrets)
        return ctx

    def job_env(self, workspace: Path) -> Dict[str, str]:
        """GITHUB_* variables exported to every step."""
        return {
            "CI": "true",
            "GITHUB_ACTIONS": "false",
            "GITHUB_EVENT_NAME": self.event_name,
            "GITHUB_REF": self.ref,
            "GITHUB_REF_NAME": self.ref_name,
            "GITHUB_SHA": self.sha,
            "GITHUB_BASE_REF": self.base_ref or "",
            "GITHUB_WORKSPACE": str(workspace),
        }


# ---------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------

def parse_secrets(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse NAME=VALUE strings (the CLI's --secret option)."""
    out: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"secret must look like NAME=VALUE, got {name.strip() or '<empty>'!r}")
        out[name.strip()] = value
    return out


def context_from_git(
    *,
    event_name: str = "push",
    ref: Optional[str] = None,
    sha: Optional[str] = None,
    base_ref: Optional[str] = None,
    changed: Optional[Iterable[str]] = None,
    compare_ref: Optional[str] = None,
    secrets: Optional[Mapping[str, str]] = None,
    default_branch: str = settings.DEFAULT_BRANCH,
    cwd: Optional[str | Path] = None,
) -> RunContext:
    """
    Build a RunContext for a local run, filling gaps from the repository:
      - ref/sha default to HEAD
      - changed paths come from `changed` if given, else from git (see working_changes)
    """
    root = repo_root(cwd)

    if ref is None:
        ref = get_current_ref(root)
    if sha is None:
        try:
            sha = head_sha(root)
        except subprocess.CalledProcessError:
            # repository without commits
            sha = ""
    if changed is None:
        changed = working_changes(compare_ref or f"origin/{default_branch}", cwd=root)
    if event_name == "pull_request" and base_ref is None:
        base_ref = default_branch

    return RunContext(
        event_name=event_name,
        ref=ref,
        sha=sha,
        base_ref=base_ref,
        changed_paths=tuple(changed),
        secrets=secrets or {},
        default_branch=default_branch,
        repository=str(root),
    )
