# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes the git queries used to build a RunContext so the rest
# of the codebase never needs to call subprocess("git ...") for them directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Raises subprocess.CalledProcessError on a non-zero exit, which callers either
    let propagate or turn into a fallback.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """Absolute path to the root of the enclosing Git repository."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str | Path] = None) -> str:
    """Full SHA of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def is_dirty(cwd: Optional[str | Path] = None) -> bool:
    """True if the working tree has modified, staged or untracked files."""
    return _git(["status", "--porcelain"], cwd=cwd) != ""


def current_branch(cwd: Optional[str | Path] = None) -> Optional[str]:
    """Short name of the checked-out branch, or None on a detached HEAD."""
    name = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    return None if name == "HEAD" else name


def get_current_ref(cwd: Optional[str | Path] = None) -> str:
    """
    Fully qualified ref for HEAD, e.g. "refs/heads/master".

    Falls back to the commit SHA on a detached HEAD.
    """
    branch = current_branch(cwd)
    if branch:
        return f"refs/heads/{branch}"
    return head_sha(cwd)


def changed_files(base: str, head: str = "HEAD", cwd: Optional[str | Path] = None) -> List[str]:
    """
    Files changed between two refs, relative to the repository root.

    Typical usage:
        base = merge_base("origin/master")
        files = changed_files(base)
    """
    out = _git(["diff", "--name-only", f"{base}..{head}"], cwd=cwd)
    if not out:
        return []
    return out.splitlines()


def merge_base(with_ref: str = "origin/master", cwd: Optional[str | Path] = None) -> str:
    """Commit SHA of the common ancestor of HEAD and `with_ref`."""
    return _git(["merge-base", "HEAD", with_ref], cwd=cwd)


def working_changes(
    compare_ref: str = "origin/master",
    cwd: Optional[str | Path] = None,
) -> List[str]:
    """
    Changed paths for a local run.

    Dirty tree: staged + unstaged + untracked files.
    Clean tree: HEAD against its merge-base with `compare_ref`, falling back to
    HEAD~1, and finally to every tracked file on a first commit.
    """
    root = repo_root(cwd)

    if is_dirty(root):
        files = set()
        for args in (
            ["diff", "--name-only"],
            ["diff", "--name-only", "--cached"],
            ["ls-files", "--others", "--exclude-standard"],
        ):
            out = _git(args, cwd=root)
            if out:
                files.update(out.splitlines())
        return sorted(files)

    try:
        base = merge_base(compare_ref, cwd=root)
    except subprocess.CalledProcessError:
        # no remote configured, unrelated histories, ...
        base = "HEAD~1"

    try:
        return changed_files(base, "HEAD", cwd=root)
    except subprocess.CalledProcessError:
        tracked = _git(["ls-files"], cwd=root)
        return tracked.splitlines() if tracked else []
