# actions/pages.py
"""
peaceiris/actions-gh-pages stand-in: publish a directory to a hosting branch.

The publish is a plain git round trip: clone the hosting branch (or start it as
an orphan), copy the output in, commit, push. With keep_files the copy is
additive, so files published earlier stay on the branch.
"""
from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List

from .. import settings
from ..errors import CIError
from ..steps import StepContext
from .checkout import authenticated_url

ALWAYS_PRESERVED = (".git",)


def publish_directory(
    source: Path,
    target: Path,
    *,
    keep_files: bool,
    preserve: Iterable[str] = ALWAYS_PRESERVED,
) -> List[str]:
    """
    Copy every file under `source` into `target`.

    keep_files=False empties `target` first (top-level names in `preserve`
    survive); keep_files=True only adds and overwrites.

    Returns the copied paths relative to `source`, in sorted order.
    """
    if not source.is_dir():
        raise FileNotFoundError(f"publish directory not found: {source}")

    target.mkdir(parents=True, exist_ok=True)
    keep = set(preserve)

    if not keep_files:
        for child in target.iterdir():
            if child.name in keep:
                continue
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()

    copied: List[str] = []
    for f in sorted(source.rglob("*")):
        rel = f.relative_to(source)
        if rel.parts[0] == ".git" or not f.is_file():
            continue
        dest = target / rel
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(f, dest)
        copied.append(rel.as_posix())
    return copied


def gh_pages(sc: StepContext) -> None:
    """
    with:
      github_token / personal_token   push credential (https remotes)
      publish_dir                     directory to publish (default: public)
      publish_branch                  hosting branch (default: gh-pages)
      destination_dir                 sub-directory on the hosting branch
      keep_files / keepFiles          additive publish
      external_repository             push somewhere other than the run's repository
      enable_jekyll                   skip writing .nojekyll
      commit_message, user_name, user_email
    """
    source = (sc.workspace / sc.param("publish_dir", "public")).resolve()
    if not source.is_dir():
        raise CIError(
            kind="PublishFailed",
            job=sc.job.name,
            step=sc.step.label,
            message="publish_dir does not exist",
            details={"publish_dir": sc.param("publish_dir", "public")},
        )

    sc.require_tool("git")
    branch = sc.param("publish_branch", "gh-pages")
    keep_files = sc.flag("keep_files") or sc.flag("keepFiles")
    token = sc.param("github_token") or sc.param("personal_token")
    remote = authenticated_url(sc.param("external_repository") or sc.ctx.repository, token)
    message = sc.param("commit_message") or f"deploy: {sc.ctx.sha or 'local'}"

    with tempfile.TemporaryDirectory(prefix="bookci-pages-") as tmp:
        scratch = Path(tmp)
        site = scratch / "site"

        if sc.run(["git", "ls-remote", "--heads", remote, branch], cwd=scratch).strip():
            sc.run(["git", "clone", "--quiet", "--branch", branch, remote, str(site)], cwd=scratch)
        else:
            site.mkdir()
            sc.run(["git", "init", "--quiet"], cwd=site)
            sc.run(["git", "checkout", "--quiet", "--orphan", branch], cwd=site)
            sc.run(["git", "remote", "add", "origin", remote], cwd=site)

        dest = site / sc.param("destination_dir", "")
        copied = publish_directory(source, dest, keep_files=keep_files)
        if not sc.flag("enable_jekyll"):
            (site / ".nojekyll").touch()
        sc.log.append(f"publishing {len(copied)} file(s) to {branch}\n")

        sc.run(["git", "add", "--all"], cwd=site)
        if not sc.run(["git", "status", "--porcelain"], cwd=site).strip():
            sc.log.append("nothing to publish\n")
            return

        sc.run(
            [
                "git",
                "-c", f"user.name={sc.param('user_name', settings.GIT_USER_NAME)}",
                "-c", f"user.email={sc.param('user_email', settings.GIT_USER_EMAIL)}",
                "-c", "commit.gpgsign=false",
                "commit", "--quiet", "-m", message,
            ],
            cwd=site,
        )
        sc.run(["git", "push", "--quiet", "origin", f"HEAD:refs/heads/{branch}"], cwd=site)
