# actions/checkout.py
from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from ..errors import CIError
from ..steps import StepContext


def authenticated_url(remote: str, token: Optional[str]) -> str:
    """Embed a token into an https remote; other remotes pass through unchanged."""
    if not token:
        return remote
    parts = urlsplit(remote)
    if parts.scheme != "https":
        return remote
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(parts._replace(netloc=f"x-access-token:{token}@{host}"))


def _is_worktree_root(sc: StepContext, target: Path) -> bool:
    top = sc.run(["git", "rev-parse", "--show-toplevel"], cwd=target, check=False).strip()
    return bool(top) and Path(top).resolve() == target


def _checkout_in_place(sc: StepContext, target: Path, ref: Optional[str]) -> None:
    sc.log.append(f"using existing checkout at {target}\n")
    if not ref:
        return
    head = sc.run(["git", "rev-parse", "HEAD"], cwd=target, check=False).strip()
    wanted = sc.run(["git", "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                    cwd=target, check=False).strip()
    if wanted and wanted == head:
        return
    sc.run(["git", "checkout", "--quiet", ref], cwd=target)


def checkout(sc: StepContext) -> None:
    """
    actions/checkout: clone the run's repository into the workspace.

    with:
      repository  clone source (defaults to the run's repository)
      ref         branch/tag/sha to check out (defaults to the run's sha)
      path        sub-directory of the workspace to clone into
      token       credential for https remotes

    A target that is already the root of a git work tree (a run without per-job
    workspaces) is reused; any other non-empty target is an error.
    """
    target = (sc.workspace / (sc.param("path") or ".")).resolve()
    target.mkdir(parents=True, exist_ok=True)
    ref = sc.param("ref") or sc.ctx.sha

    if any(target.iterdir()):
        sc.require_tool("git")
        if _is_worktree_root(sc, target):
            _checkout_in_place(sc, target, ref)
            return
        raise CIError(
            kind="CheckoutFailed",
            job=sc.job.name,
            step=sc.step.label,
            message="Checkout target is not empty",
            details={"path": str(target)},
        )

    sc.require_tool("git")
    source = authenticated_url(sc.param("repository") or sc.ctx.repository, sc.param("token"))
    sc.run(["git", "clone", "--quiet", source, str(target)], cwd=sc.workspace)

    if ref:
        sc.run(["git", "checkout", "--quiet", ref], cwd=target)
