"""Pytest configuration and fixtures for bookci tests."""
from __future__ import annotations

import os
import stat
import subprocess
from pathlib import Path
from typing import Callable

import pytest

from bookci.context import RunContext
from bookci.ui.console import Console, set_console


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "--quiet")
    git(path, "config", "user.email", "test@example.com")
    git(path, "config", "user.name", "Test User")
    git(path, "config", "commit.gpgsign", "false")
    return path


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield
    set_console(Console(debug=False))


@pytest.fixture
def make_ctx() -> Callable[..., RunContext]:
    def _make(**overrides) -> RunContext:
        values = dict(
            event_name="push",
            ref="refs/heads/master",
            changed_paths=("docs/book/chapter1.md",),
            default_branch="master",
            sha="",
            repository=".",
        )
        values.update(overrides)
        return RunContext(**values)

    return _make


FAKE_TOOLS = {
    "rustup": '#!/bin/sh\necho "rustup $*"\nexit 0\n',
    # exit status is controlled per test through FAKE_CARGO_EXIT
    "cargo": '#!/bin/sh\necho "cargo $*"\nexit "${FAKE_CARGO_EXIT:-0}"\n',
    "mdbook": (
        "#!/bin/sh\n"
        'if [ "$1" = "--version" ]; then echo "mdbook v0.4.36"; exit 0; fi\n'
        '# mdbook build -d <dest> <book>: dest is relative to the book\n'
        'mkdir -p "$4/$3"\n'
        "echo '<html>book</html>' > \"$4/$3/index.html\"\n"
    ),
}


@pytest.fixture
def fake_toolchain(tmp_path: Path, monkeypatch) -> Path:
    """Put stand-ins for rustup, cargo and mdbook first on PATH."""
    bin_dir = tmp_path / "fake-bin"
    bin_dir.mkdir()
    for name, body in FAKE_TOOLS.items():
        script = write(bin_dir / name, body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.delenv("FAKE_CARGO_EXIT", raising=False)
    return bin_dir


@pytest.fixture
def book_origin(tmp_path: Path) -> tuple[Path, str]:
    """
    Bare repository standing in for the hosted repo:
      master    a docs book with one chapter
      gh-pages  a page published by an earlier deploy (old/index.html)

    Returns (bare repo path, master sha).
    """
    remote = tmp_path / "origin.git"
    subprocess.run(["git", "init", "--quiet", "--bare", str(remote)], check=True, capture_output=True)

    src = init_repo(tmp_path / "src")
    write(src / "README.md", "# project\n")
    write(src / "docs/book/SUMMARY.md", "- [Chapter 1](chapter1.md)\n")
    write(src / "docs/book/chapter1.md", "# Chapter 1\n")
    git(src, "add", "--all")
    git(src, "commit", "--quiet", "-m", "book")
    sha = git(src, "rev-parse", "HEAD")
    git(src, "push", "--quiet", str(remote), "HEAD:refs/heads/master")

    git(src, "checkout", "--quiet", "--orphan", "gh-pages")
    git(src, "rm", "-rf", "--quiet", ".")
    write(src / "old/index.html", "<html>old</html>\n")
    git(src, "add", "--all")
    git(src, "commit", "--quiet", "-m", "earlier deploy")
    git(src, "push", "--quiet", str(remote), "HEAD:refs/heads/gh-pages")

    git(remote, "symbolic-ref", "HEAD", "refs/heads/master")
    return remote, sha


def branch_files(remote: Path, branch: str) -> set[str]:
    out = git(remote, "ls-tree", "-r", "--name-only", branch)
    return set(out.splitlines())
