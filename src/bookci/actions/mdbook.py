# actions/mdbook.py
from __future__ import annotations

import shutil
from typing import List, Optional

from ..steps import StepContext


def _installed_version(sc: StepContext) -> Optional[str]:
    if shutil.which("mdbook", path=sc.env.get("PATH")) is None:
        return None
    out = sc.run(["mdbook", "--version"], check=False).strip()
    # "mdbook v0.4.36"
    return out.split()[-1].lstrip("v") if out else ""


def install_command(version: str) -> List[str]:
    cmd = ["cargo", "install", "mdbook", "--locked"]
    if version and version != "latest":
        cmd += ["--version", version.lstrip("v")]
    return cmd


def setup_mdbook(sc: StepContext) -> None:
    """peaceiris/actions-mdbook: make `mdbook` available, installing it via cargo if needed."""
    wanted = sc.param("mdbook-version", "latest")
    have = _installed_version(sc)
    if have is not None and (wanted == "latest" or have == wanted.lstrip("v")):
        sc.log.append(f"mdbook {have} already installed\n")
        return

    sc.require_tool("cargo")
    sc.run(install_command(wanted))
