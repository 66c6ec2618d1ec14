# actions/rust.py
from __future__ import annotations

import shlex
from typing import List, Mapping

from ..errors import CIError
from ..steps import TRUE_VALUES, StepContext


def _flag(params: Mapping[str, str], name: str) -> bool:
    return str(params.get(name, "")).strip().lower() in TRUE_VALUES


# ---------------------------------------------------------------------
# actions-rs/toolchain
# ---------------------------------------------------------------------

def toolchain_commands(params: Mapping[str, str]) -> List[List[str]]:
    """
    Turn actions-rs/toolchain inputs into rustup invocations.

    Example:
        {"toolchain": "stable", "profile": "minimal", "override": "true"} ->
        rustup toolchain install stable --profile minimal
        rustup override set stable
    """
    toolchain = params.get("toolchain") or "stable"
    install = ["rustup", "toolchain", "install", toolchain]
    if params.get("profile"):
        install += ["--profile", params["profile"]]
    for component in filter(None, (c.strip() for c in params.get("components", "").split(","))):
        install += ["--component", component]
    if params.get("target"):
        install += ["--target", params["target"]]

    cmds = [install]
    if _flag(params, "default"):
        cmds.append(["rustup", "default", toolchain])
    if _flag(params, "override"):
        cmds.append(["rustup", "override", "set", toolchain])
    return cmds


def toolchain(sc: StepContext) -> None:
    sc.require_tool("rustup")
    for cmd in toolchain_commands(sc.params):
        sc.run(cmd)


# ---------------------------------------------------------------------
# actions-rs/cargo
# ---------------------------------------------------------------------

def cargo_command(params: Mapping[str, str]) -> List[str]:
    """actions-rs/cargo inputs -> `cargo [+toolchain] <command> <args...>`."""
    command = (params.get("command") or "").strip()
    if not command:
        raise ValueError("actions-rs/cargo requires a 'command' input")

    program = "cross" if _flag(params, "use-cross") else "cargo"
    cmd = [program]
    if params.get("toolchain"):
        cmd.append(f"+{params['toolchain']}")
    cmd.append(command)
    cmd += shlex.split(params.get("args") or "")
    return cmd


def cargo(sc: StepContext) -> None:
    try:
        cmd = cargo_command(sc.params)
    except ValueError as e:
        raise CIError(
            kind="InvalidParameters",
            job=sc.job.name,
            step=sc.step.label,
            message=str(e),
            details={"with": dict(sc.params)},
        ) from e
    sc.require_tool(cmd[0])
    sc.run(cmd)
