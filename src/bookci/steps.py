# steps.py
from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Union

from .context import RunContext
from .errors import TOOL_HINTS, CIError, StepFailure
from .model import Job, Step
from .ui.console import get_console

if TYPE_CHECKING:
    from .actions.registry import ActionRegistry

LOG_TAIL_LINES = 30
TRUE_VALUES = ("1", "true", "yes", "on")

Command = Union[str, Sequence[str]]


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


@dataclass
class StepContext:
    """
    What a step (shell or action) gets to work with.

    `params` and `env` are already interpolated; `log` is the job-wide list of
    masked output chunks.
    """
    job: Job
    step: Step
    ctx: RunContext
    workspace: Path
    env: Dict[str, str]
    params: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    log: List[str] = field(default_factory=list)

    @property
    def cwd(self) -> Path:
        return (self.workspace / (self.step.cwd or ".")).resolve()

    def param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.params.get(name)
        return default if value in (None, "") else value

    def flag(self, name: str, default: bool = False) -> bool:
        value = self.param(name)
        if value is None:
            return default
        return str(value).strip().lower() in TRUE_VALUES

    def require_tool(self, *tools: str) -> None:
        missing = [t for t in tools if shutil.which(t, path=self.env.get("PATH")) is None]
        if missing:
            raise CIError(
                kind="MissingTools",
                job=self.job.name,
                step=self.step.label,
                message=f"Required tools not found: {', '.join(missing)}",
                details={"hints": {t: TOOL_HINTS.get(t, "Install it and ensure it is on PATH.") for t in missing}},
            )

    def run(self, cmd: Command, *, cwd: Optional[Path] = None, check: bool = True) -> str:
        """
        Run a command for this step and return its stdout.

        Output is captured, masked and appended to the job log. A non-zero exit
        raises StepFailure when `check` is set.
        """
        workdir = cwd or self.cwd
        shown = self.ctx.mask(cmd if isinstance(cmd, str) else " ".join(cmd))
        get_console().print_debug(f"[{self.job.name}] $ {shown}")

        try:
            proc = subprocess.run(
                cmd,
                shell=isinstance(cmd, str),
                cwd=str(workdir),
                env=self.env,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = self.ctx.mask(_as_text(e.stdout) + _as_text(e.stderr))
            self.log.append(output)
            raise StepFailure(
                job=self.job.name,
                step=self.step.label,
                cmd=shown,
                exit_code=None,
                log_tail=_tail(output),
            ) from e
        except OSError as e:
            raise CIError(
                kind="SpawnFailed",
                job=self.job.name,
                step=self.step.label,
                message=str(e),
                details={"command": shown, "cwd": str(workdir)},
            ) from e

        output = self.ctx.mask((proc.stdout or "") + (proc.stderr or ""))
        self.log.append(output)
        get_console().print_step_output(self.job.name, output)

        if check and proc.returncode != 0:
            raise StepFailure(
                job=self.job.name,
                step=self.step.label,
                cmd=shown,
                exit_code=proc.returncode,
                log_tail=_tail(output),
            )
        return proc.stdout or ""


def _tail(output: str, lines: int = LOG_TAIL_LINES) -> str:
    return "\n".join(output.strip().splitlines()[-lines:])


def execute_step(sc: StepContext, actions: "ActionRegistry") -> None:
    """Run one step: a shell command, or the handler registered for `uses`."""
    if not sc.cwd.is_dir():
        raise CIError(
            kind="BadWorkingDirectory",
            job=sc.job.name,
            step=sc.step.label,
            message="Step working directory does not exist",
            details={"cwd": sc.step.cwd},
        )

    if sc.step.run is not None:
        sc.run(sc.step.run)
        return

    handler = actions.resolve(sc.step, job=sc.job.name)
    handler(sc)
