# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - recording why a job failed
      - debugging without full tracebacks
    """
    kind: str
    job: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"job={self.job}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    """A step exited non-zero (or timed out). `exit_code` is None on timeout."""
    job: str
    step: str
    cmd: str
    exit_code: Optional[int]
    log_tail: str = ""

    def __str__(self) -> str:
        code = "timeout" if self.exit_code is None else self.exit_code
        return f"[{self.job}] step '{self.step}' failed (exit={code}): {self.cmd}"


class WorkflowError(ValueError):
    """Raised when a workflow file cannot be loaded or fails validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        return base + "\n" + "\n".join(f"  {e}" for e in self.errors)


TOOL_HINTS = {
    "git": "Install Git or fix PATH.",
    "cargo": "Install Rust via rustup (https://rustup.rs) or fix PATH.",
    "rustup": "Install rustup (https://rustup.rs) or fix PATH.",
    "mdbook": "Install mdBook (e.g., cargo install mdbook).",
}
