"""Console output formatting utilities for bookci."""

from __future__ import annotations

import sys
import threading
from typing import Mapping, Optional

from ..model import JobResult, JobStatus


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces and
                   the full (masked) output of every step
        """
        self.debug = debug
        # jobs run on worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    def _emit(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_run_started(
        self,
        workflow: str,
        event: str,
        ref: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED",
            f"Workflow: {workflow}",
            f"Event: {event}",
            f"Ref: {ref}",
            f"Jobs: {job_count}",
            "",
        )

    def print_trigger(self, matched: bool, reason: str) -> None:
        """Print the trigger decision."""
        verdict = "matched" if matched else "not matched"
        self._emit(f"TRIGGER: {verdict} ({reason})")

    def print_stage(self, index: int, jobs: list[str]) -> None:
        """Print one stage of the job plan."""
        self._emit(f"  stage {index}: {', '.join(jobs)}")

    def print_job_start(self, name: str, runs_on: str) -> None:
        """Print job start message."""
        self._emit(f"\nJOB STARTED: {name} ({runs_on})")

    def print_step(self, job: str, name: str) -> None:
        """Print step start message."""
        self._emit(f"[{job}] STEP: {name}")

    def print_step_output(self, job: str, output: str) -> None:
        """Print captured step output (debug mode only)."""
        if self.debug and output.strip():
            self._emit(*(f"[{job}]   {line}" for line in output.rstrip().splitlines()))

    def print_success(self, name: str, duration: Optional[float] = None) -> None:
        """Print success message."""
        suffix = f" in {duration:.1f}s" if duration is not None else ""
        self._emit(f"[{name}] STATUS: success{suffix}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        is_job: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Job or step name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            is_job: If True, print "JOB FAILED", otherwise "STEP FAILED"
        """
        prefix = "JOB FAILED" if is_job else "STEP FAILED"
        lines = [f"{prefix}: {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if hint:
            lines.append(f"Hint: {hint}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # first line only outside debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            lines.append(f"Error: {error_line}")
        self._emit(*lines)

    def print_log_tail(self, job: str, tail: str) -> None:
        """Print the last lines of a failed step's output."""
        if tail.strip():
            self._emit(f"[{job}] --- output (tail) ---", *(f"[{job}]   {l}" for l in tail.splitlines()))

    def print_job_skipped(self, name: str, reason: str) -> None:
        """Print job skipped message."""
        self._emit(f"\nJOB SKIPPED: {name}", f"STATUS: skipped ({reason})")

    def print_results(self, results: Mapping[str, JobResult]) -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for name, result in results.items():
            line = f"  {name}: {result.status.value.upper()}"
            if result.status is not JobStatus.SUCCEEDED and result.reason:
                line += f" ({result.reason})"
            lines.append(line)
        self._emit(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {d}" for d in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
