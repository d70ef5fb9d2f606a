"""Blocking command execution with failure classification."""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Sequence

from turntable.errors import StageFailure
from turntable.observability.logging import get_logger, log_event
from turntable.pipeline.stage import Stage


_LOGGER = get_logger("turntable.tools")

_TAIL_LINES = 5


def _tail(text: str | None) -> str:
    if not text:
        return ""
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return " | ".join(lines[-_TAIL_LINES:])


class CommandError(RuntimeError):
    """A command could not be run to a successful exit.

    Never escapes the tools layer unclassified: callers translate it into
    StageFailure, SandboxCreationFailure or ConfigurationError.
    """

    def __init__(self, argv: Sequence[str], reason: str, returncode: int | None = None) -> None:
        self.argv = list(argv)
        self.reason = reason
        self.returncode = returncode
        super().__init__(reason)


class CommandRunner:
    """Run collaborator commands as blocking subprocesses.

    ``timeout`` bounds every invocation; on timeout or interruption
    ``subprocess.run`` kills the child before the exception propagates.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def invoke(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        command = [str(part) for part in argv]
        started = time.perf_counter()
        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise CommandError(command, f"executable not found: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(command, f"{command[0]} timed out after {self.timeout}s") from exc

        log_event(
            _LOGGER,
            "command_finished",
            level=logging.DEBUG,
            argv=command,
            returncode=proc.returncode,
            latency_seconds=round(time.perf_counter() - started, 3),
        )
        if check and proc.returncode != 0:
            detail = _tail(proc.stderr) or _tail(proc.stdout)
            reason = f"{command[0]} exited with status {proc.returncode}"
            if detail:
                reason = f"{reason}: {detail}"
            raise CommandError(command, reason, proc.returncode)
        return proc

    def run(
        self,
        argv: Sequence[str],
        *,
        stage: Stage,
    ) -> subprocess.CompletedProcess[str]:
        """Invoke a stage's collaborator; any failure becomes a StageFailure."""

        try:
            return self.invoke(argv)
        except CommandError as exc:
            raise StageFailure(stage, exc.reason) from exc
