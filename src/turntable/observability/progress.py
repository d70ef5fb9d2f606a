"""Batch progress state, ETA estimation and console rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Callable

from rich.console import Console
from rich.markup import escape

BAR_WIDTH = 40


def format_duration(seconds: float) -> str:
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


@dataclass(slots=True)
class ProgressState:
    """Items processed out of total, owned and advanced by the batch loop."""

    total: int
    processed: int = 0
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(init=False)

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError(f"total must be >= 0, got {self.total}")
        self.started_at = self.clock()

    @property
    def finished(self) -> bool:
        return self.processed >= self.total

    def elapsed(self) -> float:
        return max(0.0, self.clock() - self.started_at)

    def advance(self) -> int:
        if self.processed >= self.total:
            raise ValueError(f"cannot advance past total={self.total}")
        self.processed += 1
        return self.processed

    def eta_seconds(self) -> float | None:
        """Estimated seconds remaining; None until the first item completes."""

        if self.total == 0 or self.processed == 0:
            return None
        per_item = self.elapsed() / self.processed
        return max(0.0, per_item * (self.total - self.processed))

    def filled_width(self, width: int = BAR_WIDTH) -> int:
        if self.total == 0:
            return 0
        return self.processed * width // self.total

    def bar(self, width: int = BAR_WIDTH) -> str:
        filled = self.filled_width(width)
        return "[" + "#" * filled + " " * (width - filled) + "]"

    def eta_text(self) -> str:
        if self.finished and self.total > 0:
            return "done"
        eta = self.eta_seconds()
        if eta is None:
            return "ETA calculating"
        return f"ETA {format_duration(eta)}"

    def line(self, width: int = BAR_WIDTH) -> str:
        return f"{self.bar(width)} {self.processed}/{self.total} {self.eta_text()}"


class ProgressReporter:
    """Writes progress and per-stage lines to the console."""

    def __init__(self, state: ProgressState, console: Console | None = None, verbose: bool = False) -> None:
        self.state = state
        self.console = console or Console(highlight=False)
        self.verbose = verbose

    def message(self, text: str) -> None:
        self.console.print(f"{escape(self.state.bar())} {self.state.processed}/{self.state.total} - {escape(text)}")

    def item_started(self, index: int, path: str) -> None:
        if self.verbose:
            self.message(f"Processing {path} ({index}/{self.state.total})")

    def stage_started(self, description: str, stem: str) -> None:
        if self.verbose:
            self.message(f"{description}: {stem}")

    def item_finished(self) -> None:
        self.state.advance()
        self.console.print(escape(self.state.line()))

    def finished(self, summary: str) -> None:
        self.console.print(f"{escape(self.state.line())} - {escape(summary)}")
