"""Scan a directory tree and build the ordered list of work items."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from turntable.errors import ConfigurationError, NoInputFound


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One discovered model file and the outputs published beside it."""

    path: Path

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def gif_path(self) -> Path:
        return self.directory / f"{self.stem}.gif"

    @property
    def mov_path(self) -> Path:
        return self.directory / f"{self.stem}.mov"


def discover_work_items(root: Path, pattern: str = "*.stl") -> list[WorkItem]:
    """Return work items for every file under ``root`` matching ``pattern``.

    Items are sorted by absolute path so the order is stable for the run.
    """

    if not root.exists():
        raise ConfigurationError(f"Input root does not exist: {root}")
    if not root.is_dir():
        raise ConfigurationError(f"Input root must be a directory: {root}")

    found = sorted(
        candidate.resolve()
        for candidate in root.rglob(pattern)
        if candidate.is_file()
    )
    if not found:
        raise NoInputFound(f"No files matching {pattern!r} found under {root}")
    return [WorkItem(path=path) for path in found]
