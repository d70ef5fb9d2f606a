"""Pipeline stage interfaces and per-item context."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from turntable.config.schema import RunConfig
    from turntable.ingest.scanner import WorkItem
    from turntable.sandbox.scope import ExecutionScope
    from turntable.tools.toolchain import Toolchain
    from turntable.tools.origin import OffsetVector


class Stage(str, Enum):
    """Fixed per-item stages, in execution order."""

    INGEST = "ingest"
    DETECT_ORIGIN = "detect_origin"
    CENTER = "center"
    RENDER_FRAMES = "render_frames"
    ENCODE = "encode"
    CROP = "crop"
    TRANSCODE = "transcode"
    PUBLISH = "publish"


class ItemStatus(str, Enum):
    """Terminal and non-terminal states of one item's state machine."""

    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(slots=True)
class StageContext:
    """Artifacts handed from one stage to the next for a single item."""

    item: WorkItem
    scope: ExecutionScope
    config: RunConfig
    tools: Toolchain
    offsets: OffsetVector | None = None
    centered_model: Path | None = None
    frames: list[Path] = field(default_factory=list)
    published: list[Path] = field(default_factory=list)


class StageRunner(Protocol):
    """Call signature every stage runner must implement."""

    def __call__(self, ctx: StageContext) -> None:
        ...


@dataclass(frozen=True, slots=True)
class StageDefinition:
    """Declarative stage metadata and execution hook."""

    stage: Stage
    description: str
    runner: StageRunner

    @property
    def name(self) -> str:
        return self.stage.value
