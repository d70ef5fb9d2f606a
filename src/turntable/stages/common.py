"""Helpers shared by stage runners."""

from __future__ import annotations

from pathlib import Path

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext

SOURCE_NAME = "source.stl"
OFFSETS_NAME = "offsets.sh"
CENTERED_NAME = "centered.stl"
GIF_NAME = "animation.gif"
CROPPED_NAME = "animation_cropped.gif"
VIDEO_NAME = "animation.mov"


def require_file(path: Path, stage: Stage) -> Path:
    """Return ``path`` if it is a non-empty file, else fail ``stage``."""

    try:
        size = path.stat().st_size
    except OSError as exc:
        raise StageFailure(stage, f"expected artifact missing: {path}") from exc
    if size == 0:
        raise StageFailure(stage, f"expected artifact is empty: {path}")
    return path


def require_in_output(ctx: StageContext, filename: str, stage: Stage) -> None:
    """Fail ``stage`` unless ``filename`` was written into the output sandbox."""

    sandbox = ctx.scope.output
    present = ctx.tools.docker.file_present(
        sandbox.name,
        sandbox.mount,
        sandbox.path(filename),
        stage=stage,
        image=ctx.config.images.anchor,
    )
    if not present:
        raise StageFailure(stage, f"expected {filename} in sandbox {sandbox.name} was not produced")
