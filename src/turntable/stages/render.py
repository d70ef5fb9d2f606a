"""Render the centred model as a full-rotation frame sequence."""

from __future__ import annotations

import logging
import shutil

from turntable.errors import StageFailure
from turntable.observability.logging import get_logger, log_event
from turntable.pipeline.stage import Stage, StageContext


_LOGGER = get_logger("turntable.stages.render")


def _copy_frames(ctx: StageContext) -> None:
    for index, frame in enumerate(ctx.frames):
        target = ctx.item.directory / f"{ctx.item.stem}-{index:05d}.png"
        try:
            shutil.copy2(frame, target)
        except OSError as exc:
            raise StageFailure(Stage.RENDER_FRAMES, f"cannot copy frame to {target}: {exc}") from exc


def run(ctx: StageContext) -> None:
    if ctx.centered_model is None:
        raise StageFailure(Stage.RENDER_FRAMES, "no centred model to render")

    prefix = ctx.scope.scratch / ctx.scope.frame_prefix
    frames = ctx.tools.renderer.render_animation(ctx.centered_model, prefix)
    if not frames:
        raise StageFailure(Stage.RENDER_FRAMES, f"renderer produced no frames matching {prefix.name}*.png")

    expected = ctx.config.render.frame_count
    if len(frames) != expected:
        log_event(
            _LOGGER,
            "frame_count_mismatch",
            level=logging.WARNING,
            item=str(ctx.item.path),
            expected=expected,
            rendered=len(frames),
        )
    ctx.frames = frames
    if ctx.config.copy_frames:
        _copy_frames(ctx)
