"""Copy the finished animation and video next to the source model."""

from __future__ import annotations

from pathlib import Path

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext
from turntable.stages.common import CROPPED_NAME, VIDEO_NAME, require_file
from turntable.storage.atomic import staged_file


def _publish(ctx: StageContext, filename: str, dest: Path) -> Path:
    output = ctx.scope.output
    try:
        with staged_file(dest, ctx.scope.token) as staging:
            ctx.tools.docker.copy_out(
                output.container_id,
                output.path(filename),
                staging,
                stage=Stage.PUBLISH,
            )
            require_file(staging, Stage.PUBLISH)
    except OSError as exc:
        raise StageFailure(Stage.PUBLISH, f"cannot publish {dest}: {exc}") from exc
    return dest


def run(ctx: StageContext) -> None:
    item = ctx.item
    gif = _publish(ctx, CROPPED_NAME, item.gif_path)
    ctx.published.append(gif)

    if not ctx.config.encode.video:
        return

    mov = _publish(ctx, VIDEO_NAME, item.mov_path)
    ctx.published.append(mov)
    if ctx.config.keep_gif:
        return
    # the GIF only goes once the MOV is in place
    require_file(mov, Stage.PUBLISH)
    try:
        gif.unlink()
    except OSError as exc:
        raise StageFailure(Stage.PUBLISH, f"cannot remove intermediate {gif}: {exc}") from exc
    ctx.published.remove(gif)
