"""ffmpeg steps: assemble the GIF, crop it, and optionally transcode to MOV."""

from __future__ import annotations

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext
from turntable.stages.common import CROPPED_NAME, GIF_NAME, VIDEO_NAME, require_in_output
from turntable.tools import ffmpeg


def _transcoder(ctx: StageContext, args: list[str], stage: Stage) -> None:
    ctx.tools.docker.run(
        ctx.config.images.transcoder,
        args,
        stage=stage,
        volumes=ctx.scope.volumes,
    )


def encode(ctx: StageContext) -> None:
    if not ctx.frames:
        raise StageFailure(Stage.ENCODE, "no rendered frames to encode")

    sandbox = ctx.scope.input
    # renderer ran on the host; frames cross into the transcoder's sandbox here
    for frame in ctx.frames:
        ctx.tools.docker.copy_in(
            sandbox.container_id,
            frame,
            sandbox.path(frame.name),
            stage=Stage.ENCODE,
        )

    frame_glob = sandbox.path(f"{ctx.scope.frame_prefix}*.png")
    _transcoder(
        ctx,
        ffmpeg.assemble_gif_args(ctx.config.encode, frame_glob, ctx.scope.output.path(GIF_NAME)),
        Stage.ENCODE,
    )
    require_in_output(ctx, GIF_NAME, Stage.ENCODE)


def crop(ctx: StageContext) -> None:
    output = ctx.scope.output
    _transcoder(
        ctx,
        ffmpeg.crop_gif_args(ctx.config.encode, output.path(GIF_NAME), output.path(CROPPED_NAME)),
        Stage.CROP,
    )
    require_in_output(ctx, CROPPED_NAME, Stage.CROP)


def transcode(ctx: StageContext) -> None:
    output = ctx.scope.output
    _transcoder(
        ctx,
        ffmpeg.video_args(output.path(CROPPED_NAME), output.path(VIDEO_NAME)),
        Stage.TRANSCODE,
    )
    require_in_output(ctx, VIDEO_NAME, Stage.TRANSCODE)
