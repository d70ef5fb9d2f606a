"""Pipeline stage ordering."""

from __future__ import annotations

from turntable.config.schema import RunConfig
from turntable.pipeline.stage import Stage, StageDefinition
from turntable.stages import center, encode, ingest, origin, publish, render


def default_stage_sequence(config: RunConfig) -> list[StageDefinition]:
    """Return the per-item stage chain; transcode only runs when video is enabled."""

    stages = [
        StageDefinition(
            stage=Stage.INGEST,
            description="Copying model into input sandbox",
            runner=ingest.run,
        ),
        StageDefinition(
            stage=Stage.DETECT_ORIGIN,
            description="Detecting offset from origin",
            runner=origin.run,
        ),
        StageDefinition(
            stage=Stage.CENTER,
            description="Centering model at origin",
            runner=center.run,
        ),
        StageDefinition(
            stage=Stage.RENDER_FRAMES,
            description="Rendering 360 degree frames",
            runner=render.run,
        ),
        StageDefinition(
            stage=Stage.ENCODE,
            description="Assembling frames into GIF",
            runner=encode.encode,
        ),
        StageDefinition(
            stage=Stage.CROP,
            description="Cropping and re-timing GIF",
            runner=encode.crop,
        ),
    ]
    if config.encode.video:
        stages.append(
            StageDefinition(
                stage=Stage.TRANSCODE,
                description="Converting GIF to MOV",
                runner=encode.transcode,
            )
        )
    stages.append(
        StageDefinition(
            stage=Stage.PUBLISH,
            description="Publishing outputs",
            runner=publish.run,
        )
    )
    return stages
