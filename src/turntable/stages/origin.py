"""Detect the model's offset from the origin."""

from __future__ import annotations

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext
from turntable.stages.common import OFFSETS_NAME, SOURCE_NAME
from turntable.tools.origin import read_offset_script


def run(ctx: StageContext) -> None:
    scope = ctx.scope
    docker = ctx.tools.docker
    docker.run(
        ctx.config.images.origin_detector,
        [scope.input.path(SOURCE_NAME)],
        stage=Stage.DETECT_ORIGIN,
        volumes=scope.volumes,
        env={
            "OUTPUT_STDOUT": "true",
            "OUTPUT_BASH_FILE": scope.output.path(OFFSETS_NAME),
        },
    )

    local = scope.scratch / OFFSETS_NAME
    try:
        docker.copy_out(
            scope.output.container_id,
            scope.output.path(OFFSETS_NAME),
            local,
            stage=Stage.DETECT_ORIGIN,
        )
    except StageFailure as exc:
        raise StageFailure(
            Stage.DETECT_ORIGIN,
            f"detector exited cleanly but wrote no {OFFSETS_NAME}: {exc.cause}",
        ) from exc
    ctx.offsets = read_offset_script(local)
