"""Write a copy of the model translated so its bounding box is centred."""

from __future__ import annotations

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext
from turntable.stages.common import CENTERED_NAME, SOURCE_NAME, require_file
from turntable.tools.openscad import centering_args


def run(ctx: StageContext) -> None:
    if ctx.offsets is None:
        raise StageFailure(Stage.CENTER, "no offsets available from origin detection")

    scope = ctx.scope
    docker = ctx.tools.docker
    docker.run(
        ctx.config.images.renderer,
        centering_args(
            ctx.offsets,
            scope.input.path(SOURCE_NAME),
            scope.output.path(CENTERED_NAME),
        ),
        stage=Stage.CENTER,
        volumes=scope.volumes,
    )

    local = scope.scratch / CENTERED_NAME
    docker.copy_out(
        scope.output.container_id,
        scope.output.path(CENTERED_NAME),
        local,
        stage=Stage.CENTER,
    )
    ctx.centered_model = require_file(local, Stage.CENTER)
