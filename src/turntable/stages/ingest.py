"""Copy the raw model into the input sandbox."""

from __future__ import annotations

from turntable.errors import StageFailure
from turntable.pipeline.stage import Stage, StageContext
from turntable.stages.common import SOURCE_NAME


def run(ctx: StageContext) -> None:
    if not ctx.item.path.is_file():
        raise StageFailure(Stage.INGEST, f"input file disappeared: {ctx.item.path}")
    sandbox = ctx.scope.input
    ctx.tools.docker.copy_in(
        sandbox.container_id,
        ctx.item.path,
        sandbox.path(SOURCE_NAME),
        stage=Stage.INGEST,
    )
