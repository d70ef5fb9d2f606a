"""`turntable check` command."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from turntable.config.loader import load_run_config
from turntable.observability.logging import configure_logging
from turntable.tools.toolchain import Toolchain, build_toolchain, prepare_toolchain


@dataclass(slots=True)
class CheckCommand:
    """Validate docker, collaborator images and the OpenSCAD binary without rendering."""

    config: str | None = None
    renderer: str | None = None
    pull: bool = False
    """Pull images instead of only checking they are present."""


def execute(
    command: CheckCommand,
    *,
    tools: Toolchain | None = None,
    console: Console | None = None,
) -> int:
    config = load_run_config(
        config_ref=command.config,
        root=Path("."),
        overrides={"render.binary": command.renderer, "pull_images": command.pull},
    )
    configure_logging(config.log_level)
    if tools is None:
        tools = build_toolchain(config)
    prepare_toolchain(tools, config)

    table = Table(title="turntable toolchain")
    table.add_column("collaborator")
    table.add_column("detail")
    table.add_row("docker", escape(tools.docker.version()))
    table.add_row("origin detector", escape(config.images.origin_detector))
    table.add_row("renderer (centering)", escape(config.images.renderer))
    table.add_row(
        "renderer (frames)",
        escape(f"{tools.renderer.binary} ({tools.renderer.require_supported()})"),
    )
    table.add_row("transcoder", escape(config.images.transcoder))
    (console or Console(highlight=False)).print(table)
    return 0
