"""`turntable run` command."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal

from rich.console import Console
from rich.markup import escape
import tyro

from turntable.config.loader import load_run_config
from turntable.observability.logging import configure_logging
from turntable.pipeline.executor import BatchResult, run_batch
from turntable.sandbox.signals import interrupt_signals
from turntable.tools.toolchain import Toolchain, build_toolchain


@dataclass(slots=True)
class RunCommand:
    """Render a rotating GIF (and MOV) preview for every model under ROOT."""

    root: Annotated[Path, tyro.conf.Positional] = Path(".")
    config: str | None = None
    """Python reference `module_or_path:attribute` resolving to a RunConfig."""
    profile: str | None = None
    debug: bool = False
    """Process only the first discovered model."""
    verbose: bool = False
    """Print a line for every stage in addition to the progress bar."""
    keep_gif: bool = False
    """Keep the GIF next to the MOV instead of deleting it."""
    video: bool = True
    copy_frames: bool = False
    width: int | None = None
    height: int | None = None
    frames: int | None = None
    frame_rate: int | None = None
    pattern: str | None = None
    renderer: str | None = None
    """Path to the host OpenSCAD binary."""
    on_item_failure: Literal["abort", "continue"] | None = None
    tool_timeout: float | None = None
    """Seconds before a collaborator command is killed."""
    reclaim_stale_sandboxes: bool = False
    pull: bool = True
    report: Path | None = None
    log_level: str | None = None


def _overrides(command: RunCommand) -> dict[str, Any]:
    return {
        "debug": True if command.debug else None,
        "verbose": True if command.verbose else None,
        "keep_gif": True if command.keep_gif else None,
        "copy_frames": True if command.copy_frames else None,
        "reclaim_stale_sandboxes": True if command.reclaim_stale_sandboxes else None,
        "pull_images": False if not command.pull else None,
        "encode.video": False if not command.video else None,
        "discovery.pattern": command.pattern,
        "render.width": command.width,
        "render.height": command.height,
        "render.frame_count": command.frames,
        "render.binary": command.renderer,
        "encode.frame_rate": command.frame_rate,
        "on_item_failure": command.on_item_failure,
        "tool_timeout": command.tool_timeout,
        "report": command.report,
        "log_level": command.log_level,
    }


def _print_failures(result: BatchResult, console: Console) -> None:
    for exc in result.failures:
        console.print(f"[bold red]failed[/]: {escape(str(exc))}")
    for exc in result.cleanup_failures:
        console.print(f"[bold yellow]cleanup[/]: {escape(str(exc))}")
    if result.failures or result.cleanup_failures:
        console.print(
            f"[bold red]error[/]: {len(result.failures)} item failure(s), "
            f"{len(result.cleanup_failures)} cleanup failure(s) [dim](exit code {result.exit_code})[/]"
        )


def execute(
    command: RunCommand,
    *,
    tools: Toolchain | None = None,
    console: Console | None = None,
) -> int:
    config = load_run_config(
        config_ref=command.config,
        root=command.root,
        profile=command.profile,
        overrides=_overrides(command),
    )
    configure_logging(config.log_level)
    if tools is None:
        tools = build_toolchain(config)

    with interrupt_signals():
        result = run_batch(config, tools, console=console)

    _print_failures(result, console or Console(stderr=True, highlight=False))
    return result.exit_code
