"""Tyro CLI application entrypoint."""

from __future__ import annotations

from typing import Annotated

from rich.console import Console
from rich.markup import escape
import tyro

from turntable.cli import commands_check, commands_run
from turntable.errors import Interrupted, TurntableError


TopLevelCommand = Annotated[
    commands_run.RunCommand,
    tyro.conf.subcommand(name="run"),
] | Annotated[
    commands_check.CheckCommand,
    tyro.conf.subcommand(name="check"),
]


def dispatch(command: TopLevelCommand) -> int:
    """Dispatch parsed top-level command object and return its exit code."""

    if isinstance(command, commands_run.RunCommand):
        return commands_run.execute(command)
    if isinstance(command, commands_check.CheckCommand):
        return commands_check.execute(command)
    raise TypeError(f"Unsupported command type: {type(command).__name__}")


def run_guarded(command: TopLevelCommand, err_console: Console | None = None) -> int:
    """Run ``command``, turning classified errors into a labelled line and exit code."""

    err = err_console or Console(stderr=True, highlight=False)
    try:
        return dispatch(command)
    except TurntableError as exc:
        err.print(
            f"[bold red]error[/] ({type(exc).__name__}): {escape(str(exc))} "
            f"[dim](exit code {exc.exit_code})[/]"
        )
        return exc.exit_code
    except (KeyboardInterrupt, Interrupted):
        err.print(
            f"[bold red]interrupted[/]: resources released "
            f"[dim](exit code {Interrupted.exit_code})[/]"
        )
        return Interrupted.exit_code


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run requested command."""

    command = tyro.cli(TopLevelCommand, args=argv)
    code = run_guarded(command)
    if code:
        raise SystemExit(code)
