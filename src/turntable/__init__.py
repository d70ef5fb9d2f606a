"""turntable package entrypoint."""

from turntable.cli.app import main as _cli_main


def main() -> None:
    """Run the turntable CLI."""
    _cli_main()
