"""Renderer collaborator: OpenSCAD centering and turntable animation."""

from __future__ import annotations

from pathlib import Path
import re

from turntable.config.schema import RenderConfig
from turntable.errors import ConfigurationError, IncompatibleToolVersion
from turntable.pipeline.stage import Stage
from turntable.tools.origin import OffsetVector
from turntable.tools.runner import CommandError, CommandRunner

_YEAR_PATTERN = re.compile(r"(\d{4})")


def parse_version_year(text: str) -> int | None:
    """Extract the release year from ``openscad -v`` output."""

    match = _YEAR_PATTERN.search(text)
    if match is None:
        return None
    return int(match.group(1))


def scad_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_number(value: float) -> str:
    return repr(float(value))


def centering_expression(offsets: OffsetVector, model_path: str) -> str:
    """OpenSCAD statement importing ``model_path`` shifted to the origin."""

    dx, dy, dz = (format_number(component) for component in offsets.translation)
    return f"translate([{dx},{dy},{dz}])import({scad_string(model_path)});"


def centering_args(offsets: OffsetVector, model_path: str, output_path: str) -> list[str]:
    """Arguments for the containerised ``openscad`` that writes a centered copy."""

    return [
        "openscad",
        "/dev/null",
        "-D",
        centering_expression(offsets, model_path),
        "-o",
        output_path,
    ]


def animation_args(config: RenderConfig, binary: str, model: Path, output: Path) -> list[str]:
    """Arguments for a full-rotation animation render on the host."""

    red, green, blue = config.color
    scene = f"color([{red}/255, {green}/255, {blue}/255]) import({scad_string(str(model))});"
    return [
        binary,
        "/dev/null",
        "-D",
        f"$vpr = [0, {format_number(config.tilt)}, 360 * $t];",
        "-D",
        f"$vpd = {format_number(config.camera_distance)};",
        "-D",
        f"$vpf = {format_number(config.field_of_view)};",
        "-o",
        str(output),
        "-D",
        scene,
        f"--imgsize={config.width},{config.height}",
        "--projection=perspective",
        "--viewall",
        "--camera",
        "0,0,0,0,0,360 * $t,0",
        "--animate",
        str(config.frame_count),
        "--preview",
        "--colorscheme",
        config.color_scheme,
        "--quiet",
    ]


class Renderer:
    """Host OpenSCAD binary, version-checked once and reused for every item."""

    def __init__(self, runner: CommandRunner, config: RenderConfig) -> None:
        self.runner = runner
        self.config = config
        self._version_year: int | None = None
        self._probed = False

    @property
    def binary(self) -> str:
        return self.config.binary

    def probe(self) -> int | None:
        """Query ``openscad -v`` and cache the reported year."""

        try:
            proc = self.runner.invoke([self.binary, "-v"], check=False)
        except CommandError as exc:
            raise ConfigurationError(
                f"OpenSCAD binary {self.binary!r} is not usable: {exc.reason}"
            ) from exc
        self._version_year = parse_version_year(f"{proc.stdout}\n{proc.stderr}")
        self._probed = True
        return self._version_year

    def require_supported(self) -> int:
        """Raise IncompatibleToolVersion unless the binary meets the minimum year."""

        if not self._probed:
            self.probe()
        year = self._version_year
        if year is None or year < self.config.min_version_year:
            raise IncompatibleToolVersion("OpenSCAD", year, self.config.min_version_year)
        return year

    def render_animation(self, model: Path, output_prefix: Path) -> list[Path]:
        """Render the frame sequence and return the frames in lexical order."""

        self.require_supported()
        output = output_prefix.with_name(f"{output_prefix.name}.png")
        self.runner.run(
            animation_args(self.config, self.binary, model, output),
            stage=Stage.RENDER_FRAMES,
        )
        return sorted(output_prefix.parent.glob(f"{output_prefix.name}*.png"))
