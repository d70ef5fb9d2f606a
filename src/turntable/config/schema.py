"""Dataclass-based configuration schema for turntable."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

FailurePolicy = Literal["abort", "continue"]


@dataclass(frozen=True, slots=True)
class DiscoveryConfig:
    """Where to look for model files."""

    root: Path = Path(".")
    pattern: str = "*.stl"


@dataclass(frozen=True, slots=True)
class ToolImages:
    """Container images for the dockerised collaborators."""

    origin_detector: str = "spuder/stl2origin:latest"
    renderer: str = "openscad/openscad:2021.01"
    transcoder: str = "linuxserver/ffmpeg:version-4.4-cli"
    anchor: str = "busybox"

    def pull_list(self) -> list[str]:
        return [self.origin_detector, self.transcoder, self.renderer, self.anchor]


@dataclass(frozen=True, slots=True)
class RenderConfig:
    """Frame rendering options for the host OpenSCAD binary."""

    width: int = 1920
    height: int = 1080
    frame_count: int = 60
    tilt: float = 60.0
    camera_distance: float = 1000.0
    field_of_view: float = 10.0
    color: tuple[int, int, int] = (68, 127, 244)
    color_scheme: str = "Starnight"
    binary: str = "openscad"
    min_version_year: int = 2021


@dataclass(frozen=True, slots=True)
class EncodeConfig:
    """GIF assembly, crop and video transcode options."""

    frame_rate: int = 60
    scale_width: int = 1024
    crop_frames: int = 60
    output_rate: int = 30
    video: bool = True


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Top-level run configuration, resolved once and never mutated."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    images: ToolImages = field(default_factory=ToolImages)
    render: RenderConfig = field(default_factory=RenderConfig)
    encode: EncodeConfig = field(default_factory=EncodeConfig)
    debug: bool = False
    verbose: bool = False
    keep_gif: bool = False
    copy_frames: bool = False
    pull_images: bool = True
    reclaim_stale_sandboxes: bool = False
    on_item_failure: FailurePolicy = "abort"
    tool_timeout: float | None = None
    log_level: str = "WARNING"
    report: Path | None = None
