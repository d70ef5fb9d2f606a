"""Example turntable run config.

Use with `turntable run ./models --config example_config.py:RUN`.
"""

from pathlib import Path

from turntable.config.schema import (
    DiscoveryConfig,
    EncodeConfig,
    RenderConfig,
    RunConfig,
    ToolImages,
)


RUN = RunConfig(
    discovery=DiscoveryConfig(
        root=Path("."),
        pattern="*.stl",
    ),
    images=ToolImages(
        origin_detector="spuder/stl2origin:latest",
        renderer="openscad/openscad:2021.01",
        transcoder="linuxserver/ffmpeg:version-4.4-cli",
        anchor="busybox",
    ),
    render=RenderConfig(
        width=1280,
        height=720,
        frame_count=60,
        color=(68, 127, 244),
        color_scheme="Starnight",
        binary="/Applications/OpenSCAD.app/Contents/MacOS/OpenSCAD",
    ),
    encode=EncodeConfig(
        frame_rate=60,
        scale_width=1024,
        crop_frames=60,
        output_rate=30,
        video=True,
    ),
    keep_gif=True,
    on_item_failure="continue",
    tool_timeout=900.0,
)
