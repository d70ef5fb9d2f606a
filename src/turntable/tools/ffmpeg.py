"""Transcoder collaborator: ffmpeg argument builders for the GIF and MOV steps."""

from __future__ import annotations

from turntable.config.schema import EncodeConfig


def assemble_gif_args(config: EncodeConfig, frame_glob: str, output: str) -> list[str]:
    """Frames matched by ``frame_glob`` (lexical order) into one looping GIF."""

    return [
        "-y",
        "-framerate",
        str(config.frame_rate),
        "-pattern_type",
        "glob",
        "-i",
        frame_glob,
        "-vf",
        f"scale={config.scale_width}:-1,transpose=1",
        output,
    ]


def crop_gif_args(config: EncodeConfig, source: str, output: str) -> list[str]:
    """Keep the first ``crop_frames`` frames and re-time to ``output_rate``."""

    return [
        "-y",
        "-i",
        source,
        "-vf",
        f"select='lt(n\\,{config.crop_frames})',setpts=N/FRAME_RATE/TB",
        "-r",
        str(config.output_rate),
        output,
    ]


def video_args(source: str, output: str) -> list[str]:
    # yuv420p needs even dimensions
    return [
        "-y",
        "-i",
        source,
        "-movflags",
        "faststart",
        "-vf",
        "scale=trunc(iw/2)*2:trunc(ih/2)*2",
        "-pix_fmt",
        "yuv420p",
        output,
    ]
