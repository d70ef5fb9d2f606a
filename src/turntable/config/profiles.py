"""Built-in render profiles for common preview sizes."""

from __future__ import annotations

from dataclasses import dataclass, replace

from turntable.config.schema import RunConfig
from turntable.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ProfileSpec:
    """Declarative render and encode defaults for a named profile."""

    name: str
    description: str
    width: int
    height: int
    frame_count: int
    scale_width: int


_PROFILES: dict[str, ProfileSpec] = {
    "hd": ProfileSpec(
        name="hd",
        description="Full HD frames downscaled to a 1024px wide GIF.",
        width=1920,
        height=1080,
        frame_count=60,
        scale_width=1024,
    ),
    "draft": ProfileSpec(
        name="draft",
        description="Small, fast renders for checking a batch before a full run.",
        width=640,
        height=360,
        frame_count=30,
        scale_width=480,
    ),
    "square": ProfileSpec(
        name="square",
        description="Square frames for thumbnails and catalogue grids.",
        width=1080,
        height=1080,
        frame_count=60,
        scale_width=720,
    ),
}


def available_profiles() -> dict[str, ProfileSpec]:
    """Return built-in profiles by name."""

    return dict(_PROFILES)


def resolve_profile(name: str) -> ProfileSpec:
    key = name.strip().lower()
    profile = _PROFILES.get(key)
    if profile is None:
        known = ", ".join(sorted(_PROFILES))
        raise ConfigurationError(f"Unknown profile '{name}'. Available profiles: {known}")
    return profile


def apply_profile(config: RunConfig, profile_name: str) -> RunConfig:
    """Return ``config`` with the named profile's sizes applied."""

    profile = resolve_profile(profile_name)
    render = replace(
        config.render,
        width=profile.width,
        height=profile.height,
        frame_count=profile.frame_count,
    )
    encode = replace(config.encode, scale_width=profile.scale_width)
    return replace(config, render=render, encode=encode)
