"""Load run configs from Python references and CLI overrides."""

from __future__ import annotations

from dataclasses import fields, replace
import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

from turntable.config.profiles import apply_profile
from turntable.config.schema import DiscoveryConfig, RunConfig
from turntable.errors import ConfigurationError

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _load_module(module_ref: str) -> ModuleType:
    path_candidate = Path(module_ref).expanduser()
    if path_candidate.exists():
        module_name = f"_turntable_cfg_{path_candidate.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path_candidate)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Could not load module from path: {path_candidate}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    try:
        return importlib.import_module(module_ref)
    except ImportError as exc:
        raise ConfigurationError(f"Could not import config module {module_ref!r}: {exc}") from exc


def _resolve_attr(obj: Any, attr_path: str) -> Any:
    value = obj
    for part in attr_path.split("."):
        try:
            value = getattr(value, part)
        except AttributeError as exc:
            raise ConfigurationError(f"Config attribute not found: {attr_path}") from exc
    return value


def load_object(reference: str) -> Any:
    """Load object by `module_or_path:attribute` reference."""

    if ":" not in reference:
        raise ConfigurationError("Config reference must be in form 'module_or_path:attribute'.")
    module_ref, attr = reference.split(":", maxsplit=1)
    module = _load_module(module_ref)
    return _resolve_attr(module, attr)


def apply_overrides(config: RunConfig, overrides: dict[str, Any]) -> RunConfig:
    """Return a copy of ``config`` with dotted-key overrides applied.

    Keys name either a top-level field (``debug``) or a field of a nested
    section (``render.width``). ``None`` values are ignored so unset CLI
    options leave the loaded config alone.
    """

    top: dict[str, Any] = {}
    nested: dict[str, dict[str, Any]] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        section, _, name = key.partition(".")
        if name:
            nested.setdefault(section, {})[name] = value
        else:
            top[section] = value

    known = {item.name for item in fields(RunConfig)}
    for section, values in nested.items():
        if section not in known:
            raise ConfigurationError(f"Unknown config section: {section}")
        current = getattr(config, section)
        section_fields = {item.name for item in fields(current)}
        unknown = sorted(set(values) - section_fields)
        if unknown:
            raise ConfigurationError(f"Unknown {section} option(s): {', '.join(unknown)}")
        top[section] = replace(current, **values)

    unknown = sorted(set(top) - known)
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
    return replace(config, **top)


def validate_config(config: RunConfig) -> RunConfig:
    """Reject configs the pipeline cannot run with."""

    render = config.render
    encode = config.encode
    positive = {
        "render.width": render.width,
        "render.height": render.height,
        "render.frame_count": render.frame_count,
        "encode.frame_rate": encode.frame_rate,
        "encode.scale_width": encode.scale_width,
        "encode.crop_frames": encode.crop_frames,
        "encode.output_rate": encode.output_rate,
    }
    for name, value in positive.items():
        if value <= 0:
            raise ConfigurationError(f"{name} must be > 0, got {value}")
    if any(not 0 <= channel <= 255 for channel in render.color):
        raise ConfigurationError(f"render.color channels must be within 0-255, got {render.color}")
    if not render.binary:
        raise ConfigurationError("render.binary must name the OpenSCAD executable")
    if config.on_item_failure not in ("abort", "continue"):
        raise ConfigurationError(
            f"on_item_failure must be 'abort' or 'continue', got {config.on_item_failure!r}"
        )
    if config.tool_timeout is not None and config.tool_timeout <= 0:
        raise ConfigurationError(f"tool_timeout must be > 0, got {config.tool_timeout}")
    if config.log_level.upper() not in _LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level: {config.log_level}")
    if not config.discovery.pattern:
        raise ConfigurationError("discovery.pattern must not be empty")
    return config


def load_run_config(
    config_ref: str | None,
    root: Path,
    profile: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> RunConfig:
    """Resolve the immutable RunConfig for one batch.

    Precedence, lowest first: defaults or the referenced config object, the
    named profile, then explicit overrides. The CLI root always wins.
    """

    if config_ref is None:
        config = RunConfig()
    else:
        loaded = load_object(config_ref)
        if not isinstance(loaded, RunConfig):
            type_name = type(loaded).__name__
            raise ConfigurationError(
                f"Config reference must resolve to RunConfig, got {type_name}."
            )
        config = loaded

    if profile is not None:
        config = apply_profile(config, profile)

    discovery = DiscoveryConfig(root=root.expanduser().resolve(), pattern=config.discovery.pattern)
    config = replace(config, discovery=discovery)
    if overrides:
        config = apply_overrides(config, overrides)
    return validate_config(config)
