"""Collaborator toolchain assembly and startup validation."""

from __future__ import annotations

from dataclasses import dataclass

from turntable.config.schema import RunConfig
from turntable.errors import ConfigurationError
from turntable.observability.logging import get_logger, log_event
from turntable.tools.docker import DockerClient
from turntable.tools.openscad import Renderer
from turntable.tools.runner import CommandRunner


_LOGGER = get_logger("turntable.tools")


@dataclass(slots=True)
class Toolchain:
    """Everything a stage needs to reach the outside world."""

    runner: CommandRunner
    docker: DockerClient
    renderer: Renderer


def build_toolchain(config: RunConfig) -> Toolchain:
    runner = CommandRunner(timeout=config.tool_timeout)
    return Toolchain(
        runner=runner,
        docker=DockerClient(runner),
        renderer=Renderer(runner, config.render),
    )


def prepare_toolchain(tools: Toolchain, config: RunConfig) -> None:
    """Validate collaborators once, before any item is processed.

    Docker must answer, images must be present (pulled when requested) and
    the host renderer must meet the minimum version.
    """

    docker_version = tools.docker.version()
    for image in config.images.pull_list():
        if config.pull_images:
            tools.docker.pull(image)
        elif not tools.docker.image_present(image):
            raise ConfigurationError(f"Image {image} is not present locally and pulling is disabled")
    year = tools.renderer.require_supported()
    log_event(
        _LOGGER,
        "toolchain_ready",
        docker=docker_version,
        renderer=tools.renderer.binary,
        renderer_year=year,
    )
