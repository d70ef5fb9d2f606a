"""Thin wrapper over the docker CLI: volumes, anchor containers, copies, runs."""

from __future__ import annotations

from pathlib import Path
import subprocess

from turntable.errors import ConfigurationError, SandboxCreationFailure, StageFailure
from turntable.pipeline.stage import Stage
from turntable.tools.runner import CommandError, CommandRunner


class DockerClient:
    """Docker operations used by sandboxes and containerised stages.

    Sandbox-management calls raise SandboxCreationFailure or report success
    as a bool; stage calls raise StageFailure for the stage that issued them.
    """

    def __init__(self, runner: CommandRunner, executable: str = "docker") -> None:
        self.runner = runner
        self.executable = executable

    def _cmd(self, *args: str) -> list[str]:
        return [self.executable, *args]

    def version(self) -> str:
        try:
            proc = self.runner.invoke(self._cmd("--version"))
        except CommandError as exc:
            raise ConfigurationError(
                f"Docker is not available ({exc.reason}). Install docker before running turntable."
            ) from exc
        return proc.stdout.strip()

    def image_present(self, image: str) -> bool:
        try:
            proc = self.runner.invoke(self._cmd("image", "inspect", image), check=False)
        except CommandError:
            return False
        return proc.returncode == 0

    def pull(self, image: str) -> None:
        try:
            self.runner.invoke(self._cmd("pull", image))
        except CommandError as exc:
            raise ConfigurationError(f"Error pulling {image}: {exc.reason}") from exc

    def volume_exists(self, name: str) -> bool:
        try:
            proc = self.runner.invoke(self._cmd("volume", "inspect", name), check=False)
        except CommandError as exc:
            raise SandboxCreationFailure(f"Cannot inspect volume {name}: {exc.reason}") from exc
        return proc.returncode == 0

    def create_volume(self, name: str) -> None:
        try:
            self.runner.invoke(self._cmd("volume", "create", "--name", name))
        except CommandError as exc:
            raise SandboxCreationFailure(f"Error creating volume {name}: {exc.reason}") from exc

    def start_anchor(self, name: str, volume: str, mount: str, image: str) -> str:
        """Start a short-lived container holding ``volume`` so files can be copied in and out."""

        try:
            proc = self.runner.invoke(
                self._cmd("run", "-d", "--name", name, "-v", f"{volume}:{mount}", image, "true")
            )
        except CommandError as exc:
            raise SandboxCreationFailure(
                f"Error creating container {name} for volume {volume}: {exc.reason}"
            ) from exc
        container_id = proc.stdout.strip()
        if not container_id:
            raise SandboxCreationFailure(f"docker run returned no container id for {name}")
        return container_id

    def remove_container(self, name: str) -> bool:
        try:
            self.runner.invoke(self._cmd("rm", "-f", name))
        except CommandError:
            return False
        return True

    def remove_volume(self, name: str) -> bool:
        try:
            self.runner.invoke(self._cmd("volume", "rm", name))
        except CommandError:
            return False
        return True

    def copy_in(self, container: str, src: Path, dest: str, *, stage: Stage) -> None:
        self.runner.run(self._cmd("cp", str(src), f"{container}:{dest}"), stage=stage)

    def copy_out(self, container: str, src: str, dest: Path, *, stage: Stage) -> None:
        self.runner.run(self._cmd("cp", f"{container}:{src}", str(dest)), stage=stage)

    def run(
        self,
        image: str,
        args: list[str],
        *,
        stage: Stage,
        volumes: dict[str, str],
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run ``image`` to completion with the given volume mounts."""

        argv = self._cmd("run", "--rm")
        for key, value in (env or {}).items():
            argv.extend(["-e", f"{key}={value}"])
        for volume, mount in volumes.items():
            argv.extend(["-v", f"{volume}:{mount}"])
        argv.append(image)
        argv.extend(args)
        return self.runner.run(argv, stage=stage)

    def file_present(self, volume: str, mount: str, path: str, *, stage: Stage, image: str) -> bool:
        """Return True when ``path`` exists and is non-empty inside ``volume``."""

        argv = self._cmd("run", "--rm", "-v", f"{volume}:{mount}", image, "test", "-s", path)
        try:
            proc = self.runner.invoke(argv, check=False)
        except CommandError as exc:
            raise StageFailure(stage, f"cannot inspect {path}: {exc.reason}") from exc
        return proc.returncode == 0
