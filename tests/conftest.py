from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import re
import shutil
import subprocess
from typing import Sequence

import pytest

from turntable.config.schema import DiscoveryConfig, RunConfig
from turntable.errors import SandboxCreationFailure, StageFailure
from turntable.pipeline.stage import Stage
from turntable.tools.openscad import Renderer
from turntable.tools.runner import CommandRunner
from turntable.tools.toolchain import Toolchain


CENTERED_OFFSETS = "XTRANS=5\nYTRANS=-2.5\nZTRANS=0\nXMID=5\nYMID=-2.5\nZMID=0\n"
SHIFTED_OFFSETS = "export XTRANS=10\nexport YTRANS=0\nexport ZTRANS=3\nXMID=2\nYMID=0\nZMID=1\n"

_TRANSLATE = re.compile(r'translate\(\[([^\]]*)\]\)import\("([^"]*)"\);')
_SCENE_IMPORT = re.compile(r'import\("([^"]*)"\)')


class FakeDocker:
    """In-memory stand-in for DockerClient: volumes are directories under ``base``."""

    def __init__(self, base: Path, events: list[tuple[str, Stage]]) -> None:
        self.base = base
        self.events = events
        self.volumes: dict[str, Path] = {}
        self.containers: dict[str, tuple[str, str]] = {}
        self.created: list[str] = []
        self.removed: list[str] = []
        self.pulled: list[str] = []
        self.offsets_text = SHIFTED_OFFSETS
        self.omit_offsets = False
        self.fail_stages: dict[Stage, int] = {}
        self.fail_remove: set[str] = set()
        self.interrupt_stage: Stage | None = None

    # provider operations
    def version(self) -> str:
        return "Docker version 24.0.7"

    def image_present(self, image: str) -> bool:
        return True

    def pull(self, image: str) -> None:
        self.pulled.append(image)

    def volume_exists(self, name: str) -> bool:
        return name in self.volumes

    def create_volume(self, name: str) -> None:
        if name in self.volumes:
            raise SandboxCreationFailure(f"volume {name} exists")
        path = self.base / name
        path.mkdir(parents=True)
        self.volumes[name] = path
        self.created.append(name)

    def start_anchor(self, name: str, volume: str, mount: str, image: str) -> str:
        if name in self.containers:
            raise SandboxCreationFailure(f"container {name} exists")
        self.containers[name] = (volume, mount)
        return f"cid-{name}"

    def remove_container(self, name: str) -> bool:
        if name in self.fail_remove:
            return False
        self.containers.pop(name, None)
        return True

    def remove_volume(self, name: str) -> bool:
        if name in self.fail_remove or name not in self.volumes:
            return False
        if any(volume == name for volume, _ in self.containers.values()):
            return False
        shutil.rmtree(self.volumes.pop(name))
        self.removed.append(name)
        return True

    # stage operations
    def _container_path(self, container: str, path: str) -> Path:
        name = container.removeprefix("cid-")
        volume, mount = self.containers[name]
        assert path.startswith(mount + "/"), path
        return self.volumes[volume] / path[len(mount) + 1 :]

    def _mounted_path(self, volumes: dict[str, str], path: str) -> Path:
        for volume, mount in volumes.items():
            if path.startswith(mount + "/"):
                return self.volumes[volume] / path[len(mount) + 1 :]
        raise AssertionError(f"{path} is not under any mount")

    def _maybe_fail(self, stage: Stage) -> None:
        if self.interrupt_stage is stage:
            raise KeyboardInterrupt
        remaining = self.fail_stages.get(stage, 0)
        if remaining:
            self.fail_stages[stage] = remaining - 1
            raise StageFailure(stage, "docker exited with status 1: injected failure")

    def copy_in(self, container: str, src: Path, dest: str, *, stage: Stage) -> None:
        self.events.append(("docker", stage))
        self._maybe_fail(stage)
        shutil.copyfile(src, self._container_path(container, dest))

    def copy_out(self, container: str, src: str, dest: Path, *, stage: Stage) -> None:
        self.events.append(("docker", stage))
        source = self._container_path(container, src)
        if not source.exists():
            raise StageFailure(stage, f"docker exited with status 1: no such file {src}")
        shutil.copyfile(source, dest)

    def run(
        self,
        image: str,
        args: list[str],
        *,
        stage: Stage,
        volumes: dict[str, str],
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        self.events.append(("docker", stage))
        self._maybe_fail(stage)
        if "stl2origin" in image:
            if not self.omit_offsets:
                target = self._mounted_path(volumes, (env or {})["OUTPUT_BASH_FILE"])
                target.write_text(self.offsets_text, encoding="utf-8")
        elif "openscad" in image:
            match = _TRANSLATE.search(args[args.index("-D") + 1])
            assert match is not None
            source = self._mounted_path(volumes, match.group(2))
            output = self._mounted_path(volumes, args[args.index("-o") + 1])
            shift = [float(part) for part in match.group(1).split(",")]
            if shift == [0.0, 0.0, 0.0]:
                shutil.copyfile(source, output)
            else:
                output.write_bytes(source.read_bytes() + f"\nshift {shift}".encode())
        elif "ffmpeg" in image:
            output = self._mounted_path(volumes, args[-1])
            if "-pattern_type" in args:
                pattern = args[args.index("-i") + 1]
                frames = sorted(self._mounted_path(volumes, pattern).parent.glob(Path(pattern).name))
                assert frames, f"no frames for {pattern}"
                output.write_bytes(b"GIF89a" + b"\x00" * len(frames))
            else:
                source = self._mounted_path(volumes, args[args.index("-i") + 1])
                output.write_bytes(source.read_bytes() + b"+")
        return subprocess.CompletedProcess(args, 0, "", "")

    def file_present(self, volume: str, mount: str, path: str, *, stage: Stage, image: str) -> bool:
        target = self.volumes[volume] / path[len(mount) + 1 :]
        return target.exists() and target.stat().st_size > 0


class FakeRunner(CommandRunner):
    """Simulates the host OpenSCAD binary."""

    def __init__(self, events: list[tuple[str, Stage]], year: int = 2021) -> None:
        super().__init__(timeout=None)
        self.events = events
        self.year = year
        self.frames_written = 0
        self.render_calls = 0
        self.rendered_models: list[bytes] = []

    def run(self, argv: Sequence[str], *, stage: Stage) -> subprocess.CompletedProcess[str]:
        self.events.append(("host", stage))
        return super().run(argv, stage=stage)

    def invoke(self, argv: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        command = [str(part) for part in argv]
        if command[1:] == ["-v"]:
            return subprocess.CompletedProcess(command, 0, "", f"OpenSCAD version {self.year}.01\n")
        if "--animate" in command:
            self.render_calls += 1
            scene = next(part for part in command if part.startswith("color("))
            self.rendered_models.append(Path(_SCENE_IMPORT.search(scene).group(1)).read_bytes())
            output = Path(command[command.index("-o") + 1])
            count = int(command[command.index("--animate") + 1])
            for index in range(count):
                output.with_name(f"{output.stem}{index:05d}.png").write_bytes(b"\x89PNG frame")
            self.frames_written += count
            return subprocess.CompletedProcess(command, 0, "", "")
        raise AssertionError(f"unexpected host command: {command}")


class FakeTools:
    def __init__(self, base: Path, config: RunConfig, year: int = 2021) -> None:
        self.events: list[tuple[str, Stage]] = []
        sandboxes = base / "docker-volumes"
        sandboxes.mkdir(parents=True, exist_ok=True)
        self.docker = FakeDocker(sandboxes, self.events)
        self.runner = FakeRunner(self.events, year=year)
        self.toolchain = Toolchain(
            runner=self.runner,
            docker=self.docker,
            renderer=Renderer(self.runner, config.render),
        )

    def stage_order(self) -> list[Stage]:
        order: list[Stage] = []
        for _, stage in self.events:
            if not order or order[-1] is not stage:
                order.append(stage)
        return order


@pytest.fixture
def models(tmp_path: Path) -> Path:
    root = tmp_path / "models"
    (root / "brackets").mkdir(parents=True)
    (root / "gears").mkdir(parents=True)
    (root / "brackets" / "part.stl").write_bytes(b"solid bracket\nendsolid bracket\n")
    (root / "gears" / "part.stl").write_bytes(b"solid gear\nendsolid gear\n")
    (root / "gears" / "notes.txt").write_text("not a model", encoding="utf-8")
    return root


@pytest.fixture
def make_config(models: Path):
    def _make(**changes) -> RunConfig:
        config = RunConfig(discovery=DiscoveryConfig(root=models))
        return replace(config, **changes)

    return _make


@pytest.fixture
def make_tools(tmp_path: Path):
    def _make(config: RunConfig, year: int = 2021) -> FakeTools:
        return FakeTools(tmp_path, config, year=year)

    return _make
