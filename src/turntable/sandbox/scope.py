"""Per-item execution scopes: scratch directory plus input/output sandboxes."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from hashlib import sha1
import logging
from pathlib import Path
import re
import shutil
import tempfile
from typing import Iterator

from turntable.config.schema import RunConfig
from turntable.errors import CleanupFailure, SandboxCreationFailure
from turntable.ingest.scanner import WorkItem
from turntable.observability.logging import get_logger, log_event
from turntable.tools.docker import DockerClient


_LOGGER = get_logger("turntable.sandbox")

_ROLES = (("input", "/input"), ("output", "/output"))
_SLUG_PATTERN = re.compile(r"[^a-z0-9_.-]+")
_SLUG_MAX = 40


def _slug(stem: str) -> str:
    slug = _SLUG_PATTERN.sub("-", stem.lower()).strip("-.")
    return slug[:_SLUG_MAX].rstrip("-.") or "model"


def scope_token(item: WorkItem) -> str:
    """Short digest of the item's absolute path; separates same-named files."""

    return sha1(str(item.path).encode("utf-8")).hexdigest()[:10]


def sandbox_name(role: str, item: WorkItem) -> str:
    return f"turntable-{role}-{_slug(item.stem)}-{scope_token(item)}"


@dataclass(slots=True)
class Sandbox:
    """A docker volume and the stopped container used to copy through it."""

    role: str
    name: str
    mount: str
    container_id: str

    def path(self, filename: str) -> str:
        return f"{self.mount}/{filename}"


@dataclass(slots=True)
class ExecutionScope:
    """Resources owned by one item for the duration of its pipeline run."""

    item: WorkItem
    token: str
    scratch: Path
    input: Sandbox
    output: Sandbox
    released: bool = False

    @property
    def frame_prefix(self) -> str:
        return f"frame-{self.token}-"

    @property
    def volumes(self) -> dict[str, str]:
        return {self.input.name: self.input.mount, self.output.name: self.output.mount}

    def resource_names(self) -> list[str]:
        return [str(self.scratch), self.input.name, self.output.name]


class ScopeManager:
    """Opens execution scopes and guarantees each is released exactly once.

    ``opened`` and ``closed`` count successful opens and releases; cleanup
    failures seen by :meth:`scope` are kept in ``cleanup_failures``.
    """

    def __init__(self, docker: DockerClient, config: RunConfig) -> None:
        self.docker = docker
        self.anchor_image = config.images.anchor
        self.reclaim_stale = config.reclaim_stale_sandboxes
        self.opened = 0
        self.closed = 0
        self.cleanup_failures: list[CleanupFailure] = []

    def _reclaim(self, name: str) -> None:
        log_event(_LOGGER, "sandbox_reclaimed", level=logging.WARNING, sandbox=name)
        self.docker.remove_container(name)
        if not self.docker.remove_volume(name):
            raise SandboxCreationFailure(f"Stale sandbox {name} could not be removed")

    def _create_sandbox(self, role: str, mount: str, item: WorkItem) -> Sandbox:
        name = sandbox_name(role, item)
        if self.docker.volume_exists(name):
            if not self.reclaim_stale:
                raise SandboxCreationFailure(
                    f"Sandbox {name} already exists, probably left by an interrupted run. "
                    "Remove it or pass --reclaim-stale-sandboxes."
                )
            self._reclaim(name)
        elif self.reclaim_stale:
            self.docker.remove_container(name)

        self.docker.create_volume(name)
        try:
            container_id = self.docker.start_anchor(name, name, mount, self.anchor_image)
        except BaseException:
            # not yet in the caller's acquired list, so undo it here
            residual = self._discard(name)
            if residual:
                log_event(
                    _LOGGER,
                    "cleanup_failed",
                    level=logging.WARNING,
                    item=str(item.path),
                    residual=residual,
                )
            raise
        return Sandbox(role=role, name=name, mount=mount, container_id=container_id)

    def _discard(self, name: str) -> list[str]:
        """Remove the anchor container, then its volume; return what is left."""

        residual: list[str] = []
        if not self.docker.remove_container(name):
            residual.append(f"container:{name}")
        if not self.docker.remove_volume(name):
            residual.append(f"volume:{name}")
        return residual

    def _teardown(self, scratch: Path, sandboxes: list[Sandbox]) -> list[str]:
        """Attempt every release step and return whatever could not be removed."""

        residual: list[str] = []
        try:
            shutil.rmtree(scratch)
        except FileNotFoundError:
            pass
        except OSError:
            residual.append(f"directory:{scratch}")
        for sandbox in reversed(sandboxes):
            residual.extend(self._discard(sandbox.name))
        return residual

    def open_scope(self, item: WorkItem) -> ExecutionScope:
        token = scope_token(item)
        try:
            scratch = Path(tempfile.mkdtemp(prefix=f"turntable-{token}-"))
        except OSError as exc:
            raise SandboxCreationFailure(f"Cannot create scratch directory: {exc}") from exc

        acquired: list[Sandbox] = []
        try:
            for role, mount in _ROLES:
                acquired.append(self._create_sandbox(role, mount, item))
        except BaseException:
            residual = self._teardown(scratch, acquired)
            if residual:
                log_event(
                    _LOGGER,
                    "cleanup_failed",
                    level=logging.WARNING,
                    item=str(item.path),
                    residual=residual,
                )
            raise

        scope = ExecutionScope(
            item=item,
            token=token,
            scratch=scratch,
            input=acquired[0],
            output=acquired[1],
        )
        self.opened += 1
        log_event(
            _LOGGER,
            "scope_opened",
            item=str(item.path),
            scratch=str(scratch),
            sandboxes=[sandbox.name for sandbox in acquired],
        )
        return scope

    def close_scope(self, scope: ExecutionScope) -> None:
        """Release everything the scope owns. A second call is a no-op."""

        if scope.released:
            return
        scope.released = True
        self.closed += 1
        residual = self._teardown(scope.scratch, [scope.input, scope.output])
        log_event(
            _LOGGER,
            "scope_closed",
            item=str(scope.item.path),
            residual=residual,
        )
        if residual:
            raise CleanupFailure(f"Cleanup incomplete for {scope.item.path}", residual)

    @contextmanager
    def scope(self, item: WorkItem) -> Iterator[ExecutionScope]:
        """Open a scope for ``item`` and release it however the block exits.

        A CleanupFailure during release is logged and recorded, never raised,
        so it cannot replace an exception already leaving the block.
        """

        scope = self.open_scope(item)
        try:
            yield scope
        finally:
            try:
                self.close_scope(scope)
            except CleanupFailure as exc:
                self.cleanup_failures.append(exc)
                log_event(
                    _LOGGER,
                    "cleanup_failed",
                    level=logging.WARNING,
                    item=str(item.path),
                    residual=exc.residual,
                )
