import logging
from pathlib import Path
import signal

import pytest

from turntable.errors import CleanupFailure, Interrupted, SandboxCreationFailure
from turntable.ingest.scanner import WorkItem
from turntable.sandbox.scope import ScopeManager, sandbox_name, scope_token
from turntable.sandbox.signals import interrupt_signals


@pytest.fixture
def item(models: Path) -> WorkItem:
    return WorkItem(path=(models / "brackets" / "part.stl").resolve())


def test_same_stem_in_different_directories_gets_distinct_sandboxes(models: Path):
    first = WorkItem(path=models / "brackets" / "part.stl")
    second = WorkItem(path=models / "gears" / "part.stl")

    assert scope_token(first) != scope_token(second)
    assert sandbox_name("input", first) != sandbox_name("input", second)
    assert sandbox_name("input", first).startswith("turntable-input-part-")


def test_scope_is_released_on_normal_exit(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    scopes = ScopeManager(tools.docker, config)

    with scopes.scope(item) as scope:
        assert scope.scratch.is_dir()
        assert len(tools.docker.volumes) == 2

    assert scope.released
    assert not scope.scratch.exists()
    assert tools.docker.volumes == {}
    assert tools.docker.containers == {}
    assert (scopes.opened, scopes.closed) == (1, 1)


def test_scope_is_released_when_block_raises(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    scopes = ScopeManager(tools.docker, config)

    with pytest.raises(KeyboardInterrupt):
        with scopes.scope(item) as scope:
            raise KeyboardInterrupt

    assert not scope.scratch.exists()
    assert tools.docker.volumes == {}
    assert (scopes.opened, scopes.closed) == (1, 1)


def test_close_is_exactly_once(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    scopes = ScopeManager(tools.docker, config)

    scope = scopes.open_scope(item)
    scopes.close_scope(scope)
    scopes.close_scope(scope)

    assert scopes.closed == 1
    assert len(tools.docker.removed) == 2


def test_stale_sandbox_is_refused(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    tools.docker.create_volume(sandbox_name("output", item))
    scopes = ScopeManager(tools.docker, config)

    with pytest.raises(SandboxCreationFailure, match="already exists"):
        scopes.open_scope(item)

    # the input sandbox acquired before the collision is rolled back
    assert list(tools.docker.volumes) == [sandbox_name("output", item)]
    assert tools.docker.containers == {}
    assert scopes.opened == 0


def test_stale_sandbox_is_reclaimed_on_request(item, make_config, make_tools):
    config = make_config(reclaim_stale_sandboxes=True)
    tools = make_tools(config)
    stale = sandbox_name("input", item)
    tools.docker.create_volume(stale)
    scopes = ScopeManager(tools.docker, config)

    with scopes.scope(item):
        assert stale in tools.docker.volumes

    assert stale in tools.docker.removed
    assert tools.docker.volumes == {}


def test_cleanup_failure_is_recorded_without_masking(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    leaked = sandbox_name("output", item)
    tools.docker.fail_remove.add(leaked)
    scopes = ScopeManager(tools.docker, config)

    with pytest.raises(RuntimeError, match="stage blew up"):
        with scopes.scope(item):
            raise RuntimeError("stage blew up")

    assert scopes.closed == 1
    [failure] = scopes.cleanup_failures
    assert isinstance(failure, CleanupFailure)
    assert f"volume:{leaked}" in failure.residual
    assert f"container:{leaked}" in failure.residual


def test_close_scope_raises_cleanup_failure_directly(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    scopes = ScopeManager(tools.docker, config)
    scope = scopes.open_scope(item)
    tools.docker.fail_remove.add(scope.input.name)

    with pytest.raises(CleanupFailure) as excinfo:
        scopes.close_scope(scope)

    assert excinfo.value.exit_code == 7
    assert f"volume:{scope.input.name}" in excinfo.value.residual


@pytest.mark.skipif(not hasattr(signal, "SIGTERM"), reason="needs SIGTERM")
def test_sigterm_unwinds_as_interrupted(item, make_config, make_tools):
    config = make_config()
    tools = make_tools(config)
    scopes = ScopeManager(tools.docker, config)
    before = signal.getsignal(signal.SIGTERM)

    with pytest.raises(Interrupted) as excinfo:
        with interrupt_signals():
            with scopes.scope(item):
                signal.raise_signal(signal.SIGTERM)

    assert excinfo.value.signum == signal.SIGTERM
    assert tools.docker.volumes == {}
    assert (scopes.opened, scopes.closed) == (1, 1)
    assert signal.getsignal(signal.SIGTERM) == before


class _RecordedEvents(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def test_interrupt_while_starting_anchor_removes_volume(item, make_config, make_tools, monkeypatch):
    config = make_config()
    tools = make_tools(config)

    def _interrupted(name, volume, mount, image):
        raise KeyboardInterrupt

    monkeypatch.setattr(tools.docker, "start_anchor", _interrupted)
    scopes = ScopeManager(tools.docker, config)

    with pytest.raises(KeyboardInterrupt):
        scopes.open_scope(item)

    assert tools.docker.volumes == {}
    assert scopes.opened == 0


def test_anchor_created_but_not_started_is_removed(item, make_config, make_tools, monkeypatch):
    config = make_config()
    tools = make_tools(config)

    def _half_started(name, volume, mount, image):
        tools.docker.containers[name] = (volume, mount)
        raise SandboxCreationFailure(f"container {name} failed to start")

    monkeypatch.setattr(tools.docker, "start_anchor", _half_started)
    scopes = ScopeManager(tools.docker, config)

    with pytest.raises(SandboxCreationFailure):
        scopes.open_scope(item)

    assert tools.docker.volumes == {}
    assert tools.docker.containers == {}


def test_failed_anchor_rollback_logs_residual(item, make_config, make_tools, monkeypatch):
    config = make_config()
    tools = make_tools(config)
    name = sandbox_name("input", item)
    tools.docker.fail_remove.add(name)

    def _half_started(name, volume, mount, image):
        tools.docker.containers[name] = (volume, mount)
        raise SandboxCreationFailure(f"container {name} failed to start")

    monkeypatch.setattr(tools.docker, "start_anchor", _half_started)
    scopes = ScopeManager(tools.docker, config)
    recorded = _RecordedEvents()
    logger = logging.getLogger("turntable.sandbox")
    logger.addHandler(recorded)

    try:
        with pytest.raises(SandboxCreationFailure):
            scopes.open_scope(item)
    finally:
        logger.removeHandler(recorded)

    residuals = [
        record.residual
        for record in recorded.records
        if getattr(record, "event", None) == "cleanup_failed"
    ]
    assert residuals == [[f"container:{name}", f"volume:{name}"]]
