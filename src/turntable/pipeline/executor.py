"""Batch executor: drives each work item through the stage chain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import time
from typing import Any

from rich.console import Console

from turntable.config.schema import RunConfig
from turntable.errors import (
    CleanupFailure,
    Interrupted,
    SandboxCreationFailure,
    StageFailure,
    TurntableError,
)
from turntable.ingest.scanner import WorkItem, discover_work_items
from turntable.observability.logging import get_logger, log_event
from turntable.observability.progress import ProgressReporter, ProgressState
from turntable.pipeline.dag import default_stage_sequence
from turntable.pipeline.stage import ItemStatus, Stage, StageContext, StageDefinition
from turntable.sandbox.scope import ScopeManager
from turntable.storage.atomic import atomic_write_json
from turntable.tools.toolchain import Toolchain, prepare_toolchain


_LOGGER = get_logger("turntable.executor")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class ItemRun:
    """State machine record for one item: PENDING -> RUNNING -> DONE | ABORTED."""

    item: WorkItem
    status: ItemStatus = ItemStatus.PENDING
    current: Stage | None = None
    completed: list[Stage] = field(default_factory=list)
    published: list[Path] = field(default_factory=list)
    failed_stage: Stage | None = None
    error: str | None = None
    latency_seconds: float = 0.0

    def abort(self, stage: Stage | None, error: BaseException) -> None:
        self.status = ItemStatus.ABORTED
        self.failed_stage = stage
        self.error = f"{type(error).__name__}: {error}"

    def to_record(self) -> dict[str, Any]:
        return {
            "path": str(self.item.path),
            "status": self.status.value,
            "completed_stages": [stage.value for stage in self.completed],
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": self.error,
            "published": [str(path) for path in self.published],
            "latency_seconds": round(self.latency_seconds, 3),
        }


@dataclass(slots=True)
class BatchResult:
    """Outcome of one batch, reported at the end of the run."""

    root: Path
    discovered: int = 0
    planned: int = 0
    items: list[ItemRun] = field(default_factory=list)
    failures: list[TurntableError] = field(default_factory=list)
    cleanup_failures: list[CleanupFailure] = field(default_factory=list)
    scopes_opened: int = 0
    scopes_closed: int = 0
    interrupted: bool = False
    started_at: str = field(default_factory=_now)
    finished_at: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> list[ItemRun]:
        return [run for run in self.items if run.status is ItemStatus.DONE]

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return Interrupted.exit_code
        if self.failures:
            return self.failures[0].exit_code
        if self.cleanup_failures:
            return CleanupFailure.exit_code
        return 0

    @property
    def status(self) -> str:
        if self.interrupted:
            return "INTERRUPTED"
        if self.failures:
            return "FAILED" if not self.succeeded else "PARTIAL"
        return "SUCCEEDED"

    def to_record(self) -> dict[str, Any]:
        return {
            "schema": "turntable-run/v1",
            "status": self.status,
            "exit_code": self.exit_code,
            "root": str(self.root),
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "discovered": self.discovered,
            "planned": self.planned,
            "items": [run.to_record() for run in self.items],
            "failures": [f"{type(exc).__name__}: {exc}" for exc in self.failures],
            "cleanup_failures": [
                {"message": str(exc), "residual": exc.residual} for exc in self.cleanup_failures
            ],
            "scopes": {"opened": self.scopes_opened, "closed": self.scopes_closed},
        }


def _run_stage(run: ItemRun, definition: StageDefinition, ctx: StageContext) -> None:
    stage = definition.stage
    try:
        definition.runner(ctx)
    except StageFailure as exc:
        failure = exc.for_item(run.item)
        run.abort(stage, failure)
        raise failure
    except OSError as exc:
        failure = StageFailure(stage, f"{type(exc).__name__}: {exc}", run.item)
        run.abort(stage, failure)
        raise failure from exc
    except BaseException as exc:
        run.abort(stage, exc)
        raise


def process_item(
    run: ItemRun,
    *,
    config: RunConfig,
    tools: Toolchain,
    scopes: ScopeManager,
    stages: list[StageDefinition],
    reporter: ProgressReporter | None = None,
) -> ItemRun:
    """Run every stage for one item inside its own execution scope.

    The first failing stage aborts the item; no later stage runs and the
    scope is released before the error propagates.
    """

    item = run.item
    started = time.perf_counter()
    try:
        with scopes.scope(item) as scope:
            ctx = StageContext(item=item, scope=scope, config=config, tools=tools)
            run.status = ItemStatus.RUNNING
            for definition in stages:
                run.current = definition.stage
                if reporter is not None:
                    reporter.stage_started(definition.description, item.stem)
                log_event(_LOGGER, "stage_started", item=str(item.path), stage=definition.name)
                stage_started = time.perf_counter()
                try:
                    _run_stage(run, definition, ctx)
                except BaseException as exc:
                    log_event(
                        _LOGGER,
                        "stage_failed",
                        level=logging.ERROR,
                        item=str(item.path),
                        stage=definition.name,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                    raise
                run.completed.append(definition.stage)
                log_event(
                    _LOGGER,
                    "stage_finished",
                    item=str(item.path),
                    stage=definition.name,
                    latency_seconds=round(time.perf_counter() - stage_started, 3),
                )
            run.current = None
            run.published = list(ctx.published)
            run.status = ItemStatus.DONE
    except BaseException as exc:
        if run.status is not ItemStatus.ABORTED:
            # failed before any stage ran: scope acquisition or interruption
            run.abort(run.current, exc)
        raise
    finally:
        run.latency_seconds = time.perf_counter() - started
    return run


def _write_report(path: Path, result: BatchResult) -> None:
    try:
        atomic_write_json(path, result.to_record())
    except OSError as exc:
        log_event(
            _LOGGER,
            "report_write_failed",
            level=logging.ERROR,
            report=str(path),
            error=str(exc),
        )


def run_batch(
    config: RunConfig,
    tools: Toolchain,
    *,
    console: Console | None = None,
) -> BatchResult:
    """Discover work, validate tools, then process items one at a time.

    With ``on_item_failure="abort"`` the first item failure is raised after
    that item's scope is released. With ``"continue"`` item failures are
    collected on the result and the batch moves on.
    """

    root = config.discovery.root
    result = BatchResult(root=root)
    started = time.perf_counter()
    scopes: ScopeManager | None = None
    try:
        items = discover_work_items(root, config.discovery.pattern)
        result.discovered = len(items)
        prepare_toolchain(tools, config)

        stages = default_stage_sequence(config)
        scopes = ScopeManager(tools.docker, config)
        result.planned = 1 if config.debug else len(items)
        state = ProgressState(total=result.planned)
        reporter = ProgressReporter(state, console=console, verbose=config.verbose)
        log_event(
            _LOGGER,
            "batch_started",
            root=str(root),
            discovered=len(items),
            planned=result.planned,
            stages=[definition.name for definition in stages],
        )
        reporter.message(f"Found {len(items)} model files to process.")

        for index, item in enumerate(items, start=1):
            if config.debug and index > 1:
                reporter.message("Debug mode: processing only the first file.")
                break

            run = ItemRun(item=item)
            result.items.append(run)
            reporter.item_started(index, str(item.path))
            try:
                process_item(
                    run,
                    config=config,
                    tools=tools,
                    scopes=scopes,
                    stages=stages,
                    reporter=reporter,
                )
            except (StageFailure, SandboxCreationFailure) as exc:
                result.failures.append(exc)
                log_event(
                    _LOGGER,
                    "item_failed",
                    level=logging.ERROR,
                    item=str(item.path),
                    error=str(exc),
                )
                if config.on_item_failure == "abort":
                    raise
                reporter.item_finished()
                continue

            log_event(
                _LOGGER,
                "item_finished",
                item=str(item.path),
                published=[str(path) for path in run.published],
                latency_seconds=round(run.latency_seconds, 3),
            )
            reporter.item_finished()

        reporter.finished(
            f"Process completed: {len(result.succeeded)} succeeded, {len(result.failures)} failed."
        )
        return result
    except (KeyboardInterrupt, Interrupted):
        result.interrupted = True
        raise
    except TurntableError as exc:
        if exc not in result.failures:
            result.failures.append(exc)
        raise
    finally:
        if scopes is not None:
            result.cleanup_failures = list(scopes.cleanup_failures)
            result.scopes_opened = scopes.opened
            result.scopes_closed = scopes.closed
        result.finished_at = _now()
        result.elapsed_seconds = time.perf_counter() - started
        log_event(
            _LOGGER,
            "batch_finished",
            level=logging.INFO if result.exit_code == 0 else logging.WARNING,
            status=result.status,
            exit_code=result.exit_code,
            processed=len(result.items),
            cleanup_failures=len(result.cleanup_failures),
        )
        if config.report is not None:
            _write_report(config.report, result)
