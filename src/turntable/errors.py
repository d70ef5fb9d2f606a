"""Error taxonomy for turntable runs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from turntable.ingest.scanner import WorkItem
    from turntable.pipeline.stage import Stage


class TurntableError(Exception):
    """Base class for every classified failure. Carries the process exit code."""

    exit_code = 1


class ConfigurationError(TurntableError):
    """Invalid option, missing tool binary, or unusable environment."""

    exit_code = 2


class NoInputFound(TurntableError):
    """Discovery found no eligible model files."""

    exit_code = 3


class SandboxCreationFailure(TurntableError):
    """An isolated sandbox could not be created for an item."""

    exit_code = 4


class StageFailure(TurntableError):
    """A pipeline stage failed: collaborator error or missing artifact."""

    exit_code = 5

    def __init__(self, stage: Stage, cause: str, item: WorkItem | None = None) -> None:
        self.stage = stage
        self.cause = cause
        self.item = item
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = f" ({self.item.path})" if self.item is not None else ""
        return f"stage {self.stage.value} failed{where}: {self.cause}"

    def for_item(self, item: WorkItem) -> StageFailure:
        """Return a copy bound to ``item`` when the raiser did not know it."""

        if self.item is not None:
            return self
        bound = StageFailure(self.stage, self.cause, item)
        bound.__cause__ = self.__cause__
        return bound


class IncompatibleToolVersion(TurntableError):
    """A collaborator reported a version below the supported minimum."""

    exit_code = 6

    def __init__(self, tool: str, found: int | None, required: int) -> None:
        self.tool = tool
        self.found = found
        self.required = required
        shown = "unknown" if found is None else str(found)
        super().__init__(f"{tool} {required} or later is required, found {shown}")


class CleanupFailure(TurntableError):
    """Teardown of a scope left resources behind. Reported, never retried."""

    exit_code = 7

    def __init__(self, message: str, residual: list[str]) -> None:
        self.residual = list(residual)
        joined = ", ".join(self.residual) or "none"
        super().__init__(f"{message}; residual resources: {joined}")


class Interrupted(BaseException):
    """Raised from a signal handler so scope release runs before exit."""

    exit_code = 130

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"interrupted by signal {signum}")
