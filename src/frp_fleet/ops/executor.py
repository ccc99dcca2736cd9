"""Bounded-concurrency task runner with per-target failure isolation.

The executor runs one operation per target on a pool of at most
``max_parallel`` worker threads. A worker picks up the next queued target as
soon as it finishes the previous one, so slow targets never hold back the
rest of the batch. Every target ends up in exactly one of ``succeeded``,
``failed`` or ``skipped``.
"""

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..common.exceptions import ExecutorSetupError
from ..common.logging import get_logger

logger = get_logger(__name__)

MAX_PARALLEL_LIMIT = 256

# Called with (completed, total) after each task finishes
ProgressCallback = Callable[[int, int], None]
Operation = Callable[[str], Any]


class TaskStatus(str, Enum):
    """Lifecycle of one task within a batch."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class OperationTask:
    """In-memory state of one target's operation. Discarded after the batch."""

    target: str
    operation: str
    status: TaskStatus = TaskStatus.PENDING
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None


class TaskFailure(BaseModel):
    """A failed target and the raw error text of its operation."""

    target: str
    error: str


class BatchResult(BaseModel):
    """Aggregated outcome of one executor batch."""

    operation: str
    total: int = Field(ge=0)
    max_parallel: int = Field(ge=1)
    succeeded: list[str] = Field(default_factory=list)
    failed: list[TaskFailure] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0.0)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def failed_targets(self) -> list[str]:
        return [f.target for f in self.failed]

    @property
    def ok(self) -> bool:
        """True when every target succeeded."""
        return not self.failed and not self.skipped

    def error_for(self, target: str) -> str | None:
        for failure in self.failed:
            if failure.target == target:
                return failure.error
        return None

    def summary(self) -> str:
        text = f"Bulk {self.operation} complete: {self.success_count} succeeded, {self.failure_count} failed"
        if self.skipped:
            text += f", {len(self.skipped)} skipped"
        return text


class OperationExecutor:
    """Runs an operation over many targets with bounded parallelism.

    Example:
        >>> executor = OperationExecutor(max_parallel=4)
        >>> result = executor.execute(["a", "b"], supervisor.restart, operation="restart")
        >>> result.success_count
        2
    """

    def __init__(self, max_parallel: int = 10):
        self.max_parallel = self._validate_parallel(max_parallel)

    @staticmethod
    def _validate_parallel(max_parallel: int) -> int:
        if isinstance(max_parallel, bool) or not isinstance(max_parallel, int):
            raise ExecutorSetupError(f"max_parallel must be an integer, got {max_parallel!r}")
        if not (1 <= max_parallel <= MAX_PARALLEL_LIMIT):
            raise ExecutorSetupError(
                f"max_parallel must be between 1 and {MAX_PARALLEL_LIMIT}"
            )
        return max_parallel

    def execute(
        self,
        targets: Iterable[str],
        op: Operation,
        *,
        operation: str = "operation",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Run ``op(target)`` for every target.

        An operation fails if it raises, or returns ``False``. Any other
        return value counts as success. Once ``cancel`` is set, targets that
        have not started are marked skipped; running ones finish normally.

        Args:
            targets: Unique target identifiers
            op: Callable invoked once per target from a worker thread
            operation: Name used in logs and in the result
            max_parallel: Overrides the executor's default parallelism
            progress: Called as ``progress(completed, total)`` from the
                calling thread after every task; keep it cheap
            cancel: Event that stops admission of further targets

        Returns:
            Complete BatchResult, even if most targets failed

        Raises:
            ExecutorSetupError: If targets are empty or duplicated, or
                max_parallel is out of range
        """
        target_list = list(targets)
        if not target_list:
            raise ExecutorSetupError(f"No targets provided for bulk {operation}")
        if len(set(target_list)) != len(target_list):
            raise ExecutorSetupError(f"Duplicate targets provided for bulk {operation}")
        limit = self._validate_parallel(
            self.max_parallel if max_parallel is None else max_parallel
        )

        total = len(target_list)
        tasks = [OperationTask(target=t, operation=operation) for t in target_list]
        logger.info(
            f"Starting bulk {operation} operation",
            total=total,
            max_parallel=limit,
        )

        started = time.monotonic()
        completed = 0
        with ThreadPoolExecutor(
            max_workers=min(limit, total), thread_name_prefix=f"fleet-{operation}"
        ) as pool:
            futures = {pool.submit(self._run_task, task, op, cancel): task for task in tasks}
            for future in as_completed(futures):
                future.result()
                completed += 1
                if progress is not None:
                    self._report_progress(progress, completed, total)

        result = self._collect(tasks, operation, limit, time.monotonic() - started)
        log = logger.warning if result.failed else logger.info
        log(
            result.summary(),
            succeeded=result.success_count,
            failed=result.failure_count,
            skipped=len(result.skipped),
            duration=round(result.duration, 3),
        )
        for failure in result.failed:
            logger.debug("Target failed", target=failure.target, error=failure.error)
        return result

    def _run_task(
        self, task: OperationTask, op: Operation, cancel: threading.Event | None
    ) -> None:
        """Run one task, recording every outcome on the task itself."""
        if cancel is not None and cancel.is_set():
            task.status = TaskStatus.SKIPPED
            return

        task.status = TaskStatus.RUNNING
        task.started_at = datetime.now(UTC)
        try:
            outcome = op(task.target)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e) or type(e).__name__
        else:
            if outcome is False:
                task.status = TaskStatus.FAILED
                task.error = f"{task.operation} reported failure"
            else:
                task.status = TaskStatus.SUCCESS
        finally:
            task.finished_at = datetime.now(UTC)

    @staticmethod
    def _report_progress(progress: ProgressCallback, completed: int, total: int) -> None:
        try:
            progress(completed, total)
        except Exception as e:
            logger.warning("Progress callback failed", error=str(e))

    @staticmethod
    def _collect(
        tasks: list[OperationTask], operation: str, limit: int, duration: float
    ) -> BatchResult:
        result = BatchResult(
            operation=operation,
            total=len(tasks),
            max_parallel=limit,
            duration=duration,
        )
        for task in tasks:
            if task.status is TaskStatus.SUCCESS:
                result.succeeded.append(task.target)
            elif task.status is TaskStatus.FAILED:
                result.failed.append(TaskFailure(target=task.target, error=task.error or "unknown error"))
            else:
                result.skipped.append(task.target)
        return result
