"""Fleet-wide start/stop/restart/reload built on the operation executor."""

import threading
import time
from collections.abc import Callable
from enum import Enum

import structlog
from pydantic import BaseModel, Field

from ..common.logging import get_logger
from ..common.settings import FleetSettings
from ..index.filters import FilterType, TargetFilter
from ..index.models import ConfigKind, ConfigRecord
from ..index.query import QueryEngine
from .executor import BatchResult, OperationExecutor, ProgressCallback, TaskFailure
from .supervisor import ServiceSupervisor

logger = get_logger(__name__)


class LifecycleOperation(str, Enum):
    """Supervisor verbs available for bulk operations."""

    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RELOAD = "reload"


class LifecycleResult(BaseModel):
    """Outcome of a lifecycle operation, possibly spanning several batches."""

    operation: str
    batches: list[BatchResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(b.total for b in self.batches)

    @property
    def succeeded(self) -> list[str]:
        return [t for b in self.batches for t in b.succeeded]

    @property
    def failed(self) -> list[TaskFailure]:
        return [f for b in self.batches for f in b.failed]

    @property
    def skipped(self) -> list[str]:
        return [t for b in self.batches for t in b.skipped]

    @property
    def ok(self) -> bool:
        return all(b.ok for b in self.batches)

    def summary(self) -> str:
        text = f"{self.operation}: {len(self.succeeded)} succeeded, {len(self.failed)} failed"
        if self.skipped:
            text += f", {len(self.skipped)} skipped"
        return text


class _OverallProgress:
    """Turns per-batch progress into one monotonic count across batches."""

    def __init__(self, callback: ProgressCallback | None, total: int):
        self.callback = callback
        self.total = total
        self.offset = 0

    def for_batch(self) -> ProgressCallback | None:
        if self.callback is None:
            return None
        offset = self.offset
        return lambda completed, _total: self.callback(offset + completed, self.total)

    def advance(self, batch: BatchResult) -> None:
        self.offset += batch.total


class LifecycleOperations:
    """Drives supervisor verbs over services selected from the index.

    Server configs form the shared tier every other service depends on:
    dependents are stopped before it and started after it.
    """

    def __init__(
        self,
        settings: FleetSettings,
        query: QueryEngine,
        supervisor: ServiceSupervisor,
        executor: OperationExecutor | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.query = query
        self.supervisor = supervisor
        self.executor = executor or OperationExecutor(settings.default_max_parallel)
        self._sleep = sleep

    def service_name(self, record: ConfigRecord) -> str:
        """Service unit name for a config: ``<prefix>-<config name>``."""
        return f"{self.settings.service_prefix}-{record.name}"

    def resolve_records(self, target_filter: TargetFilter | str = "all") -> list[ConfigRecord]:
        """Records selected by a filter; ``status:X`` asks the supervisor."""
        if isinstance(target_filter, str):
            target_filter = TargetFilter.parse(target_filter)

        if target_filter.type is not FilterType.STATUS:
            return self.query.by_filter(target_filter)

        return [
            record
            for record in self.query.all()
            if self.supervisor.status(self.service_name(record)).value == target_filter.value
        ]

    def resolve_targets(self, target_filter: TargetFilter | str = "all") -> list[str]:
        """Service names selected by a filter."""
        return list(dict.fromkeys(self.service_name(r) for r in self.resolve_records(target_filter)))

    def _tiers(self, records: list[ConfigRecord]) -> tuple[list[str], list[str]]:
        # Two configs with the same stem map to one service unit
        shared = dict.fromkeys(self.service_name(r) for r in records if r.kind is ConfigKind.SERVER)
        dependents = dict.fromkeys(
            self.service_name(r) for r in records if r.kind is not ConfigKind.SERVER
        )
        return list(shared), [s for s in dependents if s not in shared]

    def _run_batches(
        self,
        label: str,
        steps: list[tuple[LifecycleOperation, list[str]]],
        max_parallel: int | None,
        progress: ProgressCallback | None,
        cancel: threading.Event | None,
        pause_after: int | None = None,
    ) -> LifecycleResult:
        result = LifecycleResult(operation=label)
        overall = _OverallProgress(progress, sum(len(services) for _, services in steps))

        with structlog.contextvars.bound_contextvars(lifecycle=label):
            for index, (verb, services) in enumerate(steps):
                if services:
                    batch = self.executor.execute(
                        services,
                        getattr(self.supervisor, verb.value),
                        operation=verb.value,
                        max_parallel=max_parallel,
                        progress=overall.for_batch(),
                        cancel=cancel,
                    )
                    overall.advance(batch)
                    result.batches.append(batch)
                if pause_after is not None and index == pause_after and self.settings.restart_cooldown:
                    if cancel is None or not cancel.is_set():
                        # Let sockets release before the start tiers bind again
                        self._sleep(self.settings.restart_cooldown)

        logger.info(result.summary())
        return result

    def _select(self, target_filter: TargetFilter | str, operation: str) -> list[ConfigRecord] | None:
        records = self.resolve_records(target_filter)
        if not records:
            logger.warning(
                "No services found matching filter",
                filter=str(target_filter),
                operation=operation,
            )
            return None
        return records

    def start_all(
        self,
        target_filter: TargetFilter | str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Start the shared tier, then its dependents."""
        records = self._select(target_filter, "start")
        if records is None:
            return LifecycleResult(operation="start")
        shared, dependents = self._tiers(records)
        return self._run_batches(
            "start",
            [(LifecycleOperation.START, shared), (LifecycleOperation.START, dependents)],
            max_parallel,
            progress,
            cancel,
        )

    def stop_all(
        self,
        target_filter: TargetFilter | str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Stop dependents first, then the shared tier."""
        records = self._select(target_filter, "stop")
        if records is None:
            return LifecycleResult(operation="stop")
        shared, dependents = self._tiers(records)
        return self._run_batches(
            "stop",
            [(LifecycleOperation.STOP, dependents), (LifecycleOperation.STOP, shared)],
            max_parallel,
            progress,
            cancel,
        )

    def restart_all(
        self,
        target_filter: TargetFilter | str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Tier-ordered stop, cooldown pause, tier-ordered start."""
        records = self._select(target_filter, "restart")
        if records is None:
            return LifecycleResult(operation="restart")
        shared, dependents = self._tiers(records)
        return self._run_batches(
            "restart",
            [
                (LifecycleOperation.STOP, dependents),
                (LifecycleOperation.STOP, shared),
                (LifecycleOperation.START, shared),
                (LifecycleOperation.START, dependents),
            ],
            max_parallel,
            progress,
            cancel,
            pause_after=1,
        )

    def reload_all(
        self,
        target_filter: TargetFilter | str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Reload every selected service in one batch."""
        return self.bulk(LifecycleOperation.RELOAD, target_filter, max_parallel, progress, cancel)

    def bulk(
        self,
        operation: LifecycleOperation | str,
        target_filter: TargetFilter | str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Apply one supervisor verb to every selected service in a single batch.

        Unlike :meth:`restart_all`, no tier ordering is applied.

        Raises:
            ValueError: If the operation or filter is invalid
        """
        verb = LifecycleOperation(operation)
        records = self._select(target_filter, verb.value)
        if records is None:
            return LifecycleResult(operation=verb.value)
        return self._run_batches(
            verb.value,
            [(verb, list(dict.fromkeys(self.service_name(r) for r in records)))],
            max_parallel,
            progress,
            cancel,
        )
