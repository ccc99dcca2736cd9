"""High-level API for frp-fleet.

This module wires the index and operation layers together behind one object
covering the automation surface: reindex, rebuild, query, tagging, bulk
service operations and connectivity tests.
"""

import threading
from pathlib import Path

from .common.logging import get_logger
from .common.settings import FleetSettings
from .index import (
    BulkTagResult,
    ConfigKind,
    ConfigRecord,
    Indexer,
    IndexStats,
    QueryEngine,
    ReconcileReport,
    TagManager,
    TargetFilter,
)
from .ops import (
    BatchResult,
    ConnectivityProber,
    LifecycleOperation,
    LifecycleOperations,
    LifecycleResult,
    OperationExecutor,
    ServiceSupervisor,
    SystemdSupervisor,
)
from .ops.executor import ProgressCallback

logger = get_logger(__name__)


class FleetManager:
    """Entry point for managing a directory of FRP configs and their services.

    Example:
        >>> fleet = FleetManager(FleetSettings(config_dir=Path("/etc/frp")))
        >>> fleet.rebuild()
        >>> fleet.bulk_tag("kind:client", "env", "prod")
        >>> result = fleet.bulk_operation("restart", "tag:env:prod", max_parallel=5)
        >>> print(result.summary())
    """

    def __init__(
        self,
        settings: FleetSettings | None = None,
        supervisor: ServiceSupervisor | None = None,
        prober: ConnectivityProber | None = None,
    ):
        self.settings = settings or FleetSettings.from_env()
        self.indexer = Indexer(self.settings)
        self.query_engine = QueryEngine(self.settings, self.indexer)
        self.tags = TagManager(self.query_engine)
        self.supervisor = supervisor or SystemdSupervisor(self.settings)
        self.lifecycle = LifecycleOperations(
            self.settings,
            self.query_engine,
            self.supervisor,
            OperationExecutor(self.settings.default_max_parallel),
        )
        self.prober = prober or ConnectivityProber(self.settings)

    def _path(self, path: str | Path) -> str:
        return str(Path(path).resolve())

    # Index maintenance

    def reindex(self, path: str | Path) -> ConfigRecord:
        """Index a single config file."""
        self.indexer.ensure_initialized()
        return self.indexer.reindex(path)

    def reconcile(self) -> ReconcileReport:
        return self.indexer.reconcile()

    def rebuild(self) -> ReconcileReport:
        return self.indexer.rebuild()

    # Queries

    def query(
        self,
        kind: ConfigKind | str | None = None,
        server: str | None = None,
        tag: str | None = None,
    ) -> list[ConfigRecord]:
        """Records matching every given criterion; all records if none given."""
        records = self.query_engine.all()
        if kind is not None:
            kind = ConfigKind(kind)
            records = [r for r in records if r.kind is kind]
        if server is not None:
            records = [r for r in records if r.server_address == server]
        if tag is not None:
            tag_filter = TargetFilter.parse(f"tag:{tag}")
            records = [r for r in records if tag_filter.matches(r)]
        return records

    def stats(self) -> IndexStats:
        return self.query_engine.aggregate_stats()

    # Tags

    def add_tag(self, path: str | Path, key: str, value: str) -> ConfigRecord:
        return self.tags.add_tag(self._path(path), key, value)

    def remove_tag(self, path: str | Path, key: str) -> bool:
        return self.tags.remove_tag(self._path(path), key)

    def list_tags(self, path: str | Path) -> dict[str, str]:
        return self.tags.list_tags(self._path(path))

    def bulk_tag(self, target_filter: str, key: str, value: str) -> BulkTagResult:
        return self.tags.bulk_tag(target_filter, key, value)

    # Operations

    def bulk_operation(
        self,
        operation: LifecycleOperation | str,
        target_filter: str = "all",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> LifecycleResult:
        """Run start/stop/restart/reload over the services selected by a filter.

        With the ``all`` filter, start/stop/restart respect the shared server
        tier; filtered runs apply the verb to every match in one batch.
        """
        operation = LifecycleOperation(operation)
        max_parallel = max_parallel or self.settings.default_max_parallel
        if target_filter == "all" and operation is not LifecycleOperation.RELOAD:
            tiered = {
                LifecycleOperation.START: self.lifecycle.start_all,
                LifecycleOperation.STOP: self.lifecycle.stop_all,
                LifecycleOperation.RESTART: self.lifecycle.restart_all,
            }[operation]
            return tiered("all", max_parallel, progress, cancel)
        return self.lifecycle.bulk(operation, target_filter, max_parallel, progress, cancel)

    def test_connectivity(
        self,
        target_filter: str = "kind:client",
        max_parallel: int | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchResult:
        """Probe the rendezvous server of every matching config."""
        records = self.lifecycle.resolve_records(target_filter)
        return self.prober.test_records(records, max_parallel, progress, cancel)
