"""frp-fleet - metadata index and bulk operations for FRP config fleets."""

# High-level API
from .api import FleetManager

# Common utilities
from .common.exceptions import (
    ConfigValidationError,
    CorruptedRecordError,
    ExecutorSetupError,
    FleetError,
    HashMismatchError,
    IndexIOError,
    NotIndexedError,
    ProbeError,
    ProbeRefusedError,
    ProbeTimeoutError,
    StoreError,
    SupervisorError,
)
from .common.logging import get_logger, setup_logging
from .common.settings import FleetSettings

# Index components
from .index import (
    BulkTagResult,
    ConfigFieldReader,
    ConfigKind,
    ConfigRecord,
    Indexer,
    IndexMetadata,
    IndexStats,
    MetadataStore,
    QueryEngine,
    ReconcileReport,
    TagManager,
    TargetFilter,
    TomlFieldReader,
)

# Operation components
from .ops import (
    BatchResult,
    ConnectivityProber,
    LifecycleOperation,
    LifecycleOperations,
    LifecycleResult,
    OperationExecutor,
    ServiceStatus,
    ServiceSupervisor,
    SystemdSupervisor,
    TaskFailure,
    TaskStatus,
)

# Setup logging on package initialization
setup_logging(level="INFO")

# Package level logger
logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "FleetManager",
    "FleetSettings",
    # Index
    "BulkTagResult",
    "ConfigFieldReader",
    "ConfigKind",
    "ConfigRecord",
    "IndexMetadata",
    "IndexStats",
    "Indexer",
    "MetadataStore",
    "QueryEngine",
    "ReconcileReport",
    "TagManager",
    "TargetFilter",
    "TomlFieldReader",
    # Operations
    "BatchResult",
    "ConnectivityProber",
    "LifecycleOperation",
    "LifecycleOperations",
    "LifecycleResult",
    "OperationExecutor",
    "ServiceStatus",
    "ServiceSupervisor",
    "SystemdSupervisor",
    "TaskFailure",
    "TaskStatus",
    # Exceptions
    "FleetError",
    "ConfigValidationError",
    "CorruptedRecordError",
    "ExecutorSetupError",
    "HashMismatchError",
    "IndexIOError",
    "NotIndexedError",
    "ProbeError",
    "ProbeRefusedError",
    "ProbeTimeoutError",
    "StoreError",
    "SupervisorError",
    # Utilities
    "get_logger",
    "setup_logging",
]
