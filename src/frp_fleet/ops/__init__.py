"""Bounded-concurrency operations over managed services."""

from .executor import (
    BatchResult,
    OperationExecutor,
    OperationTask,
    TaskFailure,
    TaskStatus,
)
from .lifecycle import LifecycleOperation, LifecycleOperations, LifecycleResult
from .probe import ConnectivityProber, split_endpoint
from .supervisor import ServiceStatus, ServiceSupervisor, SystemdSupervisor

__all__ = [
    "BatchResult",
    "ConnectivityProber",
    "LifecycleOperation",
    "LifecycleOperations",
    "LifecycleResult",
    "OperationExecutor",
    "OperationTask",
    "ServiceStatus",
    "ServiceSupervisor",
    "SystemdSupervisor",
    "TaskFailure",
    "TaskStatus",
    "split_endpoint",
]
