"""Custom exceptions for fleet indexing and operations."""


class FleetError(Exception):
    """Base exception for all frp-fleet errors."""
    pass


class IndexIOError(FleetError):
    """Raised when a config file cannot be read for indexing."""
    pass


class HashMismatchError(FleetError):
    """Raised when a config file changes while it is being indexed."""
    pass


class NotIndexedError(FleetError):
    """Raised when an operation targets a path with no index record."""
    pass


class ConfigValidationError(FleetError):
    """Raised when a config file is not a valid document."""
    pass


class StoreError(FleetError):
    """Raised when a metadata sidecar cannot be read, written or removed."""
    pass


class CorruptedRecordError(StoreError):
    """Raised when a sidecar exists but does not hold a valid record."""
    pass


class SupervisorError(FleetError):
    """Raised when the service supervisor reports a failure."""

    def __init__(self, service: str, message: str):
        self.service = service
        self.message = message
        super().__init__(f"{service}: {message}")


class ProbeError(FleetError):
    """Raised when a connectivity probe fails."""
    pass


class ProbeTimeoutError(ProbeError):
    """Raised when a connectivity probe does not connect in time."""
    pass


class ProbeRefusedError(ProbeError):
    """Raised when the probed endpoint actively refuses the connection."""
    pass


class ExecutorSetupError(FleetError):
    """Raised when a batch cannot be started with the given arguments."""
    pass
