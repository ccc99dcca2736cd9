"""Common utilities shared by the index and operations layers."""

from .exceptions import (
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
from .logging import get_logger, setup_logging
from .settings import FleetSettings
from .utils import (
    mask_sensitive_data,
    parse_int,
    parse_port,
    path_slug,
    sha256_hex,
    validate_non_empty_string,
    validate_port,
)

__all__ = [
    "ConfigValidationError",
    "CorruptedRecordError",
    "ExecutorSetupError",
    "FleetError",
    "FleetSettings",
    "HashMismatchError",
    "IndexIOError",
    "NotIndexedError",
    "ProbeError",
    "ProbeRefusedError",
    "ProbeTimeoutError",
    "StoreError",
    "SupervisorError",
    "get_logger",
    "mask_sensitive_data",
    "parse_int",
    "parse_port",
    "path_slug",
    "setup_logging",
    "sha256_hex",
    "validate_non_empty_string",
    "validate_port",
]
