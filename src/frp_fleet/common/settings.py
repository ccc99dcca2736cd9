import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Environment variables understood by FleetSettings.from_env
ENV_PREFIX = "MOONFRP_"
ENV_FIELDS = {
    "CONFIG_DIR": "config_dir",
    "DATA_DIR": "index_root",
    "SERVICE_PREFIX": "service_prefix",
    "MAX_PARALLEL": "default_max_parallel",
    "PROBE_TIMEOUT": "probe_timeout",
}


class FleetSettings(BaseModel):
    """Pydantic settings passed explicitly to every fleet component"""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    config_dir: Path = Field(default=Path("/etc/frp"), description="Directory of managed TOML configs")
    index_root: Path = Field(default=Path("/opt/moonfrp/data"), description="Root for index sidecars and metadata")
    config_suffix: str = Field(default=".toml", pattern=r"^\.\w+$", description="Extension of managed configs")

    service_prefix: str = Field(default="moonfrp", min_length=1, max_length=50, description="Service unit name prefix")
    server_name_prefix: str = Field(default="frps", min_length=1, description="File stem prefix of server configs")
    visitor_name_prefix: str = Field(default="visitor", min_length=1, description="File stem prefix of visitor configs")

    default_max_parallel: int = Field(default=10, ge=1, le=100, description="Parallelism for lifecycle batches")
    probe_max_parallel: int = Field(default=20, ge=1, le=200, description="Parallelism for connectivity probes")
    probe_timeout: float = Field(default=1.0, ge=0.1, le=30.0, description="Per-attempt connect timeout in seconds")
    restart_cooldown: float = Field(default=2.0, ge=0.0, le=60.0, description="Pause between stop and start tiers")
    supervisor_timeout: float = Field(default=30.0, ge=1.0, le=600.0, description="Timeout for one supervisor call")

    auto_refresh: bool = Field(default=True, description="Refresh the index incrementally before queries")

    @field_validator('service_prefix')
    @classmethod
    def validate_service_prefix(cls, v: str) -> str:
        """Validate service prefix format"""
        if not v.replace('-', '').replace('_', '').isalnum():
            raise ValueError("Service prefix must contain only alphanumeric characters, hyphens, and underscores")
        return v

    @property
    def records_dir(self) -> Path:
        """Directory holding one JSON sidecar per config"""
        return self.index_root / "config-index"

    @property
    def metadata_file(self) -> Path:
        """Singleton index metadata document"""
        return self.index_root / "index-meta.json"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> "FleetSettings":
        """Build settings from MOONFRP_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        environ = dict(os.environ) if environ is None else environ
        values: dict[str, Any] = {}
        for suffix, field_name in ENV_FIELDS.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = raw
        values.update(overrides)
        return cls(**values)
