"""Index record models using Pydantic for type safety and validation."""

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCHEMA_VERSION = "json-1"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConfigKind(str, Enum):
    """Kind of tunnel endpoint a config describes."""

    SERVER = "server"
    CLIENT = "client"
    VISITOR = "visitor"


class ConfigRecord(BaseModel):
    """Indexed metadata for one managed config, keyed by its path.

    Records are immutable; updates produce a new instance via ``model_copy``.
    The plaintext auth token is never stored, only its sha256 digest.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(min_length=1, description="Absolute path of the config file")
    content_hash: str = Field(min_length=64, max_length=64, description="sha256 of indexed bytes")
    kind: ConfigKind = Field(default=ConfigKind.CLIENT)
    server_address: str | None = Field(default=None, description="serverAddr of clients and visitors")
    server_port: int | None = Field(default=None, ge=1, le=65535)
    bind_port: int | None = Field(default=None, ge=1, le=65535)
    secret_hash: str | None = Field(default=None, description="sha256 of auth.token")
    proxy_count: int = Field(default=0, ge=0)
    tags: dict[str, str] = Field(default_factory=dict)
    last_modified: float = Field(default=0.0, description="File mtime at index time")
    last_indexed: datetime = Field(default_factory=_utcnow)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: dict[str, str]) -> dict[str, str]:
        """Tag keys must be non-empty and must not contain the ':' separator."""
        for key in v:
            if not key or ":" in key:
                raise ValueError(f"Invalid tag key: {key!r}")
        return v

    @property
    def name(self) -> str:
        """Config file stem, e.g. ``frpc-eu1`` for ``/etc/frp/frpc-eu1.toml``."""
        return Path(self.path).stem

    @property
    def endpoint(self) -> str | None:
        """``host:port`` of the rendezvous server this config dials, if any."""
        if self.server_address and self.server_port:
            return f"{self.server_address}:{self.server_port}"
        return None

    def with_tag(self, key: str, value: str) -> "ConfigRecord":
        """Return a copy with ``key`` set to ``value``."""
        return self.model_copy(update={"tags": {**self.tags, key: value}})

    def without_tag(self, key: str) -> "ConfigRecord":
        """Return a copy with ``key`` removed from the tags."""
        tags = {k: v for k, v in self.tags.items() if k != key}
        return self.model_copy(update={"tags": tags})

    def same_content(self, other: "ConfigRecord") -> bool:
        """True if both records describe identical indexed bytes and fields."""
        ignored = {"last_indexed", "last_modified", "tags"}
        return self.model_dump(exclude=ignored) == other.model_dump(exclude=ignored)


class IndexMetadata(BaseModel):
    """Singleton metadata document describing the index itself."""

    schema_version: str = Field(default=SCHEMA_VERSION)
    created_at: datetime = Field(default_factory=_utcnow)
    last_rebuild: datetime | None = Field(default=None)


class ReconcileReport(BaseModel):
    """Outcome of one reconciliation pass."""

    indexed: list[str] = Field(default_factory=list, description="Paths (re)written")
    unchanged: list[str] = Field(default_factory=list, description="Paths skipped as up to date")
    failed: dict[str, str] = Field(default_factory=dict, description="Path to error text")
    removed: list[str] = Field(default_factory=list, description="Orphan records deleted")

    @property
    def changed(self) -> bool:
        return bool(self.indexed or self.removed)


class IndexStats(BaseModel):
    """Aggregate counts over all records."""

    total: int = 0
    servers: int = 0
    clients: int = 0
    visitors: int = 0
    proxies: int = 0
    size_bytes: int = 0

    def summary(self) -> str:
        size_mb = self.size_bytes / (1024 * 1024)
        return (
            f"Total configs: {self.total} (server: {self.servers}, "
            f"client: {self.clients}, visitor: {self.visitors}); "
            f"proxies: {self.proxies}; metadata size: {size_mb:.2f}MB"
        )


class BulkTagResult(BaseModel):
    """Outcome of tagging every record matched by a filter."""

    matched: int = 0
    updated: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.updated)
