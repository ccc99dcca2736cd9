"""Read queries over the metadata store."""

from ..common.logging import get_logger
from ..common.settings import FleetSettings
from .filters import TargetFilter
from .indexer import Indexer
from .models import ConfigKind, ConfigRecord, IndexStats
from .store import MetadataStore

logger = get_logger(__name__)


def split_tag_query(key: str, value: str | None = None) -> tuple[str, str | None]:
    """Accept both ``("env", "prod")`` and ``("env:prod",)`` tag queries."""
    if value is None and ":" in key:
        key, value = key.split(":", 1)
    if not key:
        raise ValueError("Tag key is required")
    return key, value


class QueryEngine:
    """Queries over indexed records.

    When ``settings.auto_refresh`` is on, each query first runs an
    incremental refresh so results follow the files on disk.
    """

    def __init__(self, settings: FleetSettings, indexer: Indexer | None = None):
        self.settings = settings
        self.indexer = indexer or Indexer(settings)

    @property
    def store(self) -> MetadataStore:
        return self.indexer.store

    def _records(self) -> list[ConfigRecord]:
        if self.settings.auto_refresh:
            self.indexer.refresh()
        return self.store.list()

    def all(self) -> list[ConfigRecord]:
        """Every indexed record, sorted by path."""
        return self._records()

    def get(self, path: str) -> ConfigRecord | None:
        """Record for one config path, if indexed."""
        return self.store.get(path)

    def by_kind(self, kind: ConfigKind | str) -> list[ConfigRecord]:
        """Records of one config kind."""
        kind = ConfigKind(kind)
        return [r for r in self._records() if r.kind is kind]

    def by_server_address(self, address: str) -> list[ConfigRecord]:
        """Records dialing the given rendezvous server address."""
        if not address:
            raise ValueError("Server address is required")
        return [r for r in self._records() if r.server_address == address]

    def by_tag(self, key: str, value: str | None = None) -> list[ConfigRecord]:
        """Records carrying tag ``key``, optionally with exactly ``value``.

        Args:
            key: Tag key, or ``"key:value"`` in one string
            value: Required tag value; any value matches when None
        """
        key, value = split_tag_query(key, value)
        return self.by_filter(TargetFilter(type="tag", key=key, value=value))

    def by_name(self, substring: str) -> list[ConfigRecord]:
        """Records whose config file stem contains ``substring``."""
        return self.by_filter(TargetFilter(type="name", value=substring))

    def by_filter(self, target_filter: TargetFilter | str) -> list[ConfigRecord]:
        """Records matched by a filter expression."""
        if isinstance(target_filter, str):
            target_filter = TargetFilter.parse(target_filter)
        return [r for r in self._records() if target_filter.matches(r)]

    def total_proxy_count(self) -> int:
        """Sum of proxies over all records."""
        return sum(r.proxy_count for r in self._records())

    def aggregate_stats(self) -> IndexStats:
        """Counts per kind, total proxies and on-disk metadata size."""
        stats = IndexStats()
        for record in self._records():
            stats.total += 1
            stats.proxies += record.proxy_count
            if record.kind is ConfigKind.SERVER:
                stats.servers += 1
            elif record.kind is ConfigKind.CLIENT:
                stats.clients += 1
            else:
                stats.visitors += 1
        stats.size_bytes = self.store.size_bytes()
        return stats
