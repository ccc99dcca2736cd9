"""Key/value tag management for indexed records."""

from collections import Counter

from ..common.exceptions import NotIndexedError, StoreError
from ..common.logging import get_logger
from ..common.utils import validate_non_empty_string
from .filters import FilterType, TargetFilter
from .models import BulkTagResult, ConfigRecord
from .query import QueryEngine

logger = get_logger(__name__)


class TagManager:
    """CRUD and bulk tagging of labels on index records.

    Tags live inside each record's sidecar, so every write is one atomic
    record replace. A concurrent reindex of the same path may race with a tag
    write; the last writer wins.
    """

    def __init__(self, query: QueryEngine):
        self.query = query

    @property
    def store(self):
        return self.query.store

    def _require(self, path: str) -> ConfigRecord:
        record = self.store.get(path)
        if record is None:
            raise NotIndexedError(f"Config file not indexed: {path}")
        return record

    def add_tag(self, path: str, key: str, value: str) -> ConfigRecord:
        """Set tag ``key`` to ``value`` on the record for ``path``.

        Re-adding an identical tag is a no-op.

        Raises:
            ValueError: If key or value is empty, or the key contains ':'
            NotIndexedError: If ``path`` has no record
            StoreError: If the record cannot be written
        """
        key = validate_non_empty_string(key, "Tag key")
        value = validate_non_empty_string(value, "Tag value")
        if ":" in key:
            raise ValueError("Tag key cannot contain ':'")

        record = self._require(path)
        if record.tags.get(key) == value:
            return record

        updated = record.with_tag(key, value)
        self.store.put(updated)
        logger.info("Tag added", path=path, tag=f"{key}:{value}")
        return updated

    def remove_tag(self, path: str, key: str) -> bool:
        """Remove tag ``key`` from the record for ``path``.

        Returns:
            True if the tag existed and was removed

        Raises:
            NotIndexedError: If ``path`` has no record
        """
        key = validate_non_empty_string(key, "Tag key")
        record = self._require(path)
        if key not in record.tags:
            return False

        self.store.put(record.without_tag(key))
        logger.info("Tag removed", path=path, key=key)
        return True

    def list_tags(self, path: str) -> dict[str, str]:
        """Tags of one record, sorted by key.

        Raises:
            NotIndexedError: If ``path`` has no record
        """
        record = self._require(path)
        return dict(sorted(record.tags.items()))

    def list_all_tags(self) -> dict[tuple[str, str], int]:
        """Number of records carrying each ``(key, value)`` pair."""
        counts: Counter[tuple[str, str]] = Counter()
        for record in self.query.all():
            counts.update(record.tags.items())
        return dict(sorted(counts.items()))

    def bulk_tag(self, target_filter: TargetFilter | str, key: str, value: str) -> BulkTagResult:
        """Tag every record matched by ``target_filter``.

        A record that fails to persist is reported in ``failed`` and does not
        stop the remaining records.

        Raises:
            ValueError: If key or value is empty, or the filter is invalid
        """
        key = validate_non_empty_string(key, "Tag key")
        value = validate_non_empty_string(value, "Tag value")
        if isinstance(target_filter, str):
            target_filter = TargetFilter.parse(target_filter)
        if target_filter.type is FilterType.STATUS:
            raise ValueError("Status filters are not supported for tagging")

        matches = self.query.by_filter(target_filter)
        result = BulkTagResult(matched=len(matches))
        logger.info(
            "Bulk tagging configurations",
            count=len(matches),
            tag=f"{key}:{value}",
            filter=str(target_filter),
        )

        for record in matches:
            try:
                self.add_tag(record.path, key, value)
                result.updated.append(record.path)
            except (NotIndexedError, StoreError) as e:
                logger.warning("Failed to tag config", path=record.path, error=str(e))
                result.failed[record.path] = str(e)

        logger.info(
            "Bulk tagging complete",
            updated=len(result.updated),
            failed=len(result.failed),
        )
        return result
