"""Configuration metadata index: store, indexer, queries and tags."""

from .filters import FilterType, TargetFilter
from .indexer import Indexer
from .models import (
    BulkTagResult,
    ConfigKind,
    ConfigRecord,
    IndexMetadata,
    IndexStats,
    ReconcileReport,
)
from .query import QueryEngine
from .reader import ConfigFieldReader, TomlFieldReader
from .store import MetadataStore
from .tags import TagManager

__all__ = [
    "BulkTagResult",
    "ConfigFieldReader",
    "ConfigKind",
    "ConfigRecord",
    "FilterType",
    "IndexMetadata",
    "IndexStats",
    "Indexer",
    "MetadataStore",
    "QueryEngine",
    "ReconcileReport",
    "TagManager",
    "TargetFilter",
    "TomlFieldReader",
]
