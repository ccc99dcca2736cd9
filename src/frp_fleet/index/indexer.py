"""Reconciles on-disk configs into metadata store records."""

from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from ..common.exceptions import (
    ConfigValidationError,
    CorruptedRecordError,
    FleetError,
    HashMismatchError,
    IndexIOError,
)
from ..common.logging import get_logger
from ..common.settings import FleetSettings
from ..common.utils import mask_sensitive_data, parse_port, sha256_hex
from .models import ConfigKind, ConfigRecord, IndexMetadata, ReconcileReport
from .reader import ConfigFieldReader, TomlFieldReader
from .store import MetadataStore

logger = get_logger(__name__)


class Indexer:
    """Builds ConfigRecords from config files and keeps the store in sync.

    Change detection is polling based: :meth:`reconcile` rehashes every file,
    :meth:`refresh` only files whose modification time moved.
    """

    def __init__(
        self,
        settings: FleetSettings,
        store: MetadataStore | None = None,
        reader: ConfigFieldReader | None = None,
    ):
        self.settings = settings
        self.store = store or MetadataStore(settings)
        self.reader = reader or TomlFieldReader()

    def ensure_initialized(self) -> IndexMetadata:
        """Create index directories and the metadata singleton if missing."""
        self.store.ensure_dirs()
        metadata = self.store.read_metadata()
        if metadata is None:
            metadata = IndexMetadata()
            self.store.write_metadata(metadata)
            logger.info("Index initialized", root=str(self.settings.index_root))
        return metadata

    def infer_kind(self, path: Path) -> ConfigKind:
        """Infer the config kind from its file name convention.

        ``frps*.toml`` are servers, ``visitor*.toml`` visitors, anything else
        is a client.
        """
        name = path.name.lower()
        if name.startswith(self.settings.server_name_prefix):
            return ConfigKind.SERVER
        if name.startswith(self.settings.visitor_name_prefix):
            return ConfigKind.VISITOR
        return ConfigKind.CLIENT

    def discover(self) -> list[Path]:
        """List managed config files under the config directory."""
        config_dir = self.settings.config_dir
        if not config_dir.is_dir():
            logger.warning("Config directory not found", config_dir=str(config_dir))
            return []
        pattern = f"*{self.settings.config_suffix}"
        return sorted(p.resolve() for p in config_dir.rglob(pattern) if p.is_file())

    def _read_bytes(self, path: Path) -> tuple[bytes, float]:
        try:
            mtime = path.stat().st_mtime
            return path.read_bytes(), mtime
        except OSError as e:
            raise IndexIOError(f"Cannot read {path}: {e}") from e

    def reindex(self, path: str | Path) -> ConfigRecord:
        """Index one config file and upsert its record.

        Existing tags are carried over. If the file content changes while its
        fields are being extracted the write is abandoned so a half-written
        config is never recorded.

        Args:
            path: Config file to index

        Returns:
            The stored record

        Raises:
            IndexIOError: If the file cannot be read
            ConfigValidationError: If the file is not a valid config document
            HashMismatchError: If the file changed during indexing
            StoreError: If the record cannot be persisted
        """
        file = Path(path).resolve()
        data, mtime = self._read_bytes(file)
        content_hash = sha256_hex(data)
        kind = self.infer_kind(file)

        reader = self.reader
        if isinstance(reader, TomlFieldReader):
            reader.forget(file)

        server_address = None
        server_port = None
        if kind is not ConfigKind.SERVER:
            address = reader.read(file, "serverAddr")
            server_address = str(address) if address not in (None, "") else None
            server_port = parse_port(reader.read(file, "serverPort"))
        bind_port = parse_port(reader.read(file, "bindPort"))

        token = reader.read(file, "auth.token")
        secret_hash = sha256_hex(str(token)) if token not in (None, "") else None

        proxy_count = reader.count(file, "proxies")
        if kind is ConfigKind.VISITOR:
            proxy_count += reader.count(file, "visitors")

        after, _ = self._read_bytes(file)
        if sha256_hex(after) != content_hash:
            raise HashMismatchError(f"{file} changed while being indexed")

        key = str(file)
        existing = self._existing(key)
        try:
            record = ConfigRecord(
                path=key,
                content_hash=content_hash,
                kind=kind,
                server_address=server_address,
                server_port=server_port,
                bind_port=bind_port,
                secret_hash=secret_hash,
                proxy_count=proxy_count,
                tags=dict(existing.tags) if existing else {},
                last_modified=mtime,
                last_indexed=datetime.now(UTC),
            )
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid field values in {file}: {e}") from e
        self.store.put(record)
        logger.debug(
            "Record indexed",
            path=key,
            kind=kind.value,
            proxies=proxy_count,
            secret=mask_sensitive_data(secret_hash),
            changed=existing is None or not existing.same_content(record),
        )
        return record

    def _existing(self, key: str) -> ConfigRecord | None:
        try:
            return self.store.get(key)
        except CorruptedRecordError as e:
            # Rebuilt from the config file; tags on the broken record are lost
            logger.warning("Replacing corrupted record", path=key, error=str(e))
            self.store.purge(self.store.sidecar_path(key))
            return None

    def _needs_index(self, path: Path, full: bool) -> bool:
        existing = self._existing(str(path))
        if existing is None:
            return True
        if full:
            data, _ = self._read_bytes(path)
            return sha256_hex(data) != existing.content_hash
        try:
            mtime = path.stat().st_mtime
        except OSError as e:
            raise IndexIOError(f"Cannot stat {path}: {e}") from e
        if mtime == existing.last_modified:
            return False
        data, _ = self._read_bytes(path)
        if sha256_hex(data) == existing.content_hash:
            # Touched but not changed, just remember the new mtime
            self.store.put(existing.model_copy(update={"last_modified": mtime}))
            return False
        return True

    def _sync(self, full: bool) -> ReconcileReport:
        self.ensure_initialized()
        report = ReconcileReport()
        on_disk = self.discover()

        for path in on_disk:
            key = str(path)
            try:
                if self._needs_index(path, full):
                    self.reindex(path)
                    report.indexed.append(key)
                else:
                    report.unchanged.append(key)
            except FleetError as e:
                # Picked up again on the next pass
                logger.warning("Skipping config", path=key, error=str(e))
                report.failed[key] = str(e)

        present = {str(p) for p in on_disk}
        for record in self.store.list():
            if record.path in present or Path(record.path).is_file():
                continue
            if isinstance(self.reader, TomlFieldReader):
                self.reader.forget(Path(record.path))
            if self.store.delete(record.path):
                report.removed.append(record.path)

        if report.removed:
            logger.debug("Removed orphaned index entries", count=len(report.removed))
        return report

    def reconcile(self) -> ReconcileReport:
        """Rehash every config on disk and drop records whose file is gone."""
        report = self._sync(full=True)
        logger.info(
            "Reconcile complete",
            indexed=len(report.indexed),
            unchanged=len(report.unchanged),
            failed=len(report.failed),
            removed=len(report.removed),
        )
        return report

    def refresh(self) -> ReconcileReport:
        """Incremental pass: rehash only files whose mtime changed."""
        report = self._sync(full=False)
        if report.changed or report.failed:
            logger.debug(
                "Index refreshed",
                indexed=len(report.indexed),
                failed=len(report.failed),
                removed=len(report.removed),
            )
        return report

    def rebuild(self) -> ReconcileReport:
        """Full reconcile that also stamps the metadata rebuild time."""
        logger.info("Rebuilding config index", config_dir=str(self.settings.config_dir))
        report = self.reconcile()
        metadata = self.store.read_metadata() or IndexMetadata()
        self.store.write_metadata(
            metadata.model_copy(update={"last_rebuild": datetime.now(UTC)})
        )
        if not report.indexed and not report.unchanged:
            logger.warning("Index rebuild completed but no files were indexed")
        return report
