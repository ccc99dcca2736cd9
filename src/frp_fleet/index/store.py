"""Durable per-config metadata storage with atomic replace."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..common.exceptions import CorruptedRecordError, StoreError
from ..common.logging import get_logger
from ..common.settings import FleetSettings
from ..common.utils import path_slug
from .models import ConfigRecord, IndexMetadata

logger = get_logger(__name__)


def atomic_write_json(target: Path, payload: dict[str, Any]) -> None:
    """Write ``payload`` as JSON to ``target`` via temp-file-then-replace.

    Readers see either the previous document or the new one, never a partial
    write. The temp file lives in the target directory so ``os.replace`` stays
    on one filesystem.

    Raises:
        StoreError: If the document cannot be written
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise StoreError(f"Cannot create temp file for {target}: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, target)
    except (OSError, TypeError, ValueError) as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise StoreError(f"Failed to write {target}: {e}") from e


class MetadataStore:
    """One JSON sidecar per config under ``<index_root>/config-index``.

    Sidecars are named by a hash of the config path. There is no locking:
    the last ``put`` for a given path wins.
    """

    def __init__(self, settings: FleetSettings):
        self.settings = settings
        self.records_dir = settings.records_dir
        self.metadata_file = settings.metadata_file

    def ensure_dirs(self) -> None:
        """Create the index directories if missing."""
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create index directory {self.records_dir}: {e}") from e

    def sidecar_path(self, config_path: str) -> Path:
        """Sidecar file for ``config_path``."""
        return self.records_dir / f"{path_slug(config_path)}.json"

    def _load(self, sidecar: Path) -> ConfigRecord:
        try:
            raw = sidecar.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Cannot read {sidecar}: {e}") from e
        try:
            return ConfigRecord.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptedRecordError(f"Corrupted metadata in {sidecar}: {e}") from e

    def get(self, config_path: str) -> ConfigRecord | None:
        """Return the record for ``config_path`` or None if not indexed.

        Raises:
            StoreError: If the sidecar exists but cannot be read or parsed
        """
        sidecar = self.sidecar_path(config_path)
        if not sidecar.exists():
            return None
        record = self._load(sidecar)
        if record.path != config_path:
            # Slug collision between two paths
            raise StoreError(
                f"Sidecar {sidecar.name} belongs to {record.path}, not {config_path}"
            )
        return record

    def put(self, record: ConfigRecord) -> None:
        """Atomically write ``record``, replacing any previous version."""
        atomic_write_json(
            self.sidecar_path(record.path), record.model_dump(mode="json")
        )
        logger.debug("Record stored", path=record.path)

    def delete(self, config_path: str) -> bool:
        """Remove the record for ``config_path``.

        Returns:
            True if a record was removed, False if none existed
        """
        sidecar = self.sidecar_path(config_path)
        try:
            sidecar.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Cannot delete {sidecar}: {e}") from e
        logger.debug("Record deleted", path=config_path)
        return True

    def _sidecars(self) -> list[Path]:
        if not self.records_dir.is_dir():
            return []
        try:
            return sorted(self.records_dir.glob("*.json"))
        except OSError as e:
            raise StoreError(f"Cannot list {self.records_dir}: {e}") from e

    def list(self) -> list[ConfigRecord]:
        """Return all readable records sorted by path.

        Unreadable or corrupted sidecars are logged and skipped; use
        :meth:`verify_integrity` to find them.
        """
        records = []
        for sidecar in self._sidecars():
            try:
                records.append(self._load(sidecar))
            except StoreError as e:
                logger.warning("Skipping unreadable record", sidecar=str(sidecar), error=str(e))
        return sorted(records, key=lambda r: r.path)

    def verify_integrity(self) -> list[Path]:
        """Return sidecars that fail to load."""
        corrupted = []
        for sidecar in self._sidecars():
            try:
                self._load(sidecar)
            except StoreError:
                logger.warning("Corrupted metadata detected", sidecar=str(sidecar))
                corrupted.append(sidecar)
        return corrupted

    def purge(self, sidecar: Path) -> None:
        """Delete a sidecar file directly, e.g. one found corrupted."""
        try:
            sidecar.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot delete {sidecar}: {e}") from e

    def size_bytes(self) -> int:
        """Total size of all sidecars on disk."""
        total = 0
        for sidecar in self._sidecars():
            try:
                total += sidecar.stat().st_size
            except OSError:
                continue
        return total

    def read_metadata(self) -> IndexMetadata | None:
        """Return the index metadata singleton or None if not initialized."""
        if not self.metadata_file.exists():
            return None
        try:
            return IndexMetadata.model_validate_json(
                self.metadata_file.read_text(encoding="utf-8")
            )
        except OSError as e:
            raise StoreError(f"Cannot read {self.metadata_file}: {e}") from e
        except ValidationError as e:
            raise StoreError(f"Corrupted index metadata: {e}") from e

    def write_metadata(self, metadata: IndexMetadata) -> None:
        """Atomically replace the index metadata singleton."""
        atomic_write_json(self.metadata_file, metadata.model_dump(mode="json"))
