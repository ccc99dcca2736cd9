"""Typed field extraction from managed config documents."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Protocol

from ..common.exceptions import ConfigValidationError, IndexIOError
from ..common.logging import get_logger

logger = get_logger(__name__)

Scalar = str | int | float | bool


class ConfigFieldReader(Protocol):
    """Protocol for reading scalar fields out of a config file."""

    def read(self, file: Path, dotted_key: str) -> Scalar | None:
        """Return the scalar at ``dotted_key`` or None if absent or not a scalar."""
        ...

    def count(self, file: Path, array_key: str) -> int:
        """Return the number of entries in the array at ``array_key``."""
        ...


def lookup(document: dict[str, Any], dotted_key: str) -> Any:
    """Walk ``document`` along a dotted key.

    A literal key containing dots (``"auth.token" = ...``) is tried before
    descending into nested tables.
    """
    if dotted_key in document:
        return document[dotted_key]

    node: Any = document
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


class TomlFieldReader:
    """ConfigFieldReader backed by :mod:`tomllib`.

    Parsed documents are cached per path and invalidated on mtime/size change,
    so extracting several fields from one file parses it once.
    """

    def __init__(self) -> None:
        self._cache: dict[Path, tuple[tuple[int, int], dict[str, Any]]] = {}

    def parse_bytes(self, data: bytes, source: str = "<bytes>") -> dict[str, Any]:
        """Parse raw TOML bytes.

        Raises:
            ConfigValidationError: If the bytes are not valid UTF-8 TOML
        """
        try:
            return tomllib.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigValidationError(f"Invalid TOML in {source}: {e}") from e

    def load(self, file: Path) -> dict[str, Any]:
        """Parse ``file``, reusing the cached document when unchanged.

        Raises:
            IndexIOError: If the file cannot be read
            ConfigValidationError: If the file is not valid TOML
        """
        try:
            stat = file.stat()
            signature = (stat.st_mtime_ns, stat.st_size)
            cached = self._cache.get(file)
            if cached and cached[0] == signature:
                return cached[1]
            data = file.read_bytes()
        except OSError as e:
            raise IndexIOError(f"Cannot read {file}: {e}") from e

        document = self.parse_bytes(data, str(file))
        self._cache[file] = (signature, document)
        return document

    def read(self, file: Path, dotted_key: str) -> Scalar | None:
        value = lookup(self.load(file), dotted_key)
        if isinstance(value, (str, int, float, bool)):
            return value
        if value is not None:
            logger.debug("Ignoring non-scalar value", file=str(file), key=dotted_key)
        return None

    def count(self, file: Path, array_key: str) -> int:
        value = lookup(self.load(file), array_key)
        if isinstance(value, list):
            return len(value)
        return 0

    def forget(self, file: Path) -> None:
        """Drop the cached document for ``file``."""
        self._cache.pop(file, None)
