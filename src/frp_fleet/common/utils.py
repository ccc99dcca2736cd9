"""Utility functions for frp-fleet."""

import hashlib
from typing import Any

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

# Length of the hex prefix used to name sidecar files
SLUG_LENGTH = 16


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value.strip()


def sha256_hex(data: bytes | str) -> str:
    """Return the sha256 hex digest of bytes or UTF-8 text."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def path_slug(path: str) -> str:
    """Stable short name for a config path, used for sidecar file names."""
    return sha256_hex(path)[:SLUG_LENGTH]


def parse_int(value: Any) -> int | None:
    """Coerce a scalar to int, returning None for blanks and garbage.

    Booleans are rejected even though they are ints in Python.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().strip("\"'")
        if not value:
            return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_port(value: Any) -> int | None:
    """Like :func:`parse_int`, but ports outside 1-65535 read as None.

    FRP uses values such as ``bindPort = -1`` to disable a listener.
    """
    port = parse_int(value)
    if port is None or not (MIN_PORT <= port <= MAX_PORT):
        return None
    return port


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Mask sensitive data for logging while preserving some characters for debugging.

    Args:
        value: Sensitive string to mask (e.g., auth token, hash)
        mask_char: Character to use for masking
        show_chars: Number of characters to show at the end

    Returns:
        Masked string safe for logging
    """
    if not value:
        return "<None>"

    if len(value) <= show_chars:
        return mask_char * len(value)

    masked_length = len(value) - show_chars
    return mask_char * masked_length + value[-show_chars:]

