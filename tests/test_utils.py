"""Tests for utility functions."""

import hashlib

import pytest

from frp_fleet.common.utils import (
    SLUG_LENGTH,
    mask_sensitive_data,
    parse_int,
    parse_port,
    path_slug,
    sha256_hex,
    validate_non_empty_string,
    validate_port,
)


class TestValidatePort:
    """Test port validation function."""

    def test_valid_ports(self):
        validate_port(1, "Test port")
        validate_port(7000, "Bind port")
        validate_port(65535, "Max port")

    @pytest.mark.parametrize("port", [0, -1, 65536, "80", 80.5])
    def test_invalid_ports(self, port):
        with pytest.raises(ValueError, match="Test port must be between 1 and 65535"):
            validate_port(port, "Test port")  # type: ignore[arg-type]


class TestValidateNonEmptyString:
    def test_valid_strings(self):
        assert validate_non_empty_string("env", "Tag key") == "env"
        assert validate_non_empty_string("  prod  ", "Tag value") == "prod"

    @pytest.mark.parametrize("value", ["", "   "])
    def test_invalid_strings(self, value):
        with pytest.raises(ValueError, match="Tag key cannot be empty"):
            validate_non_empty_string(value, "Tag key")


class TestHashing:
    """Test content and path hashing helpers."""

    def test_sha256_hex_bytes_and_text(self):
        expected = hashlib.sha256(b"serverPort = 7000").hexdigest()
        assert sha256_hex(b"serverPort = 7000") == expected
        assert sha256_hex("serverPort = 7000") == expected

    def test_path_slug_is_stable_prefix(self):
        slug = path_slug("/etc/frp/frpc-a.toml")

        assert len(slug) == SLUG_LENGTH
        assert slug == sha256_hex("/etc/frp/frpc-a.toml")[:SLUG_LENGTH]
        assert slug != path_slug("/etc/frp/frpc-b.toml")


class TestParseInt:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (7000, 7000),
            ("7000", 7000),
            (' "7000" ', 7000),
            ("'443'", 443),
            (None, None),
            ("", None),
            ("http", None),
            (True, None),
            ([7000], None),
        ],
    )
    def test_parse_int(self, value, expected):
        assert parse_int(value) == expected


class TestParsePort:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (7000, 7000),
            ("65535", 65535),
            (1, 1),
            (0, None),
            (-1, None),
            (65536, None),
            ("http", None),
        ],
    )
    def test_parse_port(self, value, expected):
        """Disabled or out-of-range ports read as unset."""
        assert parse_port(value) == expected


class TestMaskSensitiveData:
    """Test sensitive data masking function."""

    def test_mask_normal_data(self):
        assert mask_sensitive_data("secret123456") == "********3456"
        assert mask_sensitive_data("token_abcdef", show_chars=6) == "******abcdef"

    def test_mask_short_and_empty(self):
        assert mask_sensitive_data("abc") == "***"
        assert mask_sensitive_data("") == "<None>"
        assert mask_sensitive_data(None) == "<None>"

    def test_custom_mask_char(self):
        assert mask_sensitive_data("secret123", mask_char="#") == "#####t123"
