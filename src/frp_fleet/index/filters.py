"""Target filter expressions shared by bulk tagging and lifecycle operations."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .models import ConfigKind, ConfigRecord


class FilterType(str, Enum):
    """Supported filter dimensions."""

    ALL = "all"
    KIND = "kind"
    TAG = "tag"
    NAME = "name"
    STATUS = "status"


class TargetFilter(BaseModel):
    """Parsed filter expression.

    Grammar::

        all | kind:<kind> | type:<kind> | tag:<key>[:<value>]
            | name:<substring> | status:<status> | <substring>

    ``status`` filters need live supervisor state and are resolved by the
    lifecycle layer; :meth:`matches` rejects them.
    """

    model_config = ConfigDict(frozen=True)

    type: FilterType = Field(default=FilterType.ALL)
    key: str | None = Field(default=None)
    value: str | None = Field(default=None)

    @classmethod
    def parse(cls, text: str | None) -> "TargetFilter":
        """Parse a filter expression.

        Raises:
            ValueError: If the expression is malformed
        """
        text = (text or "").strip()
        if not text or text == "all":
            return cls(type=FilterType.ALL)

        prefix, sep, rest = text.partition(":")
        if not sep:
            return cls(type=FilterType.NAME, value=text)

        prefix = prefix.lower()
        if prefix in ("kind", "type"):
            try:
                kind = ConfigKind(rest.strip().lower())
            except ValueError:
                valid = ", ".join(k.value for k in ConfigKind)
                raise ValueError(f"Unknown config kind '{rest}'. Use one of: {valid}") from None
            return cls(type=FilterType.KIND, value=kind.value)
        if prefix == "tag":
            key, _, value = rest.partition(":")
            if not key:
                raise ValueError("Tag filter requires a key: tag:<key>[:<value>]")
            return cls(type=FilterType.TAG, key=key, value=value or None)
        if prefix == "name":
            if not rest:
                raise ValueError("Name filter requires a pattern: name:<pattern>")
            return cls(type=FilterType.NAME, value=rest)
        if prefix == "status":
            if not rest:
                raise ValueError("Status filter requires a value: status:<status>")
            return cls(type=FilterType.STATUS, value=rest.lower())

        raise ValueError(
            f"Invalid filter '{text}'. Use: all, kind:X, tag:key[:value], name:pattern or status:X"
        )

    def matches(self, record: ConfigRecord) -> bool:
        """True if ``record`` is selected by this filter."""
        if self.type is FilterType.ALL:
            return True
        if self.type is FilterType.KIND:
            return record.kind.value == self.value
        if self.type is FilterType.TAG:
            if self.key not in record.tags:
                return False
            return self.value is None or record.tags[self.key] == self.value
        if self.type is FilterType.NAME:
            return (self.value or "") in record.name
        raise ValueError("Status filters cannot be evaluated against index records")

    def __str__(self) -> str:
        if self.type is FilterType.ALL:
            return "all"
        if self.type is FilterType.TAG:
            return f"tag:{self.key}" + (f":{self.value}" if self.value else "")
        return f"{self.type.value}:{self.value}"
