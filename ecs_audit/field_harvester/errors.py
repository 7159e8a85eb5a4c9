"""Exceptions raised by the field harvester."""
from __future__ import annotations


class FieldHarvesterError(Exception):
    """Base class for harvester failures."""


class SchemaEmptyError(FieldHarvesterError):
    """The reference CSV produced no usable field names."""


class ParseFallbackError(FieldHarvesterError):
    """A structured fragment could not be parsed strictly."""

    def __init__(self, fragment: str, cause: Exception | None = None) -> None:
        preview = fragment[:60].replace("\n", " ")
        super().__init__(f"could not parse fragment {preview!r}: {cause}")
        self.fragment = fragment
        self.cause = cause
