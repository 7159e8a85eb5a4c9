"""Classification of candidate field names into core, vendor and custom."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Set
from dataclasses import dataclass, field
from enum import Enum

from .normalize import normalize

logger = logging.getLogger(__name__)

UI_NAMESPACE_PREFIXES = ("kibana.",)


class FieldCategory(str, Enum):
    CORE = "core"
    VENDOR = "vendor"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ClassifiedField:
    name: str
    category: FieldCategory

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "category": self.category.value}


@dataclass(frozen=True)
class FileAnalysisResult:
    """Outcome of analysing a single file."""

    file: str
    syntax: str | None
    fields: tuple[ClassifiedField, ...] = field(default_factory=tuple)
    status: str = "ok"
    error: str | None = None
    reason: str | None = None

    def _names(self, category: FieldCategory) -> list[str]:
        return [item.name for item in self.fields if item.category is category]

    @property
    def core_fields(self) -> list[str]:
        return self._names(FieldCategory.CORE)

    @property
    def vendor_fields(self) -> list[str]:
        return self._names(FieldCategory.VENDOR)

    @property
    def custom_fields(self) -> list[str]:
        return self._names(FieldCategory.CUSTOM)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "file": self.file,
            "syntax": self.syntax,
            "status": self.status,
            "core_fields": self.core_fields,
            "vendor_fields": self.vendor_fields,
            "custom_fields": self.custom_fields,
            "total_fields": len(self.fields),
        }
        if self.error is not None:
            data["error"] = self.error
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def is_schema_field(candidate: str, schema: Set[str]) -> bool:
    """True for schema members and their sub-fields (``user.name.keyword``)."""
    if candidate in schema:
        return True
    segments = candidate.split(".")
    for index in range(len(segments) - 1, 0, -1):
        if ".".join(segments[:index]) in schema:
            return True
    return False


def matches_vendor_pattern(candidate: str, patterns: Iterable[str] | None) -> bool:
    if not patterns:
        return False
    dotted = "." + candidate
    for pattern in patterns:
        if not pattern:
            continue
        if pattern in (candidate, dotted):
            return True
        if pattern.endswith("."):
            if candidate.startswith(pattern) or dotted.startswith(pattern):
                return True
            continue
        if candidate.startswith(pattern + ".") or dotted.startswith(pattern + "."):
            return True
    return False


def classify(
    candidate: str,
    schema: Set[str],
    vendor_patterns: Iterable[str] | None = None,
) -> FieldCategory:
    if is_schema_field(candidate, schema):
        return FieldCategory.CORE
    normalized = normalize(candidate, schema)
    if normalized is not None:
        logger.debug("Normalized %s to %s", candidate, normalized)
        return FieldCategory.CORE
    if candidate.startswith(UI_NAMESPACE_PREFIXES):
        return FieldCategory.VENDOR
    if matches_vendor_pattern(candidate, vendor_patterns):
        return FieldCategory.VENDOR
    return FieldCategory.CUSTOM


def classify_fields(
    candidates: Iterable[str],
    schema: Set[str],
    vendor_patterns: Iterable[str] | None = None,
) -> tuple[ClassifiedField, ...]:
    return tuple(
        ClassifiedField(name, classify(name, schema, vendor_patterns))
        for name in sorted(set(candidates))
    )
