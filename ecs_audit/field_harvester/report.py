"""Aggregation of per-file results and report persistence."""
from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from .classify import FieldCategory, FileAnalysisResult


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def sorted_counts(counts: Counter[str]) -> list[dict[str, Any]]:
    """Most used first; ties broken by field name."""
    ordered = sorted(counts.items(), key=lambda entry: (-entry[1], entry[0]))
    return [{"field": name, "count": count} for name, count in ordered]


def _category_section(counts: Counter[str]) -> dict[str, Any]:
    return {
        "total": len(counts),
        "total_occurrences": sum(counts.values()),
        "top_fields": sorted_counts(counts),
    }


def build_report(
    results: Iterable[FileAnalysisResult],
    schema_size: int,
    *,
    repo_path: str = "",
    directories: Sequence[str] = (),
) -> dict[str, Any]:
    counters: dict[FieldCategory, Counter[str]] = {
        category: Counter() for category in FieldCategory
    }
    syntax_counts: Counter[str] = Counter()
    skipped: list[dict[str, str | None]] = []
    errors: list[dict[str, str | None]] = []
    files: list[dict[str, object]] = []
    total = 0
    only_core = 0
    with_custom = 0
    with_vendor = 0
    for result in results:
        total += 1
        syntax_counts[result.syntax or "unknown"] += 1
        if result.status == "skipped":
            skipped.append({"file": result.file, "reason": result.reason})
            continue
        if result.status == "error":
            errors.append({"file": result.file, "error": result.error})
            continue
        files.append(result.to_dict())
        for item in result.fields:
            counters[item.category][item.name] += 1
        core, vendor, custom = result.core_fields, result.vendor_fields, result.custom_fields
        if core and not vendor and not custom:
            only_core += 1
        if custom:
            with_custom += 1
        if vendor:
            with_vendor += 1
    return {
        "summary": {
            "total_files": total,
            "processed_files": len(files),
            "skipped_files": len(skipped),
            "error_files": len(errors),
            "files_with_only_core_fields": only_core,
            "files_with_custom_fields": with_custom,
            "files_with_vendor_fields": with_vendor,
            "core_fields_referenced": len(counters[FieldCategory.CORE]),
            "vendor_fields_referenced": len(counters[FieldCategory.VENDOR]),
            "custom_fields_referenced": len(counters[FieldCategory.CUSTOM]),
            "analysis_date": now_iso(),
        },
        "core_fields": _category_section(counters[FieldCategory.CORE]),
        "vendor_fields": _category_section(counters[FieldCategory.VENDOR]),
        "custom_fields": _category_section(counters[FieldCategory.CUSTOM]),
        "metadata": {
            "schema_fields_available": schema_size,
            "repo_path": repo_path,
            "target_directories": list(directories),
            "syntax_counts": dict(sorted(syntax_counts.items())),
            "skipped_files_list": skipped,
            "error_files_list": errors,
        },
        "files": files,
    }


def save_report(path: Path, report: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2)


def load_report(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return cast(dict[str, Any], json.load(fh))
