"""Markdown rendering of an audit report."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, cast

CATEGORY_SECTIONS = (
    ("core_fields", "Core fields"),
    ("vendor_fields", "Vendor fields"),
    ("custom_fields", "Custom fields"),
)


def render_summary(report: Mapping[str, Any], *, top: int = 10) -> str:
    summary = cast(Mapping[str, Any], report.get("summary", {}))
    metadata = cast(Mapping[str, Any], report.get("metadata", {}))
    lines = ["# ECS Field Usage Audit", ""]
    if summary.get("analysis_date"):
        lines.append(f"_Analysed: {summary['analysis_date']}_")
        lines.append("")
    if metadata.get("repo_path"):
        lines.append(f"**Repository:** {metadata['repo_path']}")
        lines.append("")
    lines.append(f"**Files scanned:** {summary.get('total_files', 0)}")
    lines.append(
        f"**Processed:** {summary.get('processed_files', 0)}, "
        f"**skipped:** {summary.get('skipped_files', 0)}, "
        f"**errors:** {summary.get('error_files', 0)}"
    )
    lines.append(f"**Reference fields available:** {metadata.get('schema_fields_available', 0)}")
    lines.append("")
    processed = int(summary.get("processed_files", 0) or 0)
    only_core = int(summary.get("files_with_only_core_fields", 0) or 0)
    lines.append(f"**Files using only core fields:** {only_core} ({format_ratio(only_core, processed)})")
    lines.append(f"**Files with custom fields:** {summary.get('files_with_custom_fields', 0)}")
    lines.append(f"**Files with vendor fields:** {summary.get('files_with_vendor_fields', 0)}")
    lines.append("")
    syntax_counts = cast(Mapping[str, int], metadata.get("syntax_counts", {}) or {})
    if syntax_counts:
        syntax_text = ", ".join(f"{name} ({count})" for name, count in sorted(syntax_counts.items()))
        lines.append(f"**By syntax:** {syntax_text}")
        lines.append("")
    for key, title in CATEGORY_SECTIONS:
        section = cast(Mapping[str, Any], report.get(key, {}) or {})
        lines.append(f"## {title}")
        lines.append("")
        lines.append(
            f"{section.get('total', 0)} distinct, "
            f"{section.get('total_occurrences', 0)} file references."
        )
        lines.append("")
        entries = list(cast(Iterable[Mapping[str, Any]], section.get("top_fields", []) or []))[:top]
        if not entries:
            lines.append("_None found._")
        else:
            lines.append("| Field | Files |")
            lines.append("| --- | --- |")
            for entry in entries:
                lines.append(f"| {escape_cell(str(entry.get('field', '')))} | {entry.get('count', 0)} |")
        lines.append("")
    skipped = list(cast(Iterable[Mapping[str, Any]], metadata.get("skipped_files_list", []) or []))
    errors = list(cast(Iterable[Mapping[str, Any]], metadata.get("error_files_list", []) or []))
    if skipped or errors:
        lines.append("## Skipped files")
        lines.append("")
        for entry in skipped:
            lines.append(f"- {entry.get('file', '')} ({entry.get('reason', 'skipped')})")
        for entry in errors:
            lines.append(f"- {entry.get('file', '')} (error: {entry.get('error', '')})")
        lines.append("")
    return "\n".join(lines)


def write_summary(path: Path, report: Mapping[str, Any], *, top: int = 10) -> str:
    content = render_summary(report, top=top)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return content


def format_ratio(part: int, whole: int) -> str:
    if not whole:
        return "n/a"
    return f"{part / whole:.0%}"


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|")
