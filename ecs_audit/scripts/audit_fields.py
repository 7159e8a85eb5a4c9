#!/usr/bin/env python3
"""CLI entrypoint for the ECS field usage audit."""
from __future__ import annotations

import argparse
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from ecs_audit.field_harvester import load_reference_schema, parser, renderer, report, schema
from ecs_audit.field_harvester.errors import FieldHarvesterError, SchemaEmptyError

DEFAULT_FIELDS_CSV = Path("fields.csv")
TOP_FIELDS = 10
SKIPPED_PREVIEW = 10

logger = logging.getLogger("ecs_audit.field_harvester.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_repo(path: str) -> Path:
    resolved = Path(path).expanduser().resolve()
    if not resolved.is_dir():
        raise SystemExit(f"Repository directory not found: {resolved}")
    return resolved


def resolve_fields_csv(path: str | None) -> Path:
    return Path(path).expanduser() if path else DEFAULT_FIELDS_CSV


def parse_directory_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [entry.strip() for entry in value.split(",") if entry.strip()]


def load_reference(fields_csv: Path, url: str | None = None) -> frozenset[str]:
    try:
        return load_reference_schema(fields_csv, url)
    except SchemaEmptyError as exc:
        raise SystemExit(f"Reference schema is empty: {exc}") from exc
    except FieldHarvesterError as exc:
        raise SystemExit(str(exc)) from exc
    except OSError as exc:
        raise SystemExit(f"Cannot read reference fields {fields_csv}: {exc}") from exc


def command_scan(args: argparse.Namespace) -> None:
    repo = resolve_repo(args.repo)
    directories = parse_directory_list(args.directories)
    for directory in directories:
        if not (repo / directory).is_dir():
            logger.warning("Directory %s does not exist in %s", directory, repo)
    reference = load_reference(resolve_fields_csv(args.fields_csv))
    logger.info("Loaded %d reference fields", len(reference))
    vendor_patterns = schema.load_vendor_patterns(
        schema.resolve_vendor_patterns_path(args.vendor_patterns)
    )
    extensions = parser.resolve_extensions(
        include_json=args.include_json,
        include_yaml=args.include_yaml,
        include_markdown=args.include_markdown,
        include_html=args.include_html,
    )
    logger.info("Scanning %s", repo)
    results = parser.scan_directory(
        repo,
        reference,
        vendor_patterns,
        directories=directories,
        extensions=extensions,
        exclude=args.exclude or (),
        include_tests=args.include_tests,
        max_bytes=args.max_file_bytes,
    )
    audit = report.build_report(
        results, len(reference), repo_path=str(repo), directories=directories
    )
    print_summary(audit)
    if args.output:
        output_path = Path(args.output).expanduser()
        report.save_report(output_path, audit)
        logger.info("Results saved to %s", output_path)
    if args.summary:
        summary_path = Path(args.summary).expanduser()
        renderer.write_summary(summary_path, audit)
        logger.info("Summary written to %s", summary_path)


def command_fetch(args: argparse.Namespace) -> None:
    fields_csv = resolve_fields_csv(args.fields_csv)
    reference = load_reference(fields_csv, args.url)
    logger.info("%s holds %d reference fields", fields_csv, len(reference))


def command_render(args: argparse.Namespace) -> None:
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise SystemExit(f"Report not found: {input_path}. Run 'scan --output' first.")
    audit = report.load_report(input_path)
    output_path = Path(args.output).expanduser()
    content = renderer.write_summary(output_path, audit, top=args.top)
    logger.info("Summary written to %s (%d characters)", output_path, len(content))


def print_summary(audit: Mapping[str, Any]) -> None:
    summary = cast(Mapping[str, Any], audit["summary"])
    metadata = cast(Mapping[str, Any], audit["metadata"])
    print("Files parsed:".ljust(40), summary["total_files"])
    print("Files with only core fields:".ljust(40), summary["files_with_only_core_fields"])
    print("Files with custom fields:".ljust(40), summary["files_with_custom_fields"])
    print("Files with vendor fields:".ljust(40), summary["files_with_vendor_fields"])
    print("Files skipped:".ljust(40), summary["skipped_files"] + summary["error_files"])
    skipped = list(metadata["skipped_files_list"]) + list(metadata["error_files_list"])
    for entry in skipped[:SKIPPED_PREVIEW]:
        print("  ", entry["file"], "->", entry.get("reason") or entry.get("error"))
    if len(skipped) > SKIPPED_PREVIEW:
        print(f"   ... and {len(skipped) - SKIPPED_PREVIEW} more files")
    for key, title in renderer.CATEGORY_SECTIONS:
        section = cast(Mapping[str, Any], audit[key])
        print(f"\n{title}: {section['total']} distinct")
        for index, entry in enumerate(section["top_fields"][:TOP_FIELDS], start=1):
            print(f"  {index}. {entry['field']} - {entry['count']} files")


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Audit ECS field usage in a code base")
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Scan a repository for field references")
    scan_parser.add_argument("--repo", required=True, help="Repository directory to analyse")
    scan_parser.add_argument(
        "--directories", help="Comma-separated directories to scan, relative to the repository"
    )
    scan_parser.add_argument(
        "--fields-csv", help=f"Reference fields CSV (default: {DEFAULT_FIELDS_CSV})"
    )
    scan_parser.add_argument(
        "--vendor-patterns",
        help="Vendor pattern file, one pattern per line (overrides ECS_AUDIT_VENDOR_PATTERNS)",
    )
    scan_parser.add_argument("--output", help="Write the JSON report to this path")
    scan_parser.add_argument("--summary", help="Write a Markdown summary to this path")
    scan_parser.add_argument(
        "--exclude", action="append", help="Glob of files to skip (repeatable)"
    )
    scan_parser.add_argument(
        "--include-tests", action="store_true", help="Include test files and directories"
    )
    scan_parser.add_argument("--include-json", action="store_true", help="Scan JSON files")
    scan_parser.add_argument("--include-yaml", action="store_true", help="Scan YAML files")
    scan_parser.add_argument(
        "--include-markdown", action="store_true", help="Scan Markdown and text files"
    )
    scan_parser.add_argument("--include-html", action="store_true", help="Scan HTML files")
    scan_parser.add_argument(
        "--max-file-bytes",
        type=int,
        help="Skip files larger than this (overrides ECS_AUDIT_MAX_FILE_BYTES)",
    )
    scan_parser.set_defaults(func=command_scan)

    fetch_parser = subparsers.add_parser("fetch", help="Download the reference fields CSV")
    fetch_parser.add_argument(
        "--fields-csv", help=f"Where to store the CSV (default: {DEFAULT_FIELDS_CSV})"
    )
    fetch_parser.add_argument("--url", help="Source URL (overrides ECS_AUDIT_FIELDS_URL)")
    fetch_parser.set_defaults(func=command_fetch)

    render_parser = subparsers.add_parser("render", help="Render a Markdown summary")
    render_parser.add_argument("--input", required=True, help="JSON report from 'scan --output'")
    render_parser.add_argument("--output", required=True, help="Markdown destination")
    render_parser.add_argument("--top", type=int, default=TOP_FIELDS, help="Fields per table")
    render_parser.set_defaults(func=command_render)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
