from __future__ import annotations

import json
import logging
import shutil
from collections import Counter
from pathlib import Path

import pytest

from ecs_audit.field_harvester import parser, renderer, report, schema
from ecs_audit.field_harvester.classify import FileAnalysisResult
from ecs_audit.field_harvester.extractors import SyntaxKind
from ecs_audit.scripts import audit_fields

SAMPLES = Path(__file__).resolve().parent / "_samples"

QUERY_JS = """export const recentLogins = {
  query: { term: { 'event.category': 'authentication' } },
  aggs: { users: { terms: { field: 'user.name' } } },
};
"""


@pytest.fixture()
def sandbox(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    for folder in ("src/__tests__", "config", "public", "node_modules/lib"):
        (root / folder).mkdir(parents=True)
    shutil.copy(SAMPLES / "alerts_service.ts", root / "src" / "alerts_service.ts")
    shutil.copy(SAMPLES / "mapping.json", root / "config" / "mapping.json")
    shutil.copy(SAMPLES / "pipeline.yml", root / "config" / "pipeline.yml")
    shutil.copy(SAMPLES / "dashboard.html", root / "public" / "dashboard.html")
    (root / "src" / "query.js").write_text(QUERY_JS, encoding="utf-8")
    (root / "src" / "empty.js").write_text("\n", encoding="utf-8")
    (root / "src" / "vendor.min.js").write_text(QUERY_JS, encoding="utf-8")
    (root / "src" / "__tests__" / "query.test.js").write_text(QUERY_JS, encoding="utf-8")
    (root / "node_modules" / "lib" / "index.js").write_text(QUERY_JS, encoding="utf-8")
    return root


@pytest.fixture()
def reference() -> frozenset[str]:
    return schema.load_schema_file(SAMPLES / "fields.csv")


@pytest.fixture()
def vendors() -> frozenset[str] | None:
    return schema.load_vendor_patterns(SAMPLES / "vendor_patterns.txt")


def all_extensions() -> set[str]:
    return parser.resolve_extensions(
        include_json=True, include_yaml=True, include_markdown=True, include_html=True
    )


def relative_files(root: Path, **kwargs: object) -> list[str]:
    return [
        path.relative_to(root).as_posix()
        for path in parser.iter_supported_files(root, **kwargs)  # type: ignore[arg-type]
    ]


def test_default_scan_covers_code_only(sandbox: Path) -> None:
    assert relative_files(sandbox) == [
        "src/alerts_service.ts",
        "src/empty.js",
        "src/query.js",
    ]


def test_optional_extensions_and_tests(sandbox: Path) -> None:
    files = relative_files(sandbox, extensions=all_extensions(), include_tests=True)
    assert "config/mapping.json" in files
    assert "config/pipeline.yml" in files
    assert "public/dashboard.html" in files
    assert "src/__tests__/query.test.js" in files
    assert "src/vendor.min.js" not in files
    assert not any(path.startswith("node_modules/") for path in files)


def test_exclude_globs(sandbox: Path) -> None:
    files = relative_files(sandbox, exclude=["src/query.*", "empty.js"])
    assert files == ["src/alerts_service.ts"]


def test_detect_syntax() -> None:
    assert parser.detect_syntax(Path("a.ts")) is SyntaxKind.TYPED_CODE
    assert parser.detect_syntax(Path("a.JSX")) is SyntaxKind.CODE
    assert parser.detect_syntax(Path("a.yml")) is SyntaxKind.STRUCTURED
    assert parser.detect_syntax(Path("a.htm")) is SyntaxKind.MARKUP
    assert parser.detect_syntax(Path("README.md")) is SyntaxKind.TEXT


def test_resolve_max_file_bytes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ECS_AUDIT_MAX_FILE_BYTES", raising=False)
    assert parser.resolve_max_file_bytes(None) == parser.DEFAULT_MAX_FILE_BYTES
    monkeypatch.setenv("ECS_AUDIT_MAX_FILE_BYTES", "2048")
    assert parser.resolve_max_file_bytes(None) == 2048
    monkeypatch.setenv("ECS_AUDIT_MAX_FILE_BYTES", "lots")
    assert parser.resolve_max_file_bytes(None) == parser.DEFAULT_MAX_FILE_BYTES
    assert parser.resolve_max_file_bytes(10) == 10


def test_scan_classifies_fields(
    sandbox: Path, reference: frozenset[str], vendors: frozenset[str] | None
) -> None:
    results = parser.scan_directory(sandbox, reference, vendors, directories=["src"])
    by_file = {result.file: result for result in results}
    assert set(by_file) == {"src/alerts_service.ts", "src/empty.js", "src/query.js"}
    service = by_file["src/alerts_service.ts"]
    assert service.status == "ok"
    assert service.syntax == "typed_code"
    assert service.core_fields == [
        "@timestamp",
        "event.action",
        "event.kind",
        "host.os.name",
        "kibana.alert.host.name",
        "kibana.alert.rule.name",
        "user.name",
    ]
    assert service.vendor_fields == ["threat_intel.indicator.ip"]
    assert service.custom_fields == ["acme.audit.reason", "acme.tenant.id"]
    assert by_file["src/empty.js"].status == "skipped"
    assert by_file["src/empty.js"].reason == "empty"


def test_oversized_files_are_skipped(sandbox: Path, reference: frozenset[str]) -> None:
    path = sandbox / "src" / "query.js"
    result = parser.analyze_file(path, sandbox, reference, None, max_bytes=10)
    assert result.status == "skipped"
    assert result.reason == "too_large"
    assert result.fields == ()


def test_failures_are_isolated_per_file(
    sandbox: Path,
    reference: frozenset[str],
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    original = parser.extract_candidates

    def flaky(text: str, syntax: SyntaxKind) -> set[str]:
        if "recentLogins" in text:
            raise RuntimeError("extractor exploded")
        return original(text, syntax)

    monkeypatch.setattr(parser, "extract_candidates", flaky)
    with caplog.at_level(logging.ERROR):
        results = parser.scan_directory(sandbox, reference, None, directories=["src"])
    by_file = {result.file: result for result in results}
    failed = by_file["src/query.js"]
    assert failed.status == "error"
    assert failed.error == "extractor exploded"
    assert failed.fields == ()
    assert by_file["src/alerts_service.ts"].status == "ok"
    assert "Failed to analyze" in caplog.text


def test_analyze_text_in_memory(reference: frozenset[str]) -> None:
    result = parser.analyze_text(QUERY_JS, SyntaxKind.CODE, reference)
    assert result.file == "<memory>"
    assert result.core_fields == ["event.category", "user.name"]
    assert result.custom_fields == []


def test_build_report_aggregates(
    sandbox: Path, reference: frozenset[str], vendors: frozenset[str] | None
) -> None:
    results = parser.scan_directory(sandbox, reference, vendors, extensions=all_extensions())
    audit = report.build_report(
        results, len(reference), repo_path=str(sandbox), directories=[]
    )
    summary = audit["summary"]
    assert summary["total_files"] == 6
    assert summary["processed_files"] == 5
    assert summary["skipped_files"] == 1
    assert summary["error_files"] == 0
    assert summary["files_with_only_core_fields"] == 1
    assert summary["files_with_custom_fields"] == 4
    assert summary["files_with_vendor_fields"] == 2
    assert audit["core_fields"]["top_fields"][0] == {"field": "user.name", "count": 4}
    assert audit["metadata"]["schema_fields_available"] == 14
    assert audit["metadata"]["syntax_counts"] == {
        "code": 2,
        "markup": 1,
        "structured": 2,
        "typed_code": 1,
    }
    assert audit["metadata"]["skipped_files_list"] == [{"file": "src/empty.js", "reason": "empty"}]


def test_sorted_counts_breaks_ties_by_name() -> None:
    counts = Counter({"b.field": 2, "a.field": 2, "c.field": 3})
    assert [entry["field"] for entry in report.sorted_counts(counts)] == [
        "c.field",
        "a.field",
        "b.field",
    ]


def test_report_round_trip_and_render(tmp_path: Path) -> None:
    results = [
        FileAnalysisResult(file="broken.js", syntax="code", status="error", error="boom"),
    ]
    audit = report.build_report(results, 3, repo_path="/repo")
    path = tmp_path / "out" / "report.json"
    report.save_report(path, audit)
    loaded = report.load_report(path)
    assert loaded["summary"]["error_files"] == 1
    content = renderer.render_summary(loaded)
    assert "# ECS Field Usage Audit" in content
    assert "_None found._" in content
    assert "- broken.js (error: boom)" in content


def test_cli_scan_and_render(
    sandbox: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output = tmp_path / "audit.json"
    summary = tmp_path / "SUMMARY.md"
    audit_fields.main(
        [
            "scan",
            "--repo",
            str(sandbox),
            "--fields-csv",
            str(SAMPLES / "fields.csv"),
            "--vendor-patterns",
            str(SAMPLES / "vendor_patterns.txt"),
            "--include-json",
            "--include-yaml",
            "--include-html",
            "--output",
            str(output),
            "--summary",
            str(summary),
        ]
    )
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["summary"]["processed_files"] == 5
    assert "| user.name | 4 |" in summary.read_text(encoding="utf-8")
    printed = capsys.readouterr().out
    assert "Files with only core fields:" in printed

    rendered = tmp_path / "RENDERED.md"
    audit_fields.main(["render", "--input", str(output), "--output", str(rendered), "--top", "1"])
    content = rendered.read_text(encoding="utf-8")
    assert "| user.name | 4 |" in content
    assert "| host.name |" not in content


def test_cli_rejects_empty_reference(sandbox: Path, tmp_path: Path) -> None:
    fields_csv = tmp_path / "fields.csv"
    fields_csv.write_text("type,description\nkeyword,user.name\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        audit_fields.main(["scan", "--repo", str(sandbox), "--fields-csv", str(fields_csv)])
    assert "empty" in str(excinfo.value)


def test_cli_rejects_missing_repo(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        audit_fields.main(["scan", "--repo", str(tmp_path / "missing")])


def test_parse_directory_list() -> None:
    assert audit_fields.parse_directory_list(" src, lib ,,") == ["src", "lib"]
    assert audit_fields.parse_directory_list(None) == []


def test_cli_rejects_unreadable_reference(tmp_path: Path) -> None:
    folder = tmp_path / "fields_dir"
    folder.mkdir()
    with pytest.raises(SystemExit) as excinfo:
        audit_fields.main(["fetch", "--fields-csv", str(folder)])
    assert "Cannot read reference fields" in str(excinfo.value)
