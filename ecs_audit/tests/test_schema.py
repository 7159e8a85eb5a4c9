from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest
import requests

from ecs_audit.field_harvester import load_reference_schema, schema
from ecs_audit.field_harvester.errors import FieldHarvesterError, SchemaEmptyError

SAMPLES = Path(__file__).resolve().parent / "_samples"


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, Any]] = []

    def get(self, url: str, timeout: Any = None) -> FakeResponse:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def test_load_schema_from_reference_csv() -> None:
    fields = schema.load_schema_file(SAMPLES / "fields.csv")
    assert len(fields) == 14
    assert {"@timestamp", "user.name", "host.os.name", "message"} <= fields


def test_field_column_found_by_name() -> None:
    text = "type,field,description\nkeyword,user.name,description text\n"
    assert schema.load_schema(text) == frozenset({"user.name"})
    upper = "FIELD,type\nhost.name,keyword\n"
    assert schema.load_schema(upper) == frozenset({"host.name"})


def test_invalid_rows_are_skipped() -> None:
    text = "field\nuser.name\n\nnot a field\n1bad\n  event.kind  \n"
    assert schema.load_schema(text) == frozenset({"user.name", "event.kind"})


@pytest.mark.parametrize(
    "text",
    ["", "type,description\nkeyword,user.name\n", "field\n\n\n"],
)
def test_empty_schema_is_fatal(text: str) -> None:
    with pytest.raises(SchemaEmptyError):
        schema.load_schema(text)


def test_fetch_prefers_local_file(tmp_path: Path) -> None:
    path = tmp_path / "fields.csv"
    path.write_text("field\nuser.name\n", encoding="utf-8")
    session = FakeSession(error=AssertionError("network used"))
    assert schema.fetch_schema_csv(path, session=session) == "field\nuser.name\n"
    assert session.calls == []


def test_fetch_downloads_and_caches(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "fields.csv"
    session = FakeSession(FakeResponse("field\nuser.name\n"))
    content = schema.fetch_schema_csv(path, "https://example.invalid/fields.csv", session=session)
    assert content == "field\nuser.name\n"
    assert path.read_text(encoding="utf-8") == content
    assert session.calls == [
        ("https://example.invalid/fields.csv", schema.FETCH_TIMEOUT_SECONDS)
    ]


def test_fetch_wraps_network_errors(tmp_path: Path) -> None:
    session = FakeSession(error=requests.ConnectionError("unreachable"))
    with pytest.raises(FieldHarvesterError):
        schema.fetch_schema_csv(tmp_path / "fields.csv", session=session)
    bad_status = FakeSession(FakeResponse("", status_code=404))
    with pytest.raises(FieldHarvesterError):
        schema.fetch_schema_csv(tmp_path / "fields.csv", session=bad_status)
    assert not (tmp_path / "fields.csv").exists()


def test_resolve_fields_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ECS_AUDIT_FIELDS_URL", raising=False)
    assert schema.resolve_fields_url() == schema.DEFAULT_FIELDS_URL
    monkeypatch.setenv("ECS_AUDIT_FIELDS_URL", "https://mirror.invalid/fields.csv")
    assert schema.resolve_fields_url() == "https://mirror.invalid/fields.csv"
    assert schema.resolve_fields_url("https://cli.invalid/f.csv") == "https://cli.invalid/f.csv"


def test_parse_vendor_patterns() -> None:
    patterns = schema.parse_vendor_patterns((SAMPLES / "vendor_patterns.txt").read_text())
    assert patterns == frozenset({".siem_signals", "endpoint.", "threat_intel"})


def test_missing_vendor_file_is_not_fatal(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    assert schema.load_vendor_patterns(None) is None
    with caplog.at_level(logging.WARNING):
        assert schema.load_vendor_patterns(tmp_path / "missing.txt") is None
    assert "Vendor patterns unavailable" in caplog.text


def test_resolve_vendor_patterns_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("ECS_AUDIT_VENDOR_PATTERNS", raising=False)
    assert schema.resolve_vendor_patterns_path() is None
    monkeypatch.setenv("ECS_AUDIT_VENDOR_PATTERNS", str(tmp_path / "vendors.txt"))
    assert schema.resolve_vendor_patterns_path() == tmp_path / "vendors.txt"


def test_load_reference_schema_reads_cached_csv(tmp_path: Path) -> None:
    path = tmp_path / "fields.csv"
    path.write_text("field\nuser.name\nhost.name\n", encoding="utf-8")
    assert load_reference_schema(path) == frozenset({"user.name", "host.name"})
