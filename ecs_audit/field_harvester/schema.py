"""Reference schema and vendor pattern loading."""
from __future__ import annotations

import csv
import io
import logging
import os
from collections.abc import Iterator
from pathlib import Path

import requests

from .errors import FieldHarvesterError, SchemaEmptyError
from .validator import is_schema_field_format

logger = logging.getLogger(__name__)

DEFAULT_FIELDS_URL = (
    "https://raw.githubusercontent.com/elastic/ecs/main/generated/csv/fields.csv"
)
FIELD_COLUMN = "field"
FETCH_TIMEOUT_SECONDS = 30


def resolve_fields_url(value: str | None = None) -> str:
    if value:
        return value
    return os.environ.get("ECS_AUDIT_FIELDS_URL") or DEFAULT_FIELDS_URL


def resolve_vendor_patterns_path(value: str | Path | None = None) -> Path | None:
    if value:
        return Path(value).expanduser()
    env_value = os.environ.get("ECS_AUDIT_VENDOR_PATTERNS")
    if env_value:
        return Path(env_value).expanduser()
    return None


def _field_column(fieldnames: list[str] | None) -> str | None:
    for name in fieldnames or []:
        if name and name.strip().lower() == FIELD_COLUMN:
            return name
    return None


def _iter_rows(reader: csv.DictReader[str]) -> Iterator[dict[str, str]]:
    rows = iter(reader)
    while True:
        try:
            row = next(rows)
        except StopIteration:
            return
        except csv.Error as exc:
            logger.debug("Skipping malformed CSV row: %s", exc)
            continue
        yield row


def load_schema(csv_text: str) -> frozenset[str]:
    """Build the set of canonical field names from reference CSV text."""
    reader = csv.DictReader(io.StringIO(csv_text))
    try:
        column = _field_column(reader.fieldnames)
    except csv.Error as exc:
        raise SchemaEmptyError(f"Unreadable reference CSV header: {exc}") from exc
    fields: set[str] = set()
    if column is not None:
        for row in _iter_rows(reader):
            value = row.get(column)
            if not isinstance(value, str):
                continue
            name = value.strip()
            if name and is_schema_field_format(name):
                fields.add(name)
    if not fields:
        raise SchemaEmptyError("No valid field names found in reference CSV")
    logger.debug("Loaded %d reference fields", len(fields))
    return frozenset(fields)


def load_schema_file(path: Path) -> frozenset[str]:
    return load_schema(path.read_text(encoding="utf-8"))


def fetch_schema_csv(
    path: Path,
    url: str | None = None,
    *,
    session: requests.Session | None = None,
) -> str:
    """Return the reference CSV, downloading and caching it at ``path`` if missing."""
    if path.exists():
        logger.info("Using local reference fields file %s", path)
        return path.read_text(encoding="utf-8")
    source = resolve_fields_url(url)
    logger.info("Downloading reference fields from %s", source)
    http = session or requests.Session()
    try:
        response = http.get(source, timeout=FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FieldHarvesterError(f"Failed to fetch reference fields: {exc}") from exc
    content = response.text
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Reference fields saved to %s", path)
    return content


def parse_vendor_patterns(text: str) -> frozenset[str]:
    patterns: set[str] = set()
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.add(line)
    return frozenset(patterns)


def load_vendor_patterns(path: Path | None) -> frozenset[str] | None:
    if path is None:
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Vendor patterns unavailable (%s); only built-in vendor rules apply", exc)
        return None
    patterns = parse_vendor_patterns(text)
    logger.debug("Loaded %d vendor patterns from %s", len(patterns), path)
    return patterns
