"""ECS field harvester package."""
from __future__ import annotations

from pathlib import Path

from . import (
    classify,
    errors,
    extractors,
    normalize,
    parser,
    renderer,
    report,
    schema,
    structure,
    validator,
)

__all__ = [
    "classify",
    "errors",
    "extractors",
    "normalize",
    "parser",
    "renderer",
    "report",
    "schema",
    "structure",
    "validator",
    "load_reference_schema",
]


def load_reference_schema(path: Path, url: str | None = None) -> frozenset[str]:
    """Convenience wrapper returning the reference field set cached at ``path``."""
    from .schema import fetch_schema_csv, load_schema

    return load_schema(fetch_schema_csv(path, url))
