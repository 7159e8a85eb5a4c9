"""File discovery and per-file analysis for the field audit."""
from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator, Set
from fnmatch import fnmatch
from pathlib import Path

from .classify import FileAnalysisResult, classify_fields
from .extractors import SyntaxKind, extract_candidates

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 1024 * 1024

SYNTAX_BY_EXTENSION = {
    ".js": SyntaxKind.CODE,
    ".jsx": SyntaxKind.CODE,
    ".mjs": SyntaxKind.CODE,
    ".cjs": SyntaxKind.CODE,
    ".ts": SyntaxKind.TYPED_CODE,
    ".tsx": SyntaxKind.TYPED_CODE,
    ".json": SyntaxKind.STRUCTURED,
    ".yaml": SyntaxKind.STRUCTURED,
    ".yml": SyntaxKind.STRUCTURED,
    ".md": SyntaxKind.TEXT,
    ".markdown": SyntaxKind.TEXT,
    ".txt": SyntaxKind.TEXT,
    ".html": SyntaxKind.MARKUP,
    ".htm": SyntaxKind.MARKUP,
}

CODE_EXTENSIONS = frozenset({".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx"})
JSON_EXTENSIONS = frozenset({".json"})
YAML_EXTENSIONS = frozenset({".yaml", ".yml"})
MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
HTML_EXTENSIONS = frozenset({".html", ".htm"})

EXCLUDED_DIRECTORIES = frozenset(
    {"node_modules", "dist", "build", "coverage", ".git", "target", "docs"}
)
TEST_PATH_MARKERS = ("/test/", "/tests/", "/__tests__/")
TEST_NAME_MARKERS = (".test.", ".spec.")
SKIPPED_FILE_NAMES = frozenset({"package-lock.json", "yarn.lock", "pnpm-lock.yaml", ".gitignore"})
SKIPPED_SUFFIXES = (".min.js", ".bundle.js", ".map", ".d.ts")


def resolve_max_file_bytes(value: int | None) -> int:
    if value is not None:
        return max(value, 0)
    env_value = os.environ.get("ECS_AUDIT_MAX_FILE_BYTES")
    if env_value:
        try:
            return max(int(env_value), 0)
        except ValueError:
            logger.debug("Invalid ECS_AUDIT_MAX_FILE_BYTES value: %s", env_value)
    return DEFAULT_MAX_FILE_BYTES


def resolve_extensions(
    include_json: bool = False,
    include_yaml: bool = False,
    include_markdown: bool = False,
    include_html: bool = False,
) -> set[str]:
    extensions = set(CODE_EXTENSIONS)
    if include_json:
        extensions |= JSON_EXTENSIONS
    if include_yaml:
        extensions |= YAML_EXTENSIONS
    if include_markdown:
        extensions |= MARKDOWN_EXTENSIONS
    if include_html:
        extensions |= HTML_EXTENSIONS
    return extensions


def detect_syntax(path: Path) -> SyntaxKind:
    return SYNTAX_BY_EXTENSION.get(path.suffix.lower(), SyntaxKind.TEXT)


def is_test_file(relative: str) -> bool:
    marked = "/" + relative.lower()
    name = marked.rsplit("/", 1)[-1]
    return any(marker in marked for marker in TEST_PATH_MARKERS) or any(
        marker in name for marker in TEST_NAME_MARKERS
    )


def _is_skipped_name(name: str) -> bool:
    lowered = name.lower()
    return lowered in SKIPPED_FILE_NAMES or lowered.endswith(SKIPPED_SUFFIXES)


def iter_supported_files(
    root: Path,
    extensions: Iterable[str] | None = None,
    *,
    exclude: Iterable[str] = (),
    include_tests: bool = False,
) -> Iterator[Path]:
    allowed = {ext.lower() for ext in (extensions or resolve_extensions())}
    patterns = list(exclude)
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if any(part in EXCLUDED_DIRECTORIES for part in relative.parts[:-1]):
            continue
        if path.suffix.lower() not in allowed or _is_skipped_name(path.name):
            continue
        rel_text = relative.as_posix()
        if not include_tests and is_test_file(rel_text):
            continue
        if any(fnmatch(rel_text, pattern) or fnmatch(path.name, pattern) for pattern in patterns):
            logger.debug("Excluded by pattern: %s", rel_text)
            continue
        yield path


def analyze_text(
    text: str,
    syntax: SyntaxKind,
    schema: Set[str],
    vendor_patterns: Iterable[str] | None = None,
    *,
    file: str = "<memory>",
) -> FileAnalysisResult:
    candidates = extract_candidates(text, syntax)
    logger.debug("%s: %d candidate fields", file, len(candidates))
    return FileAnalysisResult(
        file=file,
        syntax=syntax.value,
        fields=classify_fields(candidates, schema, vendor_patterns),
    )


def analyze_file(
    path: Path,
    base_path: Path,
    schema: Set[str],
    vendor_patterns: Iterable[str] | None = None,
    *,
    max_bytes: int | None = None,
) -> FileAnalysisResult:
    rel_file = path.relative_to(base_path).as_posix()
    syntax = detect_syntax(path)
    limit = resolve_max_file_bytes(max_bytes)
    try:
        size = path.stat().st_size
        if size > limit:
            logger.warning("Skipping %s: %d bytes exceeds limit of %d", rel_file, size, limit)
            return FileAnalysisResult(
                file=rel_file, syntax=syntax.value, status="skipped", reason="too_large"
            )
        text = path.read_text(encoding="utf-8", errors="ignore")
        if not text.strip():
            logger.debug("Skipping empty file %s", rel_file)
            return FileAnalysisResult(
                file=rel_file, syntax=syntax.value, status="skipped", reason="empty"
            )
        return analyze_text(text, syntax, schema, vendor_patterns, file=rel_file)
    except Exception as exc:
        logger.exception("Failed to analyze %s", path)
        return FileAnalysisResult(
            file=rel_file, syntax=syntax.value, status="error", error=str(exc)
        )


def scan_directory(
    root: Path,
    schema: Set[str],
    vendor_patterns: Iterable[str] | None = None,
    *,
    directories: Iterable[str] = (),
    extensions: Iterable[str] | None = None,
    exclude: Iterable[str] = (),
    include_tests: bool = False,
    max_bytes: int | None = None,
) -> list[FileAnalysisResult]:
    resolved_max = resolve_max_file_bytes(max_bytes)
    resolved_extensions = set(extensions) if extensions else resolve_extensions()
    exclude_patterns = list(exclude)
    targets = [root / directory for directory in directories] or [root]
    results: list[FileAnalysisResult] = []
    seen: set[Path] = set()
    for target in targets:
        if not target.is_dir():
            logger.warning("Directory not found: %s", target)
            continue
        for file_path in iter_supported_files(
            target,
            resolved_extensions,
            exclude=exclude_patterns,
            include_tests=include_tests,
        ):
            if file_path in seen:
                continue
            seen.add(file_path)
            results.append(
                analyze_file(file_path, root, schema, vendor_patterns, max_bytes=resolved_max)
            )
    logger.info("Analyzed %d files under %s", len(results), root)
    return results
