"""Pattern libraries that pull candidate field names out of source text."""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

import yaml
from bs4 import BeautifulSoup

from .structure import (
    extract_from_mapping_document,
    extract_properties_blocks,
    find_block_end,
)
from .validator import is_valid_field_name

logger = logging.getLogger(__name__)


class SyntaxKind(str, Enum):
    TEXT = "text"
    STRUCTURED = "structured"
    CODE = "code"
    TYPED_CODE = "typed_code"
    MARKUP = "markup"


# Field name with at least one dot (or @timestamp-style prefix).
_DOTTED = r"[a-zA-Z@][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)+"
_ANY = r"[a-zA-Z@][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*"
_Q = r"""['"`]"""

CODE_CONTEXT_PATTERNS = [
    # { term: { 'field.name': value } } and friends
    re.compile(
        rf"\b(?:term|terms|match|match_phrase|match_phrase_prefix|prefix|wildcard|range)"
        rf"\s*:\s*\{{\s*{_Q}({_DOTTED}){_Q}\s*:"
    ),
    # { field: 'field.name' } covers exists / terms / date_histogram / cardinality
    re.compile(rf"""\bfield['"]?\s*:\s*{_Q}({_ANY}){_Q}"""),
    # sort: [{ 'field.name': { order: 'asc' } }]
    re.compile(rf"\bsort\s*:\s*\[?\s*\{{\s*{_Q}({_DOTTED}){_Q}\s*:"),
    # doc['field.name'].value, _source['field.name'], params._source['field.name']
    re.compile(rf"\b(?:doc|_source)\s*\[\s*{_Q}({_ANY}){_Q}\s*\]"),
    # 'field.name': { type: 'keyword' }
    re.compile(rf"{_Q}({_DOTTED}){_Q}\s*:\s*\{{[^}}]*\b(?:type|properties)['\"]?\s*:"),
]

CLIENT_BODY_RE = re.compile(
    r"\b\w*[cC]lient\.(?:index|create|update)\s*\(\s*\{"
)
BODY_KEY_RE = re.compile(r"\b(?:body|document|doc)\s*:\s*\{")
BULK_RE = re.compile(r"\b\w*[cC]lient\.bulk\s*\(\s*\{")
BULK_BODY_RE = re.compile(r"\b(?:body|operations)\s*:\s*\[")
DOCUMENT_KEY_RE = re.compile(rf"""['"]({_ANY})['"]\s*:""")

DECLARATION_RE = re.compile(
    r"\b(?:interface\s+\w+(?:<[^>{]*>)?(?:\s+extends\s+[^{;]+?)?|type\s+\w+(?:<[^>{]*>)?\s*=)\s*\{"
)
QUOTED_MEMBER_RE = re.compile(rf"""['"]({_ANY})['"]\s*\??\s*:""")
UNQUOTED_MEMBER_RE = re.compile(
    r"^\s*([a-zA-Z][a-zA-Z0-9_]*\.[a-zA-Z][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*)\s*\??\s*:",
    re.MULTILINE,
)

QUOTED_TOKEN_RE = re.compile(rf"""['"]({_ANY})['"]""")
BARE_DOTTED_RE = re.compile(
    r"\b([a-zA-Z][a-zA-Z0-9_]*\.[a-zA-Z][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*)\b"
)
YAML_KEY_RE = re.compile(rf"^[\s-]*({_ANY})\s*:", re.MULTILINE)

MARKUP_ATTRIBUTES = ("data-field", "data-ecs-field", "name", "title", "value")


def _collect(matches: Iterable[re.Match[str]]) -> set[str]:
    fields: set[str] = set()
    for match in matches:
        name = match.group(1)
        if name and is_valid_field_name(name):
            fields.add(name)
    return fields


def extract_with_patterns(text: str, patterns: Iterable[re.Pattern[str]]) -> set[str]:
    fields: set[str] = set()
    for pattern in patterns:
        fields |= _collect(pattern.finditer(text))
    return fields


def iter_blocks(
    text: str, opener: re.Pattern[str], open_char: str = "{", close_char: str = "}"
) -> Iterable[str]:
    """Yield the body of every balanced block whose opening delimiter ends ``opener``."""
    for match in opener.finditer(text):
        open_index = match.end() - 1
        close_index = find_block_end(text, open_index, open_char, close_char)
        if close_index is None:
            continue
        yield text[open_index + 1 : close_index]


def extract_from_client_bodies(text: str) -> set[str]:
    fields: set[str] = set()
    for call_args in iter_blocks(text, CLIENT_BODY_RE):
        for body in iter_blocks(call_args, BODY_KEY_RE):
            fields |= _collect(DOCUMENT_KEY_RE.finditer(body))
    for call_args in iter_blocks(text, BULK_RE):
        for body in iter_blocks(call_args, BULK_BODY_RE, "[", "]"):
            fields |= _collect(DOCUMENT_KEY_RE.finditer(body))
    return fields


def extract_from_code(text: str) -> set[str]:
    fields = extract_with_patterns(text, CODE_CONTEXT_PATTERNS)
    fields |= extract_from_client_bodies(text)
    fields |= extract_properties_blocks(text)
    return fields


def extract_from_type_declarations(text: str) -> set[str]:
    fields: set[str] = set()
    for body in iter_blocks(text, DECLARATION_RE):
        fields |= _collect(QUOTED_MEMBER_RE.finditer(body))
        fields |= _collect(UNQUOTED_MEMBER_RE.finditer(body))
    return fields


def extract_from_text(text: str) -> set[str]:
    return extract_with_patterns(text, (QUOTED_TOKEN_RE, BARE_DOTTED_RE))


def is_mapping_definition(node: Mapping[str, Any], prefix: str = "") -> bool:
    mappings = node.get("mappings")
    if isinstance(mappings, Mapping) and isinstance(mappings.get("properties"), Mapping):
        return True
    return "mappings" in prefix.split(".") and isinstance(node.get("properties"), Mapping)


def extract_from_object(node: Any, prefix: str = "", seen: set[int] | None = None) -> set[str]:
    """Walk a parsed document; containers shared through YAML aliases are visited once."""
    fields: set[str] = set()
    if not isinstance(node, (Mapping, list)):
        return fields
    if seen is None:
        seen = set()
    if id(node) in seen:
        return fields
    seen.add(id(node))
    if isinstance(node, list):
        for item in node:
            fields |= extract_from_object(item, prefix, seen)
        return fields
    if is_mapping_definition(node, prefix):
        return extract_from_mapping_document(node)
    for raw_key, value in node.items():
        key = str(raw_key)
        full_key = f"{prefix}.{key}" if prefix else key
        if is_valid_field_name(key):
            fields.add(key)
        if prefix and is_valid_field_name(full_key):
            fields.add(full_key)
        if isinstance(value, str) and is_valid_field_name(value):
            fields.add(value)
        if isinstance(value, (Mapping, list)):
            fields |= extract_from_object(value, full_key, seen)
    return fields


def _load_structured(text: str) -> Any:
    stripped = text.lstrip()
    if stripped.startswith(("{", "[")):
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Content is not strict JSON, trying YAML")
    documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    if len(documents) == 1:
        return documents[0]
    return documents


def extract_from_structured(text: str) -> set[str]:
    try:
        tree = _load_structured(text)
    except yaml.YAMLError as exc:
        logger.debug("Structured parse failed, using key patterns: %s", exc)
        return extract_with_patterns(text, (YAML_KEY_RE, QUOTED_TOKEN_RE))
    if not isinstance(tree, (Mapping, list)):
        return extract_with_patterns(text, (YAML_KEY_RE, QUOTED_TOKEN_RE))
    return extract_from_object(tree)


def extract_from_markup(text: str) -> set[str]:
    soup = BeautifulSoup(text, "lxml")
    fields: set[str] = set()
    # Inline scripts are code; styles carry no field references.
    for tag in soup(["script", "style"]):
        if tag.name == "script":
            fields |= extract_from_code(tag.get_text())
        tag.decompose()
    chunks = [soup.get_text("\n")]
    for tag in soup.find_all(True):
        for attribute in MARKUP_ATTRIBUTES:
            value = tag.get(attribute)
            if isinstance(value, str):
                chunks.append(f'"{value}"')
    return fields | extract_from_text("\n".join(chunks))


def extract_candidates(text: str, syntax: SyntaxKind) -> set[str]:
    if not text:
        return set()
    if syntax is SyntaxKind.CODE:
        return extract_from_code(text)
    if syntax is SyntaxKind.TYPED_CODE:
        return extract_from_code(text) | extract_from_type_declarations(text)
    if syntax is SyntaxKind.STRUCTURED:
        return extract_from_structured(text)
    if syntax is SyntaxKind.MARKUP:
        return extract_from_markup(text)
    return extract_from_text(text)
