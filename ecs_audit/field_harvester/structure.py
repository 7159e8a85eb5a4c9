"""Structural parsing of mapping ``properties`` trees.

Regular expressions cannot bound arbitrarily nested ``{ ... }`` blocks, so
mapping definitions found in source text are carved out with a balanced
delimiter scan, parsed strictly and walked as a tree. When a fragment is not
strict JSON (JavaScript object literals with single quotes, trailing commas,
comments) the fragment alone falls back to pattern matching.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from .errors import ParseFallbackError
from .validator import is_valid_field_name

logger = logging.getLogger(__name__)

PROPERTIES_KEY_RE = re.compile(r"""['"]?\bproperties['"]?\s*:\s*\{""")
TYPED_KEY_RE = re.compile(
    r"""['"]([a-zA-Z@][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*)['"]\s*:\s*\{[^}]*\btype['"]?\s*:"""
)
QUOTED_DOTTED_RE = re.compile(
    r"""['"]([a-zA-Z@][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)+)['"]"""
)

_QUOTES = {'"', "'", "`"}


def find_block_end(
    text: str, open_index: int, open_char: str = "{", close_char: str = "}"
) -> int | None:
    """Return the index of the delimiter closing ``text[open_index]``.

    Delimiters inside string literals and ``//`` or ``/* */`` comments are
    ignored. Returns ``None`` when the block is never closed.
    """
    depth = 0
    quote: str | None = None
    index = open_index
    length = len(text)
    while index < length:
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif text.startswith("//", index):
            line_end = text.find("\n", index)
            if line_end == -1:
                return None
            index = line_end
            continue
        elif text.startswith("/*", index):
            comment_end = text.find("*/", index + 2)
            if comment_end == -1:
                return None
            index = comment_end + 2
            continue
        elif char in _QUOTES:
            quote = char
        elif char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def parse_fragment(fragment: str) -> Any:
    try:
        return json.loads(fragment)
    except ValueError as exc:
        raise ParseFallbackError(fragment, exc) from exc


def extract_from_tree(node: Any, path_prefix: str = "") -> set[str]:
    fields: set[str] = set()
    if not isinstance(node, Mapping):
        return fields
    for key, definition in node.items():
        key = str(key)
        path = f"{path_prefix}.{key}" if path_prefix else key
        if isinstance(definition, Mapping) and isinstance(definition.get("properties"), Mapping):
            fields |= extract_from_tree(definition["properties"], path)
        elif isinstance(definition, Mapping) and definition.get("type"):
            if is_valid_field_name(path):
                fields.add(path)
        elif is_valid_field_name(path):
            # leaves without an explicit type still declare a field
            fields.add(path)
    return fields


def extract_from_mapping_document(node: Any) -> set[str]:
    """Walk an index mapping document (``{"mappings": {"properties": ...}}``)."""
    if not isinstance(node, Mapping):
        return set()
    mappings = node.get("mappings")
    if isinstance(mappings, Mapping) and isinstance(mappings.get("properties"), Mapping):
        return extract_from_tree(mappings["properties"])
    if isinstance(node.get("properties"), Mapping):
        return extract_from_tree(node["properties"])
    return extract_from_tree(node)


def extract_with_fragment_patterns(fragment: str) -> set[str]:
    fields: set[str] = set()
    for pattern in (TYPED_KEY_RE, QUOTED_DOTTED_RE):
        for match in pattern.finditer(fragment):
            name = match.group(1)
            if is_valid_field_name(name):
                fields.add(name)
    return fields


def extract_properties_blocks(text: str) -> set[str]:
    fields: set[str] = set()
    consumed_until = -1
    for match in PROPERTIES_KEY_RE.finditer(text):
        open_index = match.end() - 1
        if open_index <= consumed_until:
            continue
        close_index = find_block_end(text, open_index)
        if close_index is None:
            logger.debug("Unbalanced properties block at offset %d", open_index)
            continue
        consumed_until = close_index
        fragment = text[open_index : close_index + 1]
        try:
            tree = parse_fragment(fragment)
        except ParseFallbackError as exc:
            logger.debug("Falling back to patterns: %s", exc)
            fields |= extract_with_fragment_patterns(fragment)
            continue
        fields |= extract_from_tree(tree)
    return fields
