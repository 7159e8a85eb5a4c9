"""Normalization helpers mapping transformed field paths back to schema names.

Different emitters encode the same field with different scaffolding: alert
documents prefix it with ``kibana.alert.``, index mappings wrap every level in
``properties``, and schema metadata echoes the namespace under ``fields``. Each
rule below undoes one of these conventions. Rules run in order and the first
one producing a schema member wins.
"""
from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Set

Rule = Callable[[str, Set[str]], str | None]

ALERT_PREFIXES = ("kibana.alert.",)
ORIGINAL_EVENT_SEGMENT = "original_event."
COMMON_NAMESPACES = ("event", "log", "user", "host", "process", "source", "destination")
RULE_PREFIX = "rule."
RULE_PARAMETERS_PREFIX = "rule.parameters."

METADATA_ATTRIBUTES = frozenset(
    {
        "aggregatable",
        "category",
        "description",
        "example",
        "format",
        "level",
        "name",
        "normalize",
        "short",
        "type",
    }
)

NESTED_ECHO_RE = re.compile(r"^([^.]+)\.fields\.\1\.([^.]+)(?:\.|$)")
METADATA_RE = re.compile(r"^([^.]+)\.fields\.(.+)$")


def strip_alert_prefix(candidate: str) -> str | None:
    for prefix in ALERT_PREFIXES:
        if candidate.startswith(prefix) and len(candidate) > len(prefix):
            return candidate[len(prefix) :]
    return None


def _first_hit(options: Iterable[str], schema: Set[str]) -> str | None:
    for option in options:
        if option in schema:
            return option
    return None


def _with_namespaces(name: str) -> list[str]:
    return [f"{namespace}.{name}" for namespace in COMMON_NAMESPACES]


def alert_prefix_rule(candidate: str, schema: Set[str]) -> str | None:
    remainder = strip_alert_prefix(candidate)
    if remainder is None:
        return None
    return remainder if remainder in schema else None


def original_event_rule(candidate: str, schema: Set[str]) -> str | None:
    remainder = strip_alert_prefix(candidate)
    if remainder is None or ORIGINAL_EVENT_SEGMENT not in remainder:
        return None
    index = remainder.index(ORIGINAL_EVENT_SEGMENT)
    rewritten = "event." + remainder[index + len(ORIGINAL_EVENT_SEGMENT) :]
    return rewritten if rewritten in schema else None


def namespace_rule(candidate: str, schema: Set[str]) -> str | None:
    remainder = strip_alert_prefix(candidate)
    if remainder is None:
        return None
    return _first_hit(_with_namespaces(remainder), schema)


def _sub_prefix_rule(prefix: str) -> Rule:
    def rule(candidate: str, schema: Set[str]) -> str | None:
        remainder = strip_alert_prefix(candidate)
        if remainder is None or not remainder.startswith(prefix):
            return None
        inner = remainder[len(prefix) :]
        if not inner:
            return None
        return _first_hit([inner, *_with_namespaces(inner)], schema)

    rule.__name__ = f"strip_{prefix.rstrip('.').replace('.', '_')}_rule"
    return rule


rule_prefix_rule = _sub_prefix_rule(RULE_PREFIX)
rule_parameters_rule = _sub_prefix_rule(RULE_PARAMETERS_PREFIX)


def mapping_scaffolding_rule(candidate: str, schema: Set[str]) -> str | None:
    segments = candidate.split(".")
    if "properties" not in segments:
        return None
    if segments[0] == "mappings":
        segments = segments[1:]
    # multi-field definitions (``name.fields.raw``) belong to ``name``
    if "fields" in segments:
        segments = segments[: segments.index("fields")]
    collapsed = [segment for segment in segments if segment != "properties"]
    options: list[str] = []
    if collapsed:
        options.append(".".join(collapsed))
        if len(collapsed) > 2 and collapsed[-1] in METADATA_ATTRIBUTES:
            options.append(".".join(collapsed[:-1]))
    # host.properties.name.<anything> -> host.name
    if len(segments) > 2 and segments[1] == "properties" and segments[0] != "properties":
        options.append(f"{segments[0]}.{segments[2]}")
    return _first_hit(options, schema)


def schema_metadata_rule(candidate: str, schema: Set[str]) -> str | None:
    match = METADATA_RE.match(candidate)
    if not match:
        return None
    inner = match.group(2)
    options = [inner]
    inner_segments = inner.split(".")
    if len(inner_segments) > 1 and inner_segments[-1] in METADATA_ATTRIBUTES:
        options.append(".".join(inner_segments[:-1]))
    return _first_hit(options, schema)


def namespace_echo_rule(candidate: str, schema: Set[str]) -> str | None:
    match = NESTED_ECHO_RE.match(candidate)
    if not match:
        return None
    collapsed = f"{match.group(1)}.{match.group(2)}"
    return collapsed if collapsed in schema else None


NORMALIZATION_RULES: tuple[Rule, ...] = (
    alert_prefix_rule,
    original_event_rule,
    namespace_rule,
    rule_prefix_rule,
    rule_parameters_rule,
    mapping_scaffolding_rule,
    schema_metadata_rule,
    namespace_echo_rule,
)


def normalize(
    candidate: str,
    schema: Set[str],
    rules: Iterable[Rule] = NORMALIZATION_RULES,
) -> str | None:
    """Return the schema name ``candidate`` maps to, or ``None``."""
    if not candidate:
        return None
    for rule in rules:
        hit = rule(candidate, schema)
        if hit is not None:
            return hit
    return None
