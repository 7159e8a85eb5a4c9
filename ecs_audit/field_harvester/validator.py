"""Heuristics that decide whether a token looks like an ECS-style field name."""
from __future__ import annotations

import re

FIELD_NAME_RE = re.compile(r"^[a-zA-Z@][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*$")
PREFIXED_NAME_RE = re.compile(r"^[@.]?[a-zA-Z][a-zA-Z0-9_]*(?:\.[a-zA-Z][a-zA-Z0-9_]*)*$")

SINGLE_WORD_FIELDS = frozenset({"@timestamp", "message", "tags", "labels", "error", "level"})

FILE_EXTENSION_PATTERNS = [
    re.compile(r"\.(png|jpg|jpeg|gif|svg|webp|ico|bmp)$", re.IGNORECASE),
    re.compile(r"\.(css|scss|less|sass)$", re.IGNORECASE),
    re.compile(r"\.(html|htm|xml|xhtml)$", re.IGNORECASE),
    re.compile(r"\.(js|ts|jsx|tsx|mjs|cjs)$", re.IGNORECASE),
    re.compile(r"\.(json|yaml|yml|toml|ini|cfg)$", re.IGNORECASE),
    re.compile(r"\.(txt|md|rst|log)$", re.IGNORECASE),
    re.compile(r"\.(woff|woff2|ttf|eot|otf)$", re.IGNORECASE),
    re.compile(r"\.(mp4|avi|mov|webm|mp3|wav|ogg)$", re.IGNORECASE),
    re.compile(r"\.(zip|tar|gz|rar|7z|dmg|iso)$", re.IGNORECASE),
    re.compile(r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx)$", re.IGNORECASE),
]

URL_PATTERNS = [
    re.compile(r"^https?://", re.IGNORECASE),
    re.compile(r"^ftp://", re.IGNORECASE),
    re.compile(r"^[a-zA-Z0-9-]+\.(com|org|net|edu|gov|mil|co|io|ly|me|ai|dev)$", re.IGNORECASE),
    re.compile(r"^www\.", re.IGNORECASE),
    re.compile(r"github\.com", re.IGNORECASE),
    re.compile(r"elastic\.co", re.IGNORECASE),
    re.compile(r"mitre\.org", re.IGNORECASE),
    re.compile(r"mozilla\.org", re.IGNORECASE),
    re.compile(r"stackoverflow\.com", re.IGNORECASE),
    re.compile(r"malpedia\.", re.IGNORECASE),
]

ASSET_PATTERNS = [
    re.compile(r"^(image|icon|logo|background|screenshot)\d*\.(png|jpg|jpeg|gif|svg)$", re.IGNORECASE),
    re.compile(r"assets\.", re.IGNORECASE),
    re.compile(r"static\.", re.IGNORECASE),
]

TEXT_ARTIFACT_PATTERNS = [
    re.compile(r"^e\.g$", re.IGNORECASE),
    re.compile(r"^i\.e$", re.IGNORECASE),
    re.compile(r"^etc$", re.IGNORECASE),
    re.compile(r"^vs$", re.IGNORECASE),
    re.compile(r"^[^.]*\.(exe|dll|bat|msi|scr)$", re.IGNORECASE),
    re.compile(r"^cmd$", re.IGNORECASE),
]

UI_CONFIG_PATTERNS = [
    re.compile(
        r"^(gridData|embeddableConfig|panelConfig|dashboardConfig|visualizationConfig"
        r"|layoutConfig|uiState|appState|globalState|columns|dataProviders)\.",
        re.IGNORECASE,
    ),
    re.compile(r"^meta\.anything", re.IGNORECASE),
    re.compile(r"anything_you_want", re.IGNORECASE),
    re.compile(r"^ui_", re.IGNORECASE),
    re.compile(r"^(example|template)\.", re.IGNORECASE),
]

HASH_SEGMENT_RE = re.compile(
    r"(?:^|\.)(?:[0-9a-f]{16,}|[0-9a-f]{8}(?:_[0-9a-f]{4}){3}_[0-9a-f]{12})(?:\.|$)",
    re.IGNORECASE,
)
GUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

IDE_PATTERNS = [
    # file.extension is a core ECS field
    re.compile(r"^(?!file\.)[a-z]+\.(markdown|extension|plugin)$", re.IGNORECASE),
    re.compile(r"^(vscode|extensions|settings)\.", re.IGNORECASE),
    re.compile(r"^ela\.st$", re.IGNORECASE),
    re.compile(r"^[a-z]{2,3}\.[a-z]{2,3}$", re.IGNORECASE),
]

# Matched exactly or as a dot-segment prefix, so ``process.env`` does not
# swallow ``process.env_vars``.
RUNTIME_ARTIFACTS = (
    "jest.fn",
    "jest.mock",
    "jest.Mock",
    "jest.clearAllMocks",
    "jest.resetAllMocks",
    "React.memo",
    "React.Component",
    "React.useState",
    "React.useEffect",
    "i18n.translate",
    "console.log",
    "console.error",
    "console.warn",
    "window.location",
    "document.getElementById",
    "Object.keys",
    "JSON.stringify",
    "Array.from",
    "String.prototype",
    "Number.prototype",
    "Math.random",
    "process.env",
    "module.exports",
    "require.resolve",
    "B.V",
)

COMMON_API_PATTERNS = [
    # routing objects
    re.compile(r"^(router|app|request|response|res|req)\.", re.IGNORECASE),
    # console and logging; ECS log.* stays valid
    re.compile(r"^(console|logger)\.", re.IGNORECASE),
    # runtime globals; ECS process.* stays valid
    re.compile(r"^(module|require|global|window|document)\.", re.IGNORECASE),
    re.compile(r"^(React|Vue|Angular|jQuery|_)\.", re.IGNORECASE),
    # built-in objects
    re.compile(r"^(Object|Array|String|Number|Date|Math|JSON)\.", re.IGNORECASE),
    # test frameworks
    re.compile(r"^(jest|expect|describe|it|test)\.", re.IGNORECASE),
    # configuration accessors
    re.compile(r"^(config|options|settings|params)\.", re.IGNORECASE),
    # HTTP clients; ECS http.request.*, http.response.* and http.version stay valid
    re.compile(r"^(https|fetch|axios)\.", re.IGNORECASE),
    re.compile(r"^http\.(?!(?:request|response|version)(?:\.|$))", re.IGNORECASE),
]


def is_common_api_pattern(candidate: str) -> bool:
    if not candidate or not isinstance(candidate, str):
        return False
    return any(pattern.search(candidate) for pattern in COMMON_API_PATTERNS)


def is_schema_field_format(candidate: str) -> bool:
    """Grammar-only check for trusted reference input."""
    if not candidate or not isinstance(candidate, str):
        return False
    return bool(FIELD_NAME_RE.match(candidate)) and len(candidate) > 1


def _has_prefix_shape(candidate: str) -> bool:
    if not PREFIXED_NAME_RE.match(candidate) or len(candidate) <= 1:
        return False
    return "." in candidate or len(candidate) > 2


def _is_runtime_artifact(candidate: str) -> bool:
    for artifact in RUNTIME_ARTIFACTS:
        if candidate == artifact or candidate.startswith(artifact + "."):
            return True
    return False


def _is_hash_like(candidate: str) -> bool:
    return bool(GUID_RE.match(candidate) or HASH_SEGMENT_RE.search(candidate))


def exclusion_reason(candidate: str) -> str | None:
    """Return the first exclusion category that rejects ``candidate``."""
    if any(pattern.search(candidate) for pattern in FILE_EXTENSION_PATTERNS):
        return "file_extension"
    if any(pattern.search(candidate) for pattern in URL_PATTERNS):
        return "url"
    if any(pattern.search(candidate) for pattern in ASSET_PATTERNS):
        return "asset"
    if any(pattern.search(candidate) for pattern in TEXT_ARTIFACT_PATTERNS):
        return "abbreviation"
    if any(pattern.search(candidate) for pattern in UI_CONFIG_PATTERNS):
        return "ui_config"
    if _is_hash_like(candidate):
        return "hash"
    if any(pattern.search(candidate) for pattern in IDE_PATTERNS):
        return "ide_reference"
    if _is_runtime_artifact(candidate) or is_common_api_pattern(candidate):
        return "api_call"
    return None


def is_valid_field_name(candidate: str) -> bool:
    if candidate == "@timestamp":
        return True
    if not candidate or not isinstance(candidate, str):
        return False
    if not _has_prefix_shape(candidate):
        return False
    if exclusion_reason(candidate) is not None:
        return False
    if "." not in candidate and candidate not in SINGLE_WORD_FIELDS:
        return False
    return (
        bool(FIELD_NAME_RE.match(candidate))
        and len(candidate) > 1
        and ".." not in candidate
        and not candidate.startswith(".")
        and not candidate.endswith(".")
    )
