"""Tag normalization.

Tags are stored lowercase and hyphenated so that "Draft", "draft " and
"DRAFT" land on the same index key.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

_INVALID_RUN = re.compile(r"[^a-z0-9_-]+")
_HYPHEN_RUN = re.compile(r"-{2,}")
_SEPARATORS = re.compile(r",+")


def normalize_tag(tag: str) -> str:
    """Normalize a single tag.

    Lowercases, collapses any run of characters outside ``[a-z0-9_-]`` to
    one hyphen, collapses repeated hyphens and strips leading/trailing
    hyphens and underscores. Returns "" when nothing usable remains.

    Examples:
        "Machine Learning" -> "machine-learning"
        "  C++ / Rust "    -> "c-rust"
        "--draft__"        -> "draft"
    """
    value = _INVALID_RUN.sub("-", tag.strip().lower())
    value = _HYPHEN_RUN.sub("-", value)
    return value.strip("-_")


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Normalize, drop empties, dedupe and sort."""
    return sorted({t for t in (normalize_tag(str(tag)) for tag in tags) if t})


def parse_tags(raw: str) -> list[str]:
    """Parse a comma separated tag string; spaces inside a tag become hyphens."""
    return normalize_tags(part for part in _SEPARATORS.split(raw) if part)


def coerce_tags(raw: Any) -> list[str]:
    """Normalize tags from an arbitrary decoded YAML/JSON value.

    Sequences are normalized item by item; strings are split on commas;
    anything else is stringified first.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return parse_tags(raw)
    if isinstance(raw, (list, tuple, set, frozenset)):
        return normalize_tags(str(item) for item in raw if item is not None)
    return parse_tags(str(raw))
