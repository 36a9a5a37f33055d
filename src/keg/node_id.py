"""Canonical node identity.

A node is identified by a non-negative integer id and an optional
four-digit suffix used for uncommitted variants. The canonical path form
is ``"42"`` or ``"42-0001"``; index files and side files key on it.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import Iterable

# "<id>" or "<id>-<code>": id without leading zeros, code exactly 4 digits
_NODE_RE = re.compile(r"^(0|[1-9][0-9]*)(?:-([0-9]{4}))?$")


@dataclass(frozen=True, order=True)
class NodeId:
    """Immutable node identifier ordered by id, then suffix."""

    id: int
    suffix: str = ""

    def __post_init__(self) -> None:
        if self.id < 0:
            raise ValueError(f"node id must be non-negative, got {self.id}")

    @property
    def path(self) -> str:
        """Path component for file names, URLs and index keys.

        Examples:
            NodeId(42)         -> "42"
            NodeId(42, "0001") -> "42-0001"
        """
        if self.suffix:
            return f"{self.id}-{self.suffix}"
        return str(self.id)

    def __str__(self) -> str:
        return self.path

    def increment(self) -> NodeId:
        """Return the id one greater, keeping the suffix."""
        return NodeId(self.id + 1, self.suffix)

    def with_random_suffix(self) -> NodeId:
        """Return a temporary variant of this id with a random 4-digit suffix."""
        return NodeId(self.id, f"{secrets.randbelow(10000):04d}")


def parse_node(raw: str) -> NodeId:
    """Parse a node path into a NodeId.

    Accepted forms are ``"0"``, a non-negative integer without leading
    zeros, or ``"<id>-<code>"`` with a 4-digit code.

    Raises:
        ValueError: If the string is not a canonical node path.
    """
    if not raw:
        raise ValueError("parse node id: empty")
    match = _NODE_RE.match(raw)
    if match is None:
        raise ValueError(f"parse node id {raw!r}: not a node path")
    return NodeId(int(match.group(1)), match.group(2) or "")


def try_parse_node(raw: str) -> NodeId | None:
    """Like parse_node but returns None for malformed input."""
    try:
        return parse_node(raw)
    except ValueError:
        return None


def normalize_ids(ids: Iterable[NodeId]) -> list[NodeId]:
    """Deduplicate by path (latest occurrence wins) and sort ascending."""
    by_path: dict[str, NodeId] = {}
    for node in ids:
        by_path[node.path] = node
    return sorted(by_path.values())


def index_key_order(key: str) -> tuple:
    """Sort key for index keys.

    Keys that parse as node paths sort by NodeId order before all other
    keys, which sort lexicographically.
    """
    node = try_parse_node(key)
    if node is not None:
        return (0, node.id, node.suffix, "")
    return (1, 0, "", key)
