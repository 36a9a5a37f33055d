"""Shared behavior for the list-valued indices (tags, links, backlinks).

Each of these is a line-oriented, tab-separated artifact:

    <key><TAB><path> <path> ...

Keys that parse as node paths sort by node order before every other key,
which sorts lexicographically. Value lists are deduplicated by path and
sorted. A key whose list becomes empty is dropped, so an empty line is
never written.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Self

from ..node_id import NodeId, index_key_order, normalize_ids, try_parse_node

log = logging.getLogger(__name__)


class ListIndex:
    """Mapping of key to a sorted, deduplicated list of NodeIds.

    Not synchronized; the Dex façade guards every instance.
    """

    name = ""

    def __init__(self, data: dict[str, Iterable[NodeId]] | None = None) -> None:
        self._data: dict[str, list[NodeId]] = {}
        for key, ids in (data or {}).items():
            self._merge(key, ids)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._data)} keys)"

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ListIndex):
            return NotImplemented
        return type(self) is type(other) and self._data == other._data

    @classmethod
    def normalize_key(cls, key: str) -> str:
        return key.strip()

    @classmethod
    def parse(cls, data: bytes | str) -> Self:
        """Parse serialized index bytes.

        Malformed lines and unparseable node tokens are skipped. Repeated
        keys are merged.
        """
        idx = cls()
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        for lineno, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            raw_key, sep, rest = line.partition("\t")
            key = cls.normalize_key(raw_key)
            if not sep or not key:
                log.debug("Skipping malformed %s line %d: %r", cls.name, lineno, line)
                continue
            ids = []
            for token in rest.split():
                node = try_parse_node(token)
                if node is None:
                    log.debug("Skipping malformed node %r in %s line %d", token, cls.name, lineno)
                    continue
                ids.append(node)
            idx._merge(key, ids)
        return idx

    def data(self) -> bytes:
        """Serialize in canonical order."""
        lines = []
        for key in self.keys():
            paths = " ".join(node.path for node in self._data[key])
            lines.append(f"{key}\t{paths}\n")
        return "".join(lines).encode("utf-8")

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return sorted(self._data, key=index_key_order)

    def get(self, key: str) -> list[NodeId]:
        return list(self._data.get(key, ()))

    def to_dict(self) -> dict[str, list[NodeId]]:
        """Copy of the mapping in canonical key order."""
        return {key: list(self._data[key]) for key in self.keys()}

    # ─────────────────────────────────────────────────────────────────────
    # Primitive mutations
    # ─────────────────────────────────────────────────────────────────────

    def _merge(self, key: str, ids: Iterable[NodeId]) -> None:
        self._replace(key, [*self._data.get(key, ()), *ids])

    def _replace(self, key: str, ids: Iterable[NodeId]) -> None:
        merged = normalize_ids(ids)
        if merged:
            self._data[key] = merged
        else:
            self._data.pop(key, None)

    def _discard(self, key: str, node: NodeId) -> None:
        current = self._data.get(key)
        if current is None:
            return
        self._replace(key, [n for n in current if n.path != node.path])

    def _purge(self, node: NodeId) -> None:
        """Remove node from every value list."""
        for key in list(self._data):
            self._discard(key, node)
