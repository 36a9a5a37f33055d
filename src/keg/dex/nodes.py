"""Node index (nodes.tsv): one row per node.

Row layout::

    <path><TAB><updated RFC 3339 or empty><TAB><title>
"""

from __future__ import annotations

import logging
import re
from typing import Self

from .._time import format_rfc3339, parse_timestamp
from ..config import NODES_INDEX
from ..models import NodeIndexEntry
from ..node_data import NodeData
from ..node_id import NodeId, index_key_order, try_parse_node

log = logging.getLogger(__name__)

_FIELD_BREAKS = re.compile(r"[\t\r\n]+")


def clean_field(text: str) -> str:
    return _FIELD_BREAKS.sub(" ", text).strip()


class NodeIndex:
    """Upsertable table of NodeIndexEntry keyed by node path."""

    name = NODES_INDEX

    def __init__(self, entries: list[NodeIndexEntry] | None = None) -> None:
        self._data: dict[str, NodeIndexEntry] = {}
        for entry in entries or []:
            self.upsert(entry)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, path: str) -> bool:
        return path in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeIndex):
            return NotImplemented
        return self._data == other._data

    @classmethod
    def parse(cls, data: bytes | str) -> Self:
        """Parse nodes.tsv. Rows without a valid node path are skipped."""
        idx = cls()
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        for lineno, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            parts = line.split("\t", 2)
            path = parts[0].strip()
            if try_parse_node(path) is None:
                log.debug("Skipping malformed %s line %d: %r", cls.name, lineno, line)
                continue
            updated = parse_timestamp(parts[1]) if len(parts) > 1 else None
            title = parts[2].strip() if len(parts) > 2 else ""
            idx.upsert(NodeIndexEntry(id=path, title=title, updated=updated))
        return idx

    def data(self) -> bytes:
        lines = []
        for entry in self.entries():
            updated = format_rfc3339(entry.updated) if entry.updated else ""
            lines.append(f"{entry.id}\t{updated}\t{clean_field(entry.title)}\n")
        return "".join(lines).encode("utf-8")

    def clear(self) -> None:
        self._data.clear()

    def add(self, node: NodeData) -> None:
        self.upsert(node.ref())

    def upsert(self, entry: NodeIndexEntry) -> None:
        self._data[entry.id] = entry

    def rm(self, node_id: NodeId) -> None:
        self._data.pop(node_id.path, None)

    def get(self, node_id: NodeId) -> NodeIndexEntry | None:
        return self._data.get(node_id.path)

    def entries(self) -> list[NodeIndexEntry]:
        """Entries in ascending node order."""
        return [self._data[key] for key in sorted(self._data, key=index_key_order)]

    def next_id(self) -> NodeId:
        """One past the highest numeric id, or 0 for an empty index."""
        ids = [node.id for node in map(try_parse_node, self._data) if node is not None]
        return NodeId(max(ids) + 1) if ids else NodeId(0)
