"""Changes index (changes.md): nodes newest-first by update time.

Each line is a markdown list item::

    * 2025-10-03 20:52:37Z [Title](../42)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Self

from ..config import CHANGES_INDEX
from ..models import NodeIndexEntry
from ..node_data import NodeData
from ..node_id import NodeId, index_key_order
from .nodes import clean_field

log = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^\* (\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})Z \[(.*)\]\(\.\./([^)\s]+)\)$")
_TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"

# Placeholder written for entries that were never updated
_ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)


def _utc(value: datetime | None) -> datetime:
    if value is None:
        return _ZERO_TIME
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _format_time(value: datetime | None) -> str:
    t = _utc(value)
    return f"{t.year:04d}-{t.month:02d}-{t.day:02d} {t.hour:02d}:{t.minute:02d}:{t.second:02d}Z"


def _order(entry: NodeIndexEntry) -> tuple:
    return (-_utc(entry.updated).timestamp(), index_key_order(entry.id))


def newest_first(entries: Iterable[NodeIndexEntry]) -> list[NodeIndexEntry]:
    """Newest first; ties and undated entries fall back to node order."""
    return sorted(entries, key=_order)


def read_change_lines(data: bytes | str, artifact: str) -> list[NodeIndexEntry]:
    """Parse change-list lines, skipping malformed ones."""
    entries = []
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        match = _LINE_RE.match(line)
        if match is None:
            log.debug("Skipping malformed %s line %d: %r", artifact, lineno, line)
            continue
        stamp, title, path = match.groups()
        try:
            updated = datetime.strptime(stamp, _TIME_LAYOUT).replace(tzinfo=UTC)
        except ValueError:
            log.debug("Skipping %s line %d with bad timestamp %r", artifact, lineno, stamp)
            continue
        entries.append(NodeIndexEntry(id=path, title=title, updated=None if updated == _ZERO_TIME else updated))
    return entries


def render_change_lines(entries: Iterable[NodeIndexEntry]) -> bytes:
    lines = [f"* {_format_time(e.updated)} [{clean_field(e.title)}](../{e.id})\n" for e in entries]
    return "".join(lines).encode("utf-8")


class ChangesIndex:
    """Reverse-chronological list of NodeIndexEntry, one per node."""

    name = CHANGES_INDEX

    def __init__(self, entries: list[NodeIndexEntry] | None = None) -> None:
        self._data: dict[str, NodeIndexEntry] = {}
        for entry in entries or []:
            self.upsert(entry)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChangesIndex):
            return NotImplemented
        return self._data == other._data

    @classmethod
    def parse(cls, data: bytes | str) -> Self:
        return cls(read_change_lines(data, cls.name))

    def data(self) -> bytes:
        return render_change_lines(self.entries())

    def clear(self) -> None:
        self._data.clear()

    def add(self, node: NodeData) -> None:
        self.upsert(node.ref())

    def upsert(self, entry: NodeIndexEntry) -> None:
        self._data[entry.id] = entry

    def rm(self, node_id: NodeId) -> None:
        self._data.pop(node_id.path, None)

    def entries(self) -> list[NodeIndexEntry]:
        """Newest first; ties and undated entries fall back to node order."""
        return newest_first(self._data.values())
