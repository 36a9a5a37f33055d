"""Tag-filtered indices: a changes-style list limited to matching nodes.

A filtered index is named by the caller (for example ``guides.md``) and
carries a tag expression. Nodes whose tags satisfy the expression are
listed newest first, in the same line format as changes.md; a node that
stops matching drops out on its next add.
"""

from __future__ import annotations

import logging

from ..config import CORE_INDEXES
from ..errors import KegError
from ..models import NodeIndexEntry
from ..node_data import NodeData
from ..node_id import NodeId
from ..tag_expr import TagExpr, parse_tag_expression
from .changes import newest_first, read_change_lines, render_change_lines

log = logging.getLogger(__name__)


class TagFilteredIndex:
    """Newest-first node list restricted by a tag expression.

    Raises:
        KegError: INVALID when the name is empty or collides with a core
            index, or the expression does not parse.
    """

    def __init__(
        self,
        name: str,
        expression: str | TagExpr,
        entries: list[NodeIndexEntry] | None = None,
    ) -> None:
        name = name.strip()
        if not name or "/" in name:
            raise KegError.invalid(f"invalid filtered index name {name!r}", index=name)
        if name in CORE_INDEXES:
            raise KegError.invalid(f"index name {name!r} is reserved", index=name)
        self.name = name
        self.expression = expression if isinstance(expression, TagExpr) else parse_tag_expression(expression)
        self._data: dict[str, NodeIndexEntry] = {}
        for entry in entries or []:
            self.upsert(entry)

    def __repr__(self) -> str:
        return f"TagFilteredIndex({self.name!r}, {str(self.expression)!r}, {len(self._data)} entries)"

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TagFilteredIndex):
            return NotImplemented
        return (self.name, self.expression, self._data) == (other.name, other.expression, other._data)

    def load(self, data: bytes | str) -> None:
        """Replace the contents with a serialized artifact."""
        self._data.clear()
        for entry in read_change_lines(data, self.name):
            self.upsert(entry)

    def data(self) -> bytes:
        return render_change_lines(self.entries())

    def clear(self) -> None:
        self._data.clear()

    def matches(self, node: NodeData) -> bool:
        return self.expression.matches(node.tags)

    def add(self, node: NodeData) -> None:
        """Upsert the node when it matches; otherwise drop it."""
        if self.matches(node):
            self.upsert(node.ref())
        elif node.id.path in self._data:
            log.debug("Node %s left filtered index %s", node.id.path, self.name)
            self.rm(node.id)

    def upsert(self, entry: NodeIndexEntry) -> None:
        self._data[entry.id] = entry

    def rm(self, node_id: NodeId) -> None:
        self._data.pop(node_id.path, None)

    def entries(self) -> list[NodeIndexEntry]:
        return newest_first(self._data.values())
