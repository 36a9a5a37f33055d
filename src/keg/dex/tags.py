"""Tag index (tags): normalized tag to the nodes that carry it."""

from __future__ import annotations

from collections.abc import Iterable

from ..config import TAGS_INDEX
from ..node_data import NodeData
from ..node_id import NodeId
from ..tag_expr import TagExpr
from ..tags import normalize_tag, normalize_tags
from ._base import ListIndex


class TagIndex(ListIndex):
    """Tag to node list.

    ``add`` is additive: it never drops a node from a tag. Use ``set_tags``
    or ``rm_tag`` to remove.
    """

    name = TAGS_INDEX

    @classmethod
    def normalize_key(cls, key: str) -> str:
        return normalize_tag(key)

    def add(self, node: NodeData) -> None:
        for tag in node.tags:
            self._merge(tag, [node.id])

    def set_tags(self, node_id: NodeId, tags: Iterable[str]) -> None:
        """Make ``tags`` the exact tag set recorded for node_id."""
        wanted = set(normalize_tags(tags))
        for key in list(self._data):
            if key not in wanted:
                self._discard(key, node_id)
        for tag in wanted:
            self._merge(tag, [node_id])

    def rm_tag(self, node_id: NodeId, tag: str) -> None:
        key = normalize_tag(tag)
        if key:
            self._discard(key, node_id)

    def rm(self, node_id: NodeId) -> None:
        self._purge(node_id)

    def nodes(self, tag: str) -> list[NodeId]:
        return self.get(normalize_tag(tag))

    def tags_for(self, node_id: NodeId) -> list[str]:
        return [key for key in self.keys() if any(n.path == node_id.path for n in self._data[key])]

    def select(self, expr: TagExpr, universe: Iterable[NodeId] = ()) -> list[NodeId]:
        """Nodes matching a tag expression, in node order.

        Negation is relative to ``universe`` plus every tagged node.
        """
        candidates = {n.path: n for n in universe}
        for ids in self._data.values():
            for n in ids:
                candidates.setdefault(n.path, n)
        selected = expr.evaluate(candidates, lambda tag: (n.path for n in self._data.get(tag, ())))
        return sorted(candidates[path] for path in selected)
