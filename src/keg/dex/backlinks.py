"""Backlink index (backlinks): destination node to the nodes linking to it.

Maintained as the incremental inverse of the link index by the Dex
façade; nothing here consults the link index.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..config import BACKLINKS_INDEX
from ..node_data import NodeData
from ..node_id import NodeId
from ._base import ListIndex


class BacklinkIndex(ListIndex):
    name = BACKLINKS_INDEX

    def add(self, node: NodeData) -> None:
        """Record node as a source for each of its destinations."""
        for dest in node.links:
            self._merge(dest.path, [node.id])

    def rm_source(self, node_id: NodeId, dests: Iterable[NodeId]) -> None:
        """Retract node_id as a source of the given destinations."""
        for dest in dests:
            self._discard(dest.path, node_id)

    def rm(self, node_id: NodeId) -> None:
        """Drop node_id as a source everywhere and as a destination key."""
        self._data.pop(node_id.path, None)
        self._purge(node_id)

    def backlinks(self, node_id: NodeId) -> list[NodeId]:
        return self.get(node_id.path)
