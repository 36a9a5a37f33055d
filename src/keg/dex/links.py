"""Link index (links): source node to the nodes it links to."""

from __future__ import annotations

from collections.abc import Iterable

from ..config import LINKS_INDEX
from ..node_data import NodeData
from ..node_id import NodeId
from ._base import ListIndex


class LinkIndex(ListIndex):
    name = LINKS_INDEX

    def add(self, node: NodeData) -> None:
        """Merge the node's outgoing links into its entry."""
        self._merge(node.id.path, node.links)

    def set(self, node_id: NodeId, links: Iterable[NodeId]) -> None:
        """Replace the outgoing links of node_id."""
        self._replace(node_id.path, links)

    def rm(self, node_id: NodeId) -> None:
        """Drop node_id as a source and as a destination of any source."""
        self._data.pop(node_id.path, None)
        self._purge(node_id)

    def links(self, node_id: NodeId) -> list[NodeId]:
        return self.get(node_id.path)
