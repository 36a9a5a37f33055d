"""In-memory Repository implementation.

Useful for tests and for tools that build a keg in process before
persisting it elsewhere. Thread-safe; node locks come from a
NodeLockTable.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import TypeVar

from .errors import KegError
from .locking import NodeLockTable
from .node_id import NodeId
from .node_stats import NodeStats

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _StoredNode:
    content: bytes | None = None
    meta: bytes | None = None
    stats: bytes | None = None
    items: dict[str, bytes] = field(default_factory=dict)
    images: dict[str, bytes] = field(default_factory=dict)


class MemoryRepository:
    """Process-local storage for nodes and index artifacts."""

    name = "memory"

    def __init__(self, locks: NodeLockTable | None = None) -> None:
        self._mu = threading.RLock()
        self._nodes: dict[NodeId, _StoredNode] = {}
        self._indexes: dict[str, bytes] = {}
        self._locks = locks if locks is not None else NodeLockTable.from_config()

    def _node(self, node_id: NodeId, artifact: str = "node") -> _StoredNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise KegError.not_found(artifact, node=node_id.path)
        return node

    def _ensure(self, node_id: NodeId) -> _StoredNode:
        node = self._nodes.get(node_id)
        if node is None:
            node = self._nodes[node_id] = _StoredNode()
        return node

    # ─────────────────────────────────────────────────────────────────────
    # Index artifacts
    # ─────────────────────────────────────────────────────────────────────

    def get_index(self, name: str) -> bytes:
        with self._mu:
            data = self._indexes.get(name)
        if data is None:
            raise KegError.not_found("index", name=name)
        return data

    def write_index(self, name: str, data: bytes) -> None:
        with self._mu:
            self._indexes[name] = bytes(data)

    def list_indexes(self) -> list[str]:
        with self._mu:
            return sorted(self._indexes)

    def clear_indexes(self) -> None:
        with self._mu:
            self._indexes.clear()

    # ─────────────────────────────────────────────────────────────────────
    # Side files
    # ─────────────────────────────────────────────────────────────────────

    def read_content(self, node_id: NodeId) -> bytes:
        """Content bytes; b"" for a node that exists without content."""
        with self._mu:
            return self._node(node_id, "content").content or b""

    def write_content(self, node_id: NodeId, data: bytes) -> None:
        with self._mu:
            self._ensure(node_id).content = bytes(data)

    def read_meta(self, node_id: NodeId) -> bytes:
        with self._mu:
            meta = self._node(node_id, "meta").meta
        if meta is None:
            raise KegError.not_found("meta", node=node_id.path)
        return meta

    def write_meta(self, node_id: NodeId, data: bytes) -> None:
        with self._mu:
            self._ensure(node_id).meta = bytes(data)

    def read_stats(self, node_id: NodeId) -> NodeStats:
        """Stored stats, or empty stats for a node that has none yet."""
        with self._mu:
            raw = self._node(node_id, "stats").stats
        if raw is None:
            return NodeStats()
        return NodeStats.parse(raw)

    def write_stats(self, node_id: NodeId, stats: NodeStats) -> None:
        data = stats.to_json()
        with self._mu:
            self._ensure(node_id).stats = data

    # ─────────────────────────────────────────────────────────────────────
    # Attachments
    # ─────────────────────────────────────────────────────────────────────

    def list_items(self, node_id: NodeId) -> list[str]:
        with self._mu:
            return sorted(self._node(node_id).items)

    def list_images(self, node_id: NodeId) -> list[str]:
        with self._mu:
            return sorted(self._node(node_id).images)

    def write_item(self, node_id: NodeId, name: str, data: bytes) -> None:
        with self._mu:
            self._ensure(node_id).items[name] = bytes(data)

    def write_image(self, node_id: NodeId, name: str, data: bytes) -> None:
        with self._mu:
            self._ensure(node_id).images[name] = bytes(data)

    # ─────────────────────────────────────────────────────────────────────
    # Nodes
    # ─────────────────────────────────────────────────────────────────────

    def list_nodes(self) -> list[NodeId]:
        with self._mu:
            return sorted(self._nodes)

    def has_node(self, node_id: NodeId) -> bool:
        with self._mu:
            return node_id in self._nodes

    def next_id(self) -> NodeId:
        """One past the highest stored id, or 0 when empty."""
        with self._mu:
            if not self._nodes:
                return NodeId(0)
            return NodeId(max(node.id for node in self._nodes) + 1)

    def move_node(self, src: NodeId, dst: NodeId) -> None:
        with self._mu:
            node = self._node(src)
            if dst in self._nodes:
                raise KegError.destination_exists(dst.path)
            self._nodes[dst] = node
            del self._nodes[src]
        log.debug("Moved node %s to %s", src, dst)

    def delete_node(self, node_id: NodeId) -> None:
        with self._mu:
            self._node(node_id)
            del self._nodes[node_id]

    # ─────────────────────────────────────────────────────────────────────
    # Locking
    # ─────────────────────────────────────────────────────────────────────

    def node_lock(
        self,
        node_id: NodeId,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> AbstractContextManager[None]:
        return self._locks.hold(node_id, timeout=timeout, cancel=cancel)

    def with_node_lock(
        self,
        node_id: NodeId,
        fn: Callable[[], T],
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> T:
        """Run fn while holding the lock for node_id and return its result."""
        with self.node_lock(node_id, timeout=timeout, cancel=cancel):
            return fn()
