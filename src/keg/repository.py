"""Storage contract consumed by keg.

Concrete backends (filesystem, object store) live outside this package;
``MemoryRepository`` is the in-process implementation. Every method
raises ``KegError``: NOT_FOUND for absent nodes and artifacts,
DESTINATION_EXISTS for move collisions, LOCK_TIMEOUT / LOCK_FAILED from
the node lock, BACKEND / TRANSIENT / RATE_LIMITED for storage failures.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Protocol, TypeVar, runtime_checkable

from .node_id import NodeId
from .node_stats import NodeStats

T = TypeVar("T")


@runtime_checkable
class Repository(Protocol):
    """Narrow storage interface for nodes, side files and index artifacts."""

    # Index artifacts
    def get_index(self, name: str) -> bytes: ...

    def write_index(self, name: str, data: bytes) -> None: ...

    # Node side files
    def read_meta(self, node_id: NodeId) -> bytes: ...

    def write_meta(self, node_id: NodeId, data: bytes) -> None: ...

    def read_stats(self, node_id: NodeId) -> NodeStats: ...

    def write_stats(self, node_id: NodeId, stats: NodeStats) -> None: ...

    def read_content(self, node_id: NodeId) -> bytes: ...

    def write_content(self, node_id: NodeId, data: bytes) -> None: ...

    # Listing and allocation
    def list_nodes(self) -> list[NodeId]: ...

    def list_items(self, node_id: NodeId) -> list[str]: ...

    def list_images(self, node_id: NodeId) -> list[str]: ...

    def next_id(self) -> NodeId: ...

    # Node lifecycle
    def move_node(self, src: NodeId, dst: NodeId) -> None: ...

    def delete_node(self, node_id: NodeId) -> None: ...

    # Locking
    def node_lock(
        self,
        node_id: NodeId,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> AbstractContextManager[None]: ...

    def with_node_lock(
        self,
        node_id: NodeId,
        fn: Callable[[], T],
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> T: ...
