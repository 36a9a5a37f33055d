"""Node operations over a Repository and a Dex.

Every operation runs under the per-node lock, so same-node calls from
different threads serialize. The lock is reentrant, so operations may be
composed (``create_node`` calls ``index_node``) without deadlocking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .config import CONTENT_FILENAME
from .dex import Dex
from .errors import KegError, is_not_found
from .node_data import NodeData
from .node_id import NodeId
from .node_meta import NodeMeta
from .node_stats import NodeStats
from .parser.content import parse_content
from .repository import Repository
from .runtime import DEFAULT_CLOCK, Clock, Hasher

log = logging.getLogger(__name__)


def _read_meta(repo: Repository, node_id: NodeId) -> NodeMeta:
    try:
        raw = repo.read_meta(node_id)
    except KegError as e:
        if not is_not_found(e):
            raise
        return NodeMeta()
    return NodeMeta.parse(raw)


def _read_stats(repo: Repository, node_id: NodeId) -> NodeStats:
    try:
        return repo.read_stats(node_id)
    except KegError as e:
        if not is_not_found(e):
            raise
        return NodeStats()


def _load(repo: Repository, node_id: NodeId, hasher: Hasher | None) -> NodeData:
    raw = repo.read_content(node_id)
    return NodeData(
        id=node_id,
        content=parse_content(raw, CONTENT_FILENAME, hasher),
        meta=_read_meta(repo, node_id),
        stats=_read_stats(repo, node_id),
        items=repo.list_items(node_id),
        images=repo.list_images(node_id),
    )


def load_node(repo: Repository, node_id: NodeId, hasher: Hasher | None = None) -> NodeData:
    """Assemble a node from storage.

    Missing meta or stats yield empty values; a missing node raises
    KegError(NOT_FOUND).
    """
    with repo.node_lock(node_id):
        return _load(repo, node_id, hasher)


def index_node(
    repo: Repository,
    dex: Dex,
    node_id: NodeId,
    clock: Clock | None = None,
    hasher: Hasher | None = None,
) -> NodeData:
    """Refresh a node's stats from its content and update the indices.

    ``updated`` only moves when the content hash changed.
    """
    clock = clock or DEFAULT_CLOCK
    with repo.node_lock(node_id):
        node = _load(repo, node_id, hasher)
        now = clock.now()
        changed = node.content_changed()
        node.update_stats(now)
        node.stats.ensure_times(now)
        repo.write_stats(node_id, node.stats)
        dex.add(node)
    log.debug("Indexed node %s (changed=%s)", node_id, changed)
    return node


def touch_node(repo: Repository, node_id: NodeId, clock: Clock | None = None) -> NodeStats:
    """Record an access: accessed = now, access count + 1."""
    clock = clock or DEFAULT_CLOCK
    with repo.node_lock(node_id):
        stats = _read_stats(repo, node_id)
        stats.touch(clock.now())
        repo.write_stats(node_id, stats)
    return stats


def create_node(
    repo: Repository,
    dex: Dex,
    content: bytes | str,
    tags: Iterable[str] = (),
    attrs: Mapping[str, Any] | None = None,
    clock: Clock | None = None,
    hasher: Hasher | None = None,
) -> NodeData:
    """Allocate an id, store content and meta, and index the new node."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    node_id = repo.next_id()
    with repo.node_lock(node_id):
        meta = NodeMeta()
        if attrs:
            meta.set_attrs(attrs)
        if tags:
            meta.set_tags(tags)
        repo.write_content(node_id, data)
        repo.write_meta(node_id, meta.serialize())
        node = index_node(repo, dex, node_id, clock=clock, hasher=hasher)
    log.info("Created node %s: %s", node_id, node.title)
    return node


def remove_node(repo: Repository, dex: Dex, node_id: NodeId) -> None:
    """Delete a node from storage and from every index."""
    with repo.node_lock(node_id):
        repo.delete_node(node_id)
        dex.remove(node_id)
    log.info("Removed node %s", node_id)


def move_node(
    repo: Repository,
    dex: Dex,
    src: NodeId,
    dst: NodeId,
    clock: Clock | None = None,
    hasher: Hasher | None = None,
) -> NodeData:
    """Move a node to a new id and re-index it there.

    Raises:
        KegError: DESTINATION_EXISTS when dst is taken, NOT_FOUND when src
            does not exist.
    """
    if src == dst:
        raise KegError.destination_exists(dst.path)
    # Fixed lock order so concurrent moves between the same pair cannot deadlock
    first, second = sorted((src, dst))
    with repo.node_lock(first), repo.node_lock(second):
        repo.move_node(src, dst)
        dex.remove(src)
        node = index_node(repo, dex, dst, clock=clock, hasher=hasher)
    log.info("Moved node %s to %s", src, dst)
    return node


def reindex(
    repo: Repository,
    dex: Dex | None = None,
    clock: Clock | None = None,
    hasher: Hasher | None = None,
) -> Dex:
    """Rebuild every index from storage.

    A given dex is cleared and refilled in place, so it still holds every
    node that indexed cleanly when failures are raised. Nothing is written;
    call ``dex.write(repo)`` to persist.

    Raises:
        ExceptionGroup: Of the per-node failures, after every node was
            attempted.
    """
    dex = dex if dex is not None else Dex()
    dex.clear()
    errors: list[Exception] = []
    node_ids = repo.list_nodes()
    for node_id in node_ids:
        try:
            index_node(repo, dex, node_id, clock=clock, hasher=hasher)
        except (KegError, ExceptionGroup) as e:
            log.warning("Failed to index node %s: %s", node_id, e)
            errors.append(e)
    if errors:
        raise ExceptionGroup(f"reindex: {len(errors)} of {len(node_ids)} node(s) failed", errors)
    log.info("Reindexed %d nodes", len(node_ids))
    return dex
