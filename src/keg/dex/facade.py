"""Dex: the façade that keeps the node, tag, link, backlink and changes
indices, plus any tag-filtered lists, consistent with each other.

Individual indices know nothing about each other. Dex applies one node's
update to all of them under a single exclusive lock, keeps the backlink
index the exact inverse of the link index, and aggregates per-index
failures into one ExceptionGroup instead of stopping at the first.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from ..config import INDEX_WRITE_WORKERS
from ..errors import KegError, is_not_found
from ..locking import ReadWriteLock
from ..models import NodeIndexEntry
from ..node_data import NodeData
from ..node_id import NodeId, try_parse_node
from ..tag_expr import TagExpr, parse_tag_expression
from .backlinks import BacklinkIndex
from .changes import ChangesIndex
from .filtered import TagFilteredIndex
from .links import LinkIndex
from .nodes import NodeIndex
from .tags import TagIndex

if TYPE_CHECKING:
    from ..repository import Repository

log = logging.getLogger(__name__)

Step = tuple[str, Callable[[], None]]


def _get_artifact(repo: Repository, name: str) -> bytes | None:
    try:
        return repo.get_index(name)
    except KegError as e:
        if not is_not_found(e):
            raise
        log.debug("Index %s not found, starting empty", name)
        return None


def _run_steps(op: str, subject: str, steps: list[Step]) -> None:
    """Run every step; raise the collected failures as one group."""
    errors: list[KegError] = []
    for index_name, step in steps:
        try:
            step()
        except Exception as e:
            log.warning("Index %s %s failed for %s: %s", index_name, op, subject, e)
            error = KegError.index_failure(index_name, op, str(e))
            error.__cause__ = e
            errors.append(error)
    if errors:
        raise ExceptionGroup(f"dex {op} {subject}: {len(errors)} index(es) failed", errors)


class Dex:
    """In-memory index family for one keg.

    Readers receive copies and may run concurrently with each other;
    ``add``, ``remove`` and ``clear`` are exclusive.
    """

    def __init__(
        self,
        nodes: NodeIndex | None = None,
        tags: TagIndex | None = None,
        links: LinkIndex | None = None,
        backlinks: BacklinkIndex | None = None,
        changes: ChangesIndex | None = None,
        filters: Iterable[TagFilteredIndex] = (),
    ) -> None:
        self._nodes = nodes if nodes is not None else NodeIndex()
        self._tags = tags if tags is not None else TagIndex()
        self._links = links if links is not None else LinkIndex()
        self._backlinks = backlinks if backlinks is not None else BacklinkIndex()
        self._changes = changes if changes is not None else ChangesIndex()
        self._filters: dict[str, TagFilteredIndex] = {}
        for index in filters:
            if index.name in self._filters:
                raise KegError.invalid(f"duplicate filtered index {index.name!r}", index=index.name)
            self._filters[index.name] = index
        self._lock = ReadWriteLock()

    @property
    def _indexes(self) -> tuple:
        return (self._nodes, self._tags, self._links, self._backlinks, self._changes, *self._filters.values())

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def read(cls, repo: Repository, filters: Iterable[TagFilteredIndex] = ()) -> Dex:
        """Load every index artifact from the repository.

        ``filters`` are loaded from their own artifacts in place. A
        missing artifact yields an empty index. Any other failure
        propagates.
        """
        loaded = {}
        for index_cls in (NodeIndex, TagIndex, LinkIndex, BacklinkIndex, ChangesIndex):
            raw = _get_artifact(repo, index_cls.name)
            loaded[index_cls] = index_cls() if raw is None else index_cls.parse(raw)

        filters = list(filters)
        for index in filters:
            raw = _get_artifact(repo, index.name)
            if raw is None:
                index.clear()
            else:
                index.load(raw)

        return cls(
            nodes=loaded[NodeIndex],
            tags=loaded[TagIndex],
            links=loaded[LinkIndex],
            backlinks=loaded[BacklinkIndex],
            changes=loaded[ChangesIndex],
            filters=filters,
        )

    def write(self, repo: Repository) -> None:
        """Serialize and write every artifact concurrently.

        All writes are attempted even when some fail.

        Raises:
            ExceptionGroup: Of KegError(INDEX), one per failed artifact.
        """
        errors: list[KegError] = []
        payloads: list[tuple[str, bytes]] = []
        with self._lock.read():
            for index in self._indexes:
                try:
                    payloads.append((index.name, index.data()))
                except Exception as e:
                    error = KegError.index_failure(index.name, "serialize", str(e))
                    error.__cause__ = e
                    errors.append(error)

        with ThreadPoolExecutor(max_workers=INDEX_WRITE_WORKERS, thread_name_prefix="keg-dex") as pool:
            futures = {pool.submit(repo.write_index, name, data): name for name, data in payloads}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    future.result()
                except Exception as e:
                    log.warning("Writing index %s failed: %s", name, e)
                    error = KegError.index_failure(name, "write", str(e))
                    error.__cause__ = e
                    errors.append(error)

        if errors:
            order = [index.name for index in self._indexes]
            errors.sort(key=lambda err: order.index(err.details["index"]))
            raise ExceptionGroup(f"dex write: {len(errors)} index(es) failed", errors)
        log.info("Wrote %d index artifacts", len(payloads))

    # ─────────────────────────────────────────────────────────────────────
    # Mutation
    # ─────────────────────────────────────────────────────────────────────

    def add(self, node: NodeData) -> None:
        """Index one node in every index.

        The node's tag set and outgoing link set replace whatever was
        recorded before, and backlinks from destinations it no longer
        links to are retracted.

        Raises:
            ExceptionGroup: Of KegError(INDEX) naming each failed index.
                Indices that succeeded keep their update.
        """
        node_id = node.id
        tags = node.tags
        links = node.links
        with self._lock.write():
            previous = self._links.links(node_id)
            current = {link.path for link in links}
            stale = [dest for dest in previous if dest.path not in current]

            def update_backlinks() -> None:
                self._backlinks.rm_source(node_id, stale)
                self._backlinks.add(node)

            _run_steps(
                "add",
                node_id.path,
                [
                    (self._nodes.name, lambda: self._nodes.add(node)),
                    (self._tags.name, lambda: self._tags.set_tags(node_id, tags)),
                    (self._links.name, lambda: self._links.set(node_id, links)),
                    (self._backlinks.name, update_backlinks),
                    (self._changes.name, lambda: self._changes.add(node)),
                    *[(index.name, lambda index=index: index.add(node)) for index in self._filters.values()],
                ],
            )

    def remove(self, node_id: NodeId) -> None:
        """Remove a node from every index, as key and as list member.

        Raises:
            ExceptionGroup: Of KegError(INDEX) naming each failed index.
        """
        with self._lock.write():
            _run_steps(
                "remove",
                node_id.path,
                [(index.name, lambda index=index: index.rm(node_id)) for index in self._indexes],
            )

    def clear(self) -> None:
        with self._lock.write():
            for index in self._indexes:
                index.clear()

    # ─────────────────────────────────────────────────────────────────────
    # Read accessors
    # ─────────────────────────────────────────────────────────────────────

    def nodes(self) -> list[NodeIndexEntry]:
        with self._lock.read():
            return self._nodes.entries()

    def get(self, node_id: NodeId) -> NodeIndexEntry | None:
        with self._lock.read():
            return self._nodes.get(node_id)

    def next_id(self) -> NodeId:
        with self._lock.read():
            return self._nodes.next_id()

    def tags(self) -> dict[str, list[NodeId]]:
        with self._lock.read():
            return self._tags.to_dict()

    def tag_nodes(self, tag: str) -> list[NodeId]:
        with self._lock.read():
            return self._tags.nodes(tag)

    def tags_for(self, node_id: NodeId) -> list[str]:
        with self._lock.read():
            return self._tags.tags_for(node_id)

    def links(self, node_id: NodeId) -> list[NodeId]:
        with self._lock.read():
            return self._links.links(node_id)

    def backlinks(self, node_id: NodeId) -> list[NodeId]:
        with self._lock.read():
            return self._backlinks.backlinks(node_id)

    def changes(self) -> list[NodeIndexEntry]:
        with self._lock.read():
            return self._changes.entries()

    def filters(self) -> list[str]:
        """Names of the filtered indices, in registration order."""
        return list(self._filters)

    def filtered(self, name: str) -> list[NodeIndexEntry]:
        """Entries of one filtered index, newest first.

        Raises:
            KegError: NOT_FOUND if no filtered index has that name.
        """
        with self._lock.read():
            index = self._filters.get(name)
            if index is None:
                raise KegError.not_found(name, index=name)
            return index.entries()

    def select(self, expr: str | TagExpr) -> list[NodeId]:
        """Nodes whose tags satisfy a boolean tag expression, in node order.

        Negation ranges over every indexed or tagged node.

        Raises:
            KegError: INVALID if the expression does not parse.
        """
        if isinstance(expr, str):
            expr = parse_tag_expression(expr)
        with self._lock.read():
            universe = [n for n in (try_parse_node(e.id) for e in self._nodes.entries()) if n is not None]
            return self._tags.select(expr, universe)

    def data(self) -> dict[str, bytes]:
        """Serialized form of every artifact, keyed by artifact name."""
        with self._lock.read():
            return {index.name: index.data() for index in self._indexes}
