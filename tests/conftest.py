"""Shared test fixtures for the keg test suite.

Design:
- clock: FixedClock pinned to a known instant, advanced explicitly
- repo: MemoryRepository with short lock timeouts
- dex: empty Dex
- make_node: builds NodeData from markdown text without touching storage
- seeded_repo: a small keg of linked, tagged nodes
"""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from keg.dex import Dex
from keg.locking import NodeLockTable
from keg.node_data import NodeData
from keg.node_id import NodeId
from keg.node_meta import NodeMeta
from keg.parser.content import parse_content
from keg.repo_memory import MemoryRepository
from keg.runtime import FixedClock

START = datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC)


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at START."""
    return FixedClock(START)


@pytest.fixture
def locks() -> NodeLockTable:
    """Lock table with a short default timeout and fast retries."""
    return NodeLockTable(default_timeout=1.0, retry_interval=0.01)


@pytest.fixture
def repo(locks: NodeLockTable) -> MemoryRepository:
    """Empty in-memory repository."""
    return MemoryRepository(locks=locks)


@pytest.fixture
def dex() -> Dex:
    return Dex()


@pytest.fixture
def make_node() -> Callable[..., NodeData]:
    """Factory for NodeData built from markdown text.

    Usage:
        node = make_node(1, "# Title\\n\\nSee ../2", tags=["draft"])
    """

    def _make(node_id: int | NodeId, text: str = "", tags: list[str] | None = None) -> NodeData:
        nid = node_id if isinstance(node_id, NodeId) else NodeId(node_id)
        node = NodeData(id=nid, content=parse_content(text), meta=NodeMeta(tags or []))
        node.update_stats()
        return node

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Seed Data
# ─────────────────────────────────────────────────────────────────────────────

SEED_NODES = {
    0: ("# Sorry, planned but not yet available\n\nThis node is a placeholder.\n", []),
    1: ("# Getting Started\n\nHow to use this keg.\n\nSee ../2 and ../3.\n", ["guide"]),
    2: ("# Tagging\n\nTags group nodes.\n\nBack to ../1.\n", ["guide", "tags"]),
    3: ("# Links\n\nLinks connect nodes.\n", ["guide"]),
}


@pytest.fixture
def seeded_repo(repo: MemoryRepository) -> MemoryRepository:
    """Repository holding SEED_NODES with meta tags, not yet indexed."""
    for node_id, (text, tags) in SEED_NODES.items():
        nid = NodeId(node_id)
        repo.write_content(nid, text.encode())
        repo.write_meta(nid, NodeMeta(tags).serialize())
    return repo
