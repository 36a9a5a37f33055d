"""Aggregate view of one node: content, metadata, stats and attachments."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .models import Content, NodeIndexEntry
from .node_id import NodeId
from .node_meta import NodeMeta
from .node_stats import NodeStats
from .tags import coerce_tags


@dataclass
class NodeData:
    """A node assembled from repository pieces.

    Title, lead and links prefer the persisted stats and fall back to the
    freshly parsed content when the stats value is empty. Tags prefer the
    meta tags, then stats (frontmatter tags recorded at index time), then
    the content frontmatter.
    """

    id: NodeId
    content: Content = field(default_factory=Content)
    meta: NodeMeta = field(default_factory=NodeMeta)
    stats: NodeStats = field(default_factory=NodeStats)
    items: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.stats.title or self.content.title

    @property
    def lead(self) -> str:
        return self.stats.lead or self.content.lead

    @property
    def links(self) -> list[NodeId]:
        return self.stats.links or list(self.content.links)

    @property
    def tags(self) -> list[str]:
        return self.meta.tags or self.stats.tags or coerce_tags(self.content.frontmatter.get("tags"))

    @property
    def format(self) -> str:
        return self.content.format

    @property
    def updated(self) -> datetime | None:
        return self.stats.updated

    @property
    def created(self) -> datetime | None:
        return self.stats.created

    @property
    def accessed(self) -> datetime | None:
        return self.stats.accessed

    def content_changed(self) -> bool:
        """True when the parsed content hash differs from the recorded one."""
        return self.content.hash != self.stats.hash

    def ref(self) -> NodeIndexEntry:
        return NodeIndexEntry(id=self.id.path, title=self.title, updated=self.updated)

    def update_stats(self, now: datetime | None = None) -> None:
        self.stats.update_from_content(self.content, now)

    def touch(self, now: datetime) -> None:
        self.stats.touch(now)
