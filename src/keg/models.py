"""Pydantic models for parsed content and index entries."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .node_id import NodeId

ContentFormat = Literal["markdown", "rst", "empty"]


class Content(BaseModel):
    """Pieces extracted from a node's primary content file.

    Recomputed from raw bytes on every parse and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    hash: str = ""  # Hasher digest of the trimmed raw bytes
    title: str = ""  # First H1 (markdown) or underlined title (rst)
    lead: str = ""  # First paragraph after the title
    body: str = ""  # Text with frontmatter removed
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    links: tuple[NodeId, ...] = ()  # Outgoing ../N links, deduped and ascending
    format: ContentFormat = "empty"


class NodeIndexEntry(BaseModel):
    """A row of nodes.tsv / changes.md."""

    model_config = ConfigDict(frozen=True)

    id: str  # Node path, e.g. "42" or "42-0001"
    title: str = ""
    updated: datetime | None = None
