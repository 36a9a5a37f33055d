"""Programmatic node statistics (stats.json).

NodeStats holds the values tooling derives from content: hash, title,
lead, outgoing links, frontmatter tags, timestamps and an access count.
The content hash is the single change-detection gate: ``updated`` only
moves when the hash changes or is set explicitly.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ._time import format_rfc3339, parse_timestamp
from .errors import KegError
from .models import Content
from .node_id import NodeId, normalize_ids, try_parse_node
from .tags import coerce_tags, normalize_tags

log = logging.getLogger(__name__)


class StatsRecord(BaseModel):
    """Wire shape of stats.json (and legacy YAML stats).

    Decoding is lenient: unknown keys are ignored, unparseable timestamps
    become None and malformed link tokens are dropped later.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    hash: str = ""
    updated: datetime | None = None
    created: datetime | None = None
    accessed: datetime | None = None
    access_count: int = 0
    lead: str = ""
    links: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "hash", "lead", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("updated", "created", "accessed", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)

    @field_validator("access_count", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        if v is None or v == "":
            return 0
        return max(int(v), 0)

    @field_validator("links", mode="before")
    @classmethod
    def _links(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return v.split()
        return [str(item) for item in v]

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        return coerce_tags(v)


class NodeStats:
    """Mutable programmatic metadata for one node. No I/O."""

    def __init__(
        self,
        *,
        title: str = "",
        hash: str = "",
        updated: datetime | None = None,
        created: datetime | None = None,
        accessed: datetime | None = None,
        access_count: int = 0,
        lead: str = "",
        links: Iterable[NodeId] = (),
        tags: Iterable[str] = (),
    ) -> None:
        self.title = title
        self.lead = lead
        self.updated = updated
        self.created = created
        self.accessed = accessed
        self._hash = hash
        self._access_count = max(access_count, 0)
        self._links = normalize_ids(links)
        self._tags = normalize_tags(tags)

    def __repr__(self) -> str:
        return f"NodeStats(hash={self._hash!r}, title={self.title!r}, updated={self.updated!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeStats):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def copy(self) -> NodeStats:
        return NodeStats(
            title=self.title,
            hash=self._hash,
            updated=self.updated,
            created=self.created,
            accessed=self.accessed,
            access_count=self._access_count,
            lead=self.lead,
            links=self._links,
            tags=self._tags,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────────────

    @property
    def hash(self) -> str:
        return self._hash

    @property
    def access_count(self) -> int:
        return self._access_count

    @property
    def links(self) -> list[NodeId]:
        return list(self._links)

    @links.setter
    def links(self, value: Iterable[NodeId]) -> None:
        self._links = normalize_ids(value)

    @property
    def tags(self) -> list[str]:
        return list(self._tags)

    @tags.setter
    def tags(self, value: Iterable[str]) -> None:
        self._tags = normalize_tags(value)

    # ─────────────────────────────────────────────────────────────────────
    # Mutators
    # ─────────────────────────────────────────────────────────────────────

    def set_hash(self, value: str, now: datetime | None = None) -> None:
        """Replace the hash; move ``updated`` to now only if it changed."""
        if value != self._hash and now is not None:
            self.updated = now
        self._hash = value

    def update_from_content(self, content: Content, now: datetime | None = None) -> None:
        """Reconcile with freshly parsed content.

        Hash and updated go through set_hash. Title, lead, links and
        frontmatter tags are always overwritten.
        """
        self.set_hash(content.hash, now)
        self.title = content.title
        self.lead = content.lead
        self.links = content.links
        self.tags = coerce_tags(content.frontmatter.get("tags"))

    def ensure_times(self, now: datetime) -> None:
        if self.created is None:
            self.created = now
        if self.updated is None:
            self.updated = now
        if self.accessed is None:
            self.accessed = now

    def set_access_count(self, count: int) -> None:
        self._access_count = max(count, 0)

    def increment_access_count(self, n: int = 1) -> None:
        if n <= 0:
            return
        self._access_count += n

    def touch(self, now: datetime) -> None:
        """Record one access at ``now``."""
        self.accessed = now
        self.increment_access_count()

    # ─────────────────────────────────────────────────────────────────────
    # Wire format
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def parse(cls, data: bytes | str) -> NodeStats:
        """Decode stats from JSON, falling back to legacy YAML.

        Empty input gives empty stats.

        Raises:
            KegError: PARSE when neither decoder accepts the input or the
                payload is not a mapping.
        """
        raw = data.encode("utf-8") if isinstance(data, str) else data
        raw = raw.strip()
        if not raw:
            return cls()

        try:
            payload = json.loads(raw)
        except ValueError:
            try:
                payload = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise KegError.parse_error("stats", str(e)) from e
            log.debug("Decoded legacy YAML stats")

        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise KegError.parse_error("stats", f"expected a mapping, got {type(payload).__name__}")
        try:
            record = StatsRecord.model_validate(payload)
        except ValidationError as e:
            raise KegError.parse_error("stats", str(e)) from e
        return cls.from_record(record)

    @classmethod
    def from_record(cls, record: StatsRecord) -> NodeStats:
        links = []
        for token in record.links:
            node = try_parse_node(token)
            if node is None:
                log.debug("Skipping malformed stats link %r", token)
                continue
            links.append(node)
        return cls(
            title=record.title,
            hash=record.hash,
            updated=record.updated,
            created=record.created,
            accessed=record.accessed,
            access_count=record.access_count,
            lead=record.lead,
            links=links,
            tags=record.tags,
        )

    def to_dict(self) -> dict[str, Any]:
        """Non-empty fields only; timestamps as RFC 3339 strings."""
        data: dict[str, Any] = {}
        if self.title:
            data["title"] = self.title
        if self._hash:
            data["hash"] = self._hash
        for key, value in (("updated", self.updated), ("created", self.created), ("accessed", self.accessed)):
            if value is not None:
                data[key] = format_rfc3339(value)
        if self._access_count > 0:
            data["access_count"] = self._access_count
        if self.lead:
            data["lead"] = self.lead
        if self._links:
            data["links"] = [link.path for link in self._links]
        if self._tags:
            data["tags"] = list(self._tags)
        return data

    def to_json(self) -> bytes:
        """Compact, key-ordered JSON encoding."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
