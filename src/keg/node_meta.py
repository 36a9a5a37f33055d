"""Human-editable node metadata (meta.yaml).

NodeMeta keeps the parsed YAML tree next to a normalized tag list. A
document that was parsed and never touched serializes back to its exact
original bytes. After a mutation the round-trip tree is re-rendered: tags
become a sorted block sequence, while every other key keeps its place
and comments stay attached to the keys they annotate.

Programmatic fields (title, hash, timestamps, lead, links) belong to
NodeStats. They are stripped from re-rendered metadata unless a stats
value is merged in explicitly with ``serialize(stats)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from .errors import KegError
from .parser.yaml_tree import YAMLError, YamlDocument, string_sequence, to_node, to_plain
from .tags import coerce_tags, normalize_tag, normalize_tags

if TYPE_CHECKING:
    from .node_stats import NodeStats

# Keys owned by NodeStats; never persisted from meta edits alone
PROGRAMMATIC_KEYS = (
    "title",
    "hash",
    "updated",
    "created",
    "accessed",
    "access_count",
    "lead",
    "links",
)


class NodeMeta:
    """Tags plus an arbitrary YAML mapping with round-trip preservation."""

    def __init__(self, tags: Iterable[str] = (), document: YamlDocument | None = None) -> None:
        self._tags = normalize_tags(tags)
        self._doc = document if document is not None else YamlDocument()

    @classmethod
    def parse(cls, data: bytes | str) -> NodeMeta:
        """Parse meta.yaml bytes.

        Empty or whitespace-only input gives an empty NodeMeta.

        Raises:
            KegError: PARSE when the YAML is malformed or its root is not
                a mapping.
        """
        raw = data.encode("utf-8") if isinstance(data, str) else data
        if not raw.strip():
            return cls()
        try:
            doc = YamlDocument.parse(raw)
            tags = coerce_tags(doc.get_value("tags"))
        except (YAMLError, ValueError) as e:
            raise KegError.parse_error("meta", str(e)) from e
        return cls(tags, doc)

    @property
    def document(self) -> YamlDocument:
        return self._doc

    @property
    def tags(self) -> list[str]:
        return list(self._tags)

    @property
    def is_modified(self) -> bool:
        return self._doc.dirty

    # ─────────────────────────────────────────────────────────────────────
    # Tags
    # ─────────────────────────────────────────────────────────────────────

    def set_tags(self, tags: Iterable[str]) -> None:
        self._tags = normalize_tags(tags)
        self._write_tags(self._doc)
        self._doc.remove("title")
        self._doc.dirty = True

    def add_tag(self, tag: str) -> None:
        value = normalize_tag(tag)
        if not value:
            return
        self.set_tags([*self._tags, value])

    def rm_tag(self, tag: str) -> None:
        value = normalize_tag(tag)
        if not value or value not in self._tags:
            return
        self.set_tags(t for t in self._tags if t != value)

    # ─────────────────────────────────────────────────────────────────────
    # Attributes
    # ─────────────────────────────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        """Return a scalar value as a string.

        ``"tags"`` returns the comma-joined tag list. Missing keys and
        non-scalar values return None.
        """
        if key == "tags":
            return ",".join(self._tags) if self._tags else None
        return self._doc.get_scalar(key)

    def set(self, key: str, value: Any) -> None:
        """Set one key.

        ``tags`` replaces the tag list. ``title`` is owned by NodeStats and
        is removed from the document instead of being written. A None value
        removes the key.
        """
        if key == "tags":
            self.set_tags(coerce_tags(value))
        elif key == "title":
            self._doc.remove("title")
        elif value is None:
            self._doc.remove(key)
        else:
            self._doc.set(key, to_node(value))

    def set_attrs(self, attrs: Mapping[str, Any]) -> None:
        for key, value in attrs.items():
            self.set(key, value)

    def to_dict(self) -> dict[str, Any]:
        """Plain Python view of the document with normalized tags."""
        data = to_plain(self._doc.root)
        data.pop("tags", None)
        if self._tags:
            data["tags"] = list(self._tags)
        return data

    # ─────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────

    def serialize(self, stats: NodeStats | None = None) -> bytes:
        """Render meta.yaml.

        Parsed, unmodified documents without stats return their original
        bytes. Otherwise a copy of the tree is re-rendered; the stored
        document is left as is. An empty mapping renders as b"".
        """
        if stats is None and not self._doc.dirty and self._doc.original.strip():
            return self._doc.original

        doc = self._doc.copy()
        self._write_tags(doc)
        if stats is None:
            for key in PROGRAMMATIC_KEYS:
                doc.remove(key)
        else:
            _apply_stats(doc, stats)
        doc.dirty = True
        return doc.render()

    def _write_tags(self, doc: YamlDocument) -> None:
        if self._tags:
            doc.set("tags", string_sequence(self._tags))
        else:
            doc.remove("tags")


def _apply_stats(doc: YamlDocument, stats: NodeStats) -> None:
    values: dict[str, Any] = {
        "title": stats.title,
        "hash": stats.hash,
        "updated": stats.updated,
        "created": stats.created,
        "accessed": stats.accessed,
        "access_count": stats.access_count if stats.access_count > 0 else None,
        "lead": stats.lead,
    }
    for key, value in values.items():
        if value:
            doc.set(key, to_node(value))
        else:
            doc.remove(key)

    links = [link.path for link in stats.links]
    if links:
        doc.set("links", string_sequence(links))
    else:
        doc.remove("links")
