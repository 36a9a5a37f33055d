"""Comment-preserving YAML document tree for metadata editing.

Wraps ruamel.yaml's round-trip tree (CommentedMap / CommentedSeq) so
metadata code can get, set and remove top-level keys while comments,
key order and scalar quoting stay attached to the keys they belong to.
An unmodified document renders back to its original bytes.
"""

from __future__ import annotations

import copy
import io
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError
from ruamel.yaml.representer import RoundTripRepresenter

from .._time import format_rfc3339
from ..node_id import NodeId

__all__ = ["YAMLError", "YamlDocument", "string_sequence", "to_node", "to_plain"]

TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"

# Long leads stay on one line
_LINE_WIDTH = 4096


class _Representer(RoundTripRepresenter):
    """Round-trip representer writing new datetimes as RFC 3339."""


def _represent_datetime(representer: RoundTripRepresenter, value: datetime):
    return representer.represent_scalar(TIMESTAMP_TAG, format_rfc3339(value))


# Loaded timestamps keep ruamel's own representer and their original layout
_Representer.add_representer(datetime, _represent_datetime)


def _yaml() -> YAML:
    # YAML instances are not thread-safe; build one per call
    y = YAML(typ="rt")
    y.Representer = _Representer
    y.preserve_quotes = True
    y.allow_unicode = True
    y.width = _LINE_WIDTH
    y.indent(mapping=2, sequence=2, offset=0)
    return y


class YamlDocument:
    """A top-level YAML mapping plus its original bytes.

    ``dirty`` flips to True on the first mutation; from then on
    ``render`` dumps the round-trip tree instead of returning ``original``.
    """

    def __init__(self, original: bytes = b"", root: CommentedMap | None = None) -> None:
        self.original = original
        self.root = root if root is not None else CommentedMap()
        self.dirty = False

    @classmethod
    def parse(cls, data: bytes) -> YamlDocument:
        """Load a document from bytes.

        Raises:
            YAMLError: If the YAML is malformed.
            ValueError: If the root is not a mapping, or the bytes are not
                UTF-8.
        """
        root = _yaml().load(data.decode("utf-8"))
        if root is None:
            return cls(data)
        if not isinstance(root, CommentedMap):
            raise ValueError(f"expected a mapping at the document root, got {type(root).__name__}")
        return cls(data, root)

    def copy(self) -> YamlDocument:
        doc = YamlDocument(self.original, copy.deepcopy(self.root))
        doc.dirty = self.dirty
        return doc

    def keys(self) -> list[str]:
        return [str(k) for k in self.root]

    def __contains__(self, key: str) -> bool:
        return key in self.root

    def __len__(self) -> int:
        return len(self.root)

    def get(self, key: str) -> Any:
        """Raw tree value under key (None if absent)."""
        return self.root.get(key)

    def get_scalar(self, key: str) -> str | None:
        """String form of a scalar value; None for null, missing or collections."""
        value = self.root.get(key)
        if value is None or isinstance(value, (Mapping, list)):
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return format_rfc3339(value)
        if isinstance(value, date):
            return value.isoformat()
        return str(value)

    def get_value(self, key: str) -> Any:
        """Plain Python value stored under key (None if absent)."""
        return to_plain(self.root.get(key))

    def set(self, key: str, value: Any) -> None:
        """Replace the value for key in place, or append a new pair.

        Comments trailing a replaced sequence move to the end of the new
        one, so a comment line that sat between this key and the next
        stays there.
        """
        old = self.root.get(key)
        if isinstance(old, CommentedSeq) and isinstance(value, CommentedSeq):
            _carry_trailing_comment(old, value)
        self.root[key] = value
        self.dirty = True

    def set_value(self, key: str, value: Any) -> None:
        self.set(key, to_node(value))

    def remove(self, key: str) -> bool:
        if key not in self.root:
            return False
        del self.root[key]
        self.dirty = True
        return True

    def render(self) -> bytes:
        """Serialize the document.

        Returns the original bytes while unmodified; an empty mapping
        renders as b"".
        """
        if not self.dirty and self.original.strip():
            return self.original
        if not self.root:
            return b""
        buf = io.StringIO()
        _yaml().dump(self.root, buf)
        return buf.getvalue().encode("utf-8")


def _carry_trailing_comment(old: CommentedSeq, new: CommentedSeq) -> None:
    if not old.ca.items or not new:
        return
    last = max(old.ca.items)
    new.ca.items[len(new) - 1] = old.ca.items[last]


def to_plain(value: Any) -> Any:
    """Strip round-trip wrappers: plain dicts, lists, str, int, float, datetime."""
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, bool):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, datetime):
        return datetime(
            value.year,
            value.month,
            value.day,
            value.hour,
            value.minute,
            value.second,
            value.microsecond,
            tzinfo=value.tzinfo or UTC,
        )
    return value


def to_node(value: Any) -> Any:
    """Convert a Python value into a tree value.

    Handles the value variants metadata may carry: str, bool, int, float,
    datetime, date, NodeId, sequences and mappings. Anything else is
    written as its string form.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value
    if isinstance(value, date):
        return value
    if isinstance(value, NodeId):
        return value.path
    if isinstance(value, Mapping):
        node = CommentedMap()
        for k, v in value.items():
            node[str(k)] = to_node(v)
        return node
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return CommentedSeq(to_node(v) for v in items)
    return str(value)


def string_sequence(values: list[str]) -> CommentedSeq:
    """Block sequence of plain strings."""
    return CommentedSeq(str(v) for v in values)
