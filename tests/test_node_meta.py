"""Tests for keg.node_meta and the YAML document tree behind it."""

from datetime import UTC, date, datetime

import pytest
import yaml

from keg.errors import ErrorKind, KegError
from keg.node_id import NodeId
from keg.node_meta import NodeMeta
from keg.node_stats import NodeStats
from keg.parser.yaml_tree import YamlDocument, to_node

META_WITH_COMMENT = b"""# hand edited, keep this comment
title: Old Title
status: draft
tags: [Zeke, Draft]
"""


# ─────────────────────────────────────────────────────────────────────────────
# YamlDocument
# ─────────────────────────────────────────────────────────────────────────────


class TestYamlDocument:
    """Tests for the node-tree wrapper."""

    def test_unmodified_renders_original(self):
        doc = YamlDocument.parse(META_WITH_COMMENT)
        assert doc.dirty is False
        assert doc.render() == META_WITH_COMMENT

    def test_set_replaces_in_place(self):
        """Replacing a key keeps sibling order."""
        doc = YamlDocument.parse(b"a: 1\nb: 2\nc: 3\n")
        doc.set_value("b", "two")
        assert doc.dirty is True
        assert doc.keys() == ["a", "b", "c"]
        assert doc.render() == b"a: 1\nb: two\nc: 3\n"

    def test_set_appends_new_key(self):
        doc = YamlDocument.parse(b"a: 1\n")
        doc.set_value("z", True)
        assert doc.keys() == ["a", "z"]
        assert doc.get_scalar("z") == "true"

    def test_remove(self):
        doc = YamlDocument.parse(b"a: 1\nb: 2\n")
        assert doc.remove("a") is True
        assert doc.remove("missing") is False
        assert doc.render() == b"b: 2\n"

    def test_empty_mapping_renders_empty(self):
        doc = YamlDocument.parse(b"a: 1\n")
        doc.remove("a")
        assert doc.render() == b""

    def test_copy_is_independent(self):
        doc = YamlDocument.parse(b"a: 1\n")
        clone = doc.copy()
        clone.set_value("a", 2)
        assert doc.get_scalar("a") == "1"
        assert doc.dirty is False

    def test_non_mapping_root_rejected(self):
        with pytest.raises(ValueError):
            YamlDocument.parse(b"- a\n- b\n")

    def test_get_value_constructs_python(self):
        doc = YamlDocument.parse(b"n: 5\nitems: [x, y]\nwhen: 2024-01-15\n")
        assert doc.get_value("n") == 5
        assert doc.get_value("items") == ["x", "y"]
        assert doc.get_value("when") == date(2024, 1, 15)
        assert doc.get_value("missing") is None

    @pytest.mark.parametrize(
        "value",
        [
            "text",
            "2024-01-01",
            True,
            False,
            7,
            1.5,
            date(2024, 1, 15),
            datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
            ["a", 1, False],
            {"nested": {"k": "v"}, "list": [1, 2]},
        ],
    )
    def test_value_writer(self, value):
        """Every supported value variant loads back as the same value."""
        doc = YamlDocument()
        doc.set("key", to_node(value))
        assert yaml.safe_load(doc.render()) == {"key": value}

    def test_node_id_written_as_path(self):
        doc = YamlDocument()
        doc.set("ref", to_node(NodeId(4, "0001")))
        assert yaml.safe_load(doc.render()) == {"ref": "4-0001"}


# ─────────────────────────────────────────────────────────────────────────────
# NodeMeta
# ─────────────────────────────────────────────────────────────────────────────


class TestParse:
    """Tests for NodeMeta.parse."""

    @pytest.mark.parametrize("data", [b"", b"   \n", ""])
    def test_empty(self, data):
        meta = NodeMeta.parse(data)
        assert meta.tags == []
        assert meta.serialize() == b""

    def test_tags_normalized(self):
        meta = NodeMeta.parse(META_WITH_COMMENT)
        assert meta.tags == ["draft", "zeke"]

    def test_tags_as_string(self):
        assert NodeMeta.parse(b"tags: Zeke, Machine Learning\n").tags == ["machine-learning", "zeke"]

    @pytest.mark.parametrize("data", [b"a: [unclosed\n", b"- a\n- b\n", b"just a string\n"])
    def test_invalid_raises_parse_error(self, data):
        with pytest.raises(KegError) as exc_info:
            NodeMeta.parse(data)
        assert exc_info.value.kind == ErrorKind.PARSE
        assert exc_info.value.details["artifact"] == "meta"

    def test_comment_only_document(self):
        meta = NodeMeta.parse(b"# nothing here yet\n")
        assert meta.tags == []
        assert meta.serialize() == b"# nothing here yet\n"


class TestRoundTrip:
    """Verbatim passthrough versus canonical re-rendering."""

    def test_unmodified_is_verbatim(self):
        meta = NodeMeta.parse(META_WITH_COMMENT)
        assert meta.is_modified is False
        assert meta.serialize() == META_WITH_COMMENT

    def test_mutation_rerenders(self):
        """After a mutation tags are a sorted block list and title is gone."""
        meta = NodeMeta.parse(META_WITH_COMMENT)
        meta.add_tag("New Thing")

        out = meta.serialize()
        assert meta.is_modified is True
        assert out.startswith(b"# hand edited, keep this comment\n")
        assert out.endswith(b"status: draft\ntags:\n- draft\n- new-thing\n- zeke\n")

    def test_unknown_keys_preserved_in_order(self):
        meta = NodeMeta.parse(b"zeta: 1\nalpha: two\ntags: [b]\nmid: [x, y]\n")
        meta.set("extra", "value")

        out = meta.serialize()
        assert list(yaml.safe_load(out)) == ["zeta", "alpha", "tags", "mid", "extra"]
        assert yaml.safe_load(out)["mid"] == ["x", "y"]

    def test_programmatic_keys_dropped_without_stats(self):
        meta = NodeMeta.parse(b"hash: abc\nlead: old\nlinks: ['1']\nkeep: me\n")
        meta.set("keep", "still")
        assert yaml.safe_load(meta.serialize()) == {"keep": "still"}

    def test_new_meta_with_tags(self):
        assert NodeMeta(["B", "a"]).serialize() == b"tags:\n- a\n- b\n"


class TestCommentsSurviveEdits:
    """Hand-written comments stay in meta.yaml after mutations."""

    OWNED = b"# owner notes\ntags:\n  - a\nowner: bob  # who\n"

    def test_add_tag_keeps_comments(self):
        meta = NodeMeta.parse(self.OWNED)
        meta.add_tag("b")

        out = meta.serialize()
        assert out.startswith(b"# owner notes\n")
        assert b"owner: bob  # who" in out
        assert yaml.safe_load(out) == {"tags": ["a", "b"], "owner": "bob"}

    def test_set_key_keeps_comments(self):
        meta = NodeMeta.parse(self.OWNED)
        meta.set("owner", "alice")
        meta.set("status", "draft")

        out = meta.serialize()
        assert b"# owner notes" in out
        assert b"# who" in out
        assert yaml.safe_load(out) == {"tags": ["a"], "owner": "alice", "status": "draft"}

    def test_comment_between_keys_kept_after_tag_change(self):
        meta = NodeMeta.parse(b"tags:\n- a\n# reviewed 2025-01\nstatus: ok\n")
        meta.set_tags(["a", "b", "c"])

        out = meta.serialize()
        assert b"# reviewed 2025-01" in out
        assert yaml.safe_load(out) == {"tags": ["a", "b", "c"], "status": "ok"}

    def test_merged_stats_keep_comments(self):
        meta = NodeMeta.parse(self.OWNED)
        out = meta.serialize(NodeStats(hash="abc"))
        assert b"# owner notes" in out
        assert b"# who" in out
        assert yaml.safe_load(out)["hash"] == "abc"

    def test_quoting_preserved(self):
        meta = NodeMeta.parse(b"code: \"007\"\nnote: 'kept'\n")
        meta.add_tag("x")
        out = meta.serialize()
        assert b'code: "007"' in out
        assert b"note: 'kept'" in out


class TestTags:
    """Tag mutators."""

    def test_add_and_rm(self):
        meta = NodeMeta()
        meta.add_tag("Zeke")
        meta.add_tag("draft")
        meta.add_tag("zeke")
        assert meta.tags == ["draft", "zeke"]

        meta.rm_tag("ZEKE")
        assert meta.tags == ["draft"]

    def test_add_empty_is_noop(self):
        meta = NodeMeta.parse(b"tags: [a]\n")
        meta.add_tag("!!!")
        assert meta.is_modified is False

    def test_set_tags_replaces(self):
        meta = NodeMeta(["old"])
        meta.set_tags(["New", "other"])
        assert meta.tags == ["new", "other"]

    def test_removing_last_tag_drops_key(self):
        meta = NodeMeta.parse(b"tags: [only]\n")
        meta.rm_tag("only")
        assert meta.serialize() == b""

    def test_tags_returns_copy(self):
        meta = NodeMeta(["a"])
        meta.tags.append("b")
        assert meta.tags == ["a"]


class TestGetSet:
    """Generic key access."""

    def test_get_tags_comma_joined(self):
        assert NodeMeta(["b", "a"]).get("tags") == "a,b"
        assert NodeMeta().get("tags") is None

    def test_get_scalar(self):
        meta = NodeMeta.parse(b"status: draft\ncount: 3\nlist: [a]\n")
        assert meta.get("status") == "draft"
        assert meta.get("count") == "3"
        assert meta.get("list") is None
        assert meta.get("missing") is None

    def test_set_title_removes_it(self):
        meta = NodeMeta.parse(b"title: Stale\nstatus: ok\n")
        meta.set("title", "Ignored")
        assert meta.get("title") is None
        assert yaml.safe_load(meta.serialize()) == {"status": "ok"}

    def test_set_none_removes(self):
        meta = NodeMeta.parse(b"a: 1\nb: 2\n")
        meta.set("a", None)
        assert yaml.safe_load(meta.serialize()) == {"b": 2}

    def test_set_tags_key(self):
        meta = NodeMeta()
        meta.set("tags", "x, Y")
        assert meta.tags == ["x", "y"]
        meta.set("tags", None)
        assert meta.tags == []

    def test_set_attrs(self):
        meta = NodeMeta()
        meta.set_attrs({"status": "draft", "priority": 2, "published": False})
        assert meta.to_dict() == {"status": "draft", "priority": 2, "published": False}


class TestSerializeWithStats:
    """Merging programmatic stats fields."""

    def test_merge_present_fields(self):
        meta = NodeMeta.parse(b"status: draft\ntags: [a]\n")
        stats = NodeStats(
            title="Title",
            hash="abc",
            updated=datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC),
            access_count=3,
            links=[NodeId(2), NodeId(1)],
        )

        data = yaml.safe_load(meta.serialize(stats))

        assert data == {
            "status": "draft",
            "tags": ["a"],
            "title": "Title",
            "hash": "abc",
            "updated": datetime(2025, 1, 2, 15, 4, 5, tzinfo=UTC),
            "access_count": 3,
            "links": ["1", "2"],
        }

    def test_zero_fields_removed(self):
        meta = NodeMeta.parse(b"lead: stale\naccess_count: 4\nhash: old\nkeep: 1\n")
        data = yaml.safe_load(meta.serialize(NodeStats()))
        assert data == {"keep": 1}

    def test_stored_document_untouched(self):
        meta = NodeMeta.parse(META_WITH_COMMENT)
        meta.serialize(NodeStats(hash="abc"))
        assert meta.is_modified is False
        assert meta.serialize() == META_WITH_COMMENT
