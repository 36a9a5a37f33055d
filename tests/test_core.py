"""Tests for keg.core node operations against a MemoryRepository."""

import pytest

from keg.core import create_node, index_node, load_node, move_node, reindex, remove_node, touch_node
from keg.dex import Dex
from keg.errors import ErrorKind, KegError, is_destination_exists, is_not_found
from keg.node_id import NodeId
from keg.node_meta import NodeMeta

from conftest import START


class TestLoadNode:
    def test_assembles_pieces(self, seeded_repo):
        seeded_repo.write_item(NodeId(1), "notes.txt", b"n")
        node = load_node(seeded_repo, NodeId(1))

        assert node.title == "Getting Started"
        assert node.tags == ["guide"]
        assert node.links == [NodeId(2), NodeId(3)]
        assert node.items == ["notes.txt"]
        assert node.stats.hash == ""

    def test_missing_meta_is_empty(self, repo):
        repo.write_content(NodeId(1), b"# Bare\n")
        node = load_node(repo, NodeId(1))
        assert node.meta.tags == []
        assert node.title == "Bare"

    def test_missing_node(self, repo):
        with pytest.raises(KegError) as exc_info:
            load_node(repo, NodeId(5))
        assert is_not_found(exc_info.value)

    def test_bad_meta_raises_parse(self, repo):
        repo.write_content(NodeId(1), b"# T\n")
        repo.write_meta(NodeId(1), b"- not\n- a mapping\n")
        with pytest.raises(KegError) as exc_info:
            load_node(repo, NodeId(1))
        assert exc_info.value.kind == ErrorKind.PARSE


class TestIndexNode:
    def test_writes_stats_and_indexes(self, seeded_repo, dex, clock):
        node = index_node(seeded_repo, dex, NodeId(1), clock=clock)

        stats = seeded_repo.read_stats(NodeId(1))
        assert stats.title == "Getting Started"
        assert stats.hash == node.content.hash
        assert stats.created == stats.updated == stats.accessed == START
        assert dex.get(NodeId(1)).title == "Getting Started"
        assert dex.backlinks(NodeId(3)) == [NodeId(1)]
        assert dex.tag_nodes("guide") == [NodeId(1)]

    def test_updated_moves_only_on_change(self, seeded_repo, dex, clock):
        index_node(seeded_repo, dex, NodeId(3), clock=clock)
        clock.advance(3600)
        index_node(seeded_repo, dex, NodeId(3), clock=clock)
        assert seeded_repo.read_stats(NodeId(3)).updated == START

        seeded_repo.write_content(NodeId(3), b"# Links\n\nEdited.\n")
        later = clock.advance(60)
        index_node(seeded_repo, dex, NodeId(3), clock=clock)
        assert seeded_repo.read_stats(NodeId(3)).updated == later
        assert dex.changes()[0].id == "3"


class TestCreateNode:
    def test_allocates_and_indexes(self, seeded_repo, dex, clock):
        node = create_node(seeded_repo, dex, "# Fresh\n\nLinks to ../1\n", tags=["New Tag"], clock=clock)

        assert node.id == NodeId(4)
        assert NodeMeta.parse(seeded_repo.read_meta(NodeId(4))).tags == ["new-tag"]
        assert dex.backlinks(NodeId(1)) == [NodeId(4)]
        assert dex.tag_nodes("new-tag") == [NodeId(4)]

    def test_first_node_is_zero(self, repo, dex, clock):
        node = create_node(repo, dex, b"# Zero\n", attrs={"status": "draft"}, clock=clock)
        assert node.id == NodeId(0)
        assert NodeMeta.parse(repo.read_meta(NodeId(0))).get("status") == "draft"


class TestTouchNode:
    def test_touch(self, seeded_repo, clock):
        touch_node(seeded_repo, NodeId(2), clock=clock)
        later = clock.advance(10)
        stats = touch_node(seeded_repo, NodeId(2), clock=clock)

        assert stats.access_count == 2
        assert stats.accessed == later
        assert seeded_repo.read_stats(NodeId(2)).access_count == 2


class TestRemoveAndMove:
    def test_remove(self, seeded_repo, clock):
        dex = reindex(seeded_repo, clock=clock)
        remove_node(seeded_repo, dex, NodeId(2))

        assert NodeId(2) not in seeded_repo.list_nodes()
        assert dex.get(NodeId(2)) is None
        assert dex.backlinks(NodeId(1)) == []
        assert NodeId(2) not in dex.links(NodeId(1))

    def test_move(self, seeded_repo, clock):
        dex = reindex(seeded_repo, clock=clock)
        node = move_node(seeded_repo, dex, NodeId(3), NodeId(10), clock=clock)

        assert node.id == NodeId(10)
        assert dex.get(NodeId(3)) is None
        assert dex.get(NodeId(10)).title == "Links"
        assert dex.tag_nodes("guide") == [NodeId(1), NodeId(2), NodeId(10)]

    @pytest.mark.parametrize("dst", [NodeId(2), NodeId(3)])
    def test_move_destination_exists(self, seeded_repo, clock, dst):
        dex = reindex(seeded_repo, clock=clock)
        with pytest.raises(KegError) as exc_info:
            move_node(seeded_repo, dex, NodeId(3), dst, clock=clock)
        assert is_destination_exists(exc_info.value)
        assert dex.get(NodeId(3)) is not None


class TestReindex:
    def test_rebuilds_everything(self, seeded_repo, clock):
        dex = reindex(seeded_repo, clock=clock)

        assert [e.id for e in dex.nodes()] == ["0", "1", "2", "3"]
        assert dex.backlinks(NodeId(1)) == [NodeId(2)]
        assert dex.backlinks(NodeId(2)) == [NodeId(1)]
        assert dex.tags()["guide"] == [NodeId(1), NodeId(2), NodeId(3)]

    def test_write_and_reload(self, seeded_repo, clock):
        dex = reindex(seeded_repo, clock=clock)
        dex.write(seeded_repo)
        assert Dex.read(seeded_repo).data() == dex.data()

    def test_collects_failures(self, seeded_repo, clock):
        seeded_repo.write_meta(NodeId(2), b"tags: [unclosed\n")
        dex = Dex()

        with pytest.raises(ExceptionGroup) as exc_info:
            reindex(seeded_repo, dex=dex, clock=clock)

        assert len(exc_info.value.exceptions) == 1
        assert exc_info.value.exceptions[0].kind == ErrorKind.PARSE
        assert [e.id for e in dex.nodes()] == ["0", "1", "3"]
