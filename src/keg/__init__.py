"""keg: local knowledge-base content and index engine."""

from ._logging import configure_logging, install_null_handler
from .dex import BacklinkIndex, ChangesIndex, Dex, LinkIndex, NodeIndex, TagFilteredIndex, TagIndex
from .errors import ErrorKind, KegError
from .locking import NodeLockTable, ReadWriteLock
from .models import Content, NodeIndexEntry
from .node_data import NodeData
from .node_id import NodeId, parse_node
from .node_meta import NodeMeta
from .node_stats import NodeStats
from .parser.content import parse_content
from .repo_memory import MemoryRepository
from .repository import Repository
from .tag_expr import TagExpr, parse_tag_expression

__version__ = "0.1.0"

install_null_handler()

__all__ = [
    "BacklinkIndex",
    "ChangesIndex",
    "Content",
    "Dex",
    "ErrorKind",
    "KegError",
    "LinkIndex",
    "MemoryRepository",
    "NodeData",
    "NodeId",
    "NodeIndex",
    "NodeIndexEntry",
    "NodeLockTable",
    "NodeMeta",
    "NodeStats",
    "ReadWriteLock",
    "Repository",
    "TagExpr",
    "TagFilteredIndex",
    "TagIndex",
    "configure_logging",
    "parse_content",
    "parse_node",
    "parse_tag_expression",
]
