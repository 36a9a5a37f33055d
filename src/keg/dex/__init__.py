"""Index family: node list, tags, links, backlinks, changes and tag-filtered lists."""

from .backlinks import BacklinkIndex
from .changes import ChangesIndex
from .facade import Dex
from .filtered import TagFilteredIndex
from .links import LinkIndex
from .nodes import NodeIndex
from .tags import TagIndex

__all__ = [
    "BacklinkIndex",
    "ChangesIndex",
    "Dex",
    "LinkIndex",
    "NodeIndex",
    "TagFilteredIndex",
    "TagIndex",
]
