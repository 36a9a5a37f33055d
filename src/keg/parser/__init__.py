"""Parsers for node content and metadata documents."""

from .content import (
    detect_format,
    extract_markdown_title_and_lead,
    extract_numeric_links,
    extract_rst_title_and_lead,
    parse_content,
    split_frontmatter,
)
from .yaml_tree import YamlDocument, to_node, to_plain

__all__ = [
    "YamlDocument",
    "detect_format",
    "extract_markdown_title_and_lead",
    "extract_numeric_links",
    "extract_rst_title_and_lead",
    "parse_content",
    "split_frontmatter",
    "to_node",
    "to_plain",
]
