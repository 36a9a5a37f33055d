"""Content extraction for node content files.

Turns the raw bytes of a README.md / README.rst into a ``Content`` value:
title, lead paragraph, numeric outgoing links, frontmatter and a hash.
Everything here is heuristic and degrades to empty fields instead of
raising; only the injected hasher may fail.
"""

from __future__ import annotations

import logging
import re

import frontmatter
import yaml

from ..models import Content
from ..node_id import NodeId
from ..runtime import DEFAULT_HASHER, Hasher

log = logging.getLogger(__name__)

BOM = "\ufeff"

# Bare or markdown-link destinations of the form ../N
NUMERIC_LINK_RE = re.compile(r"\.\./([0-9]+)")

_YAML_HANDLER = frontmatter.YAMLHandler()


def parse_content(
    data: bytes | str,
    filename_hint: str = "",
    hasher: Hasher | None = None,
) -> Content:
    """Parse raw content bytes into a Content value.

    Args:
        data: Raw file content.
        filename_hint: File name used to choose the format ("README.rst").
        hasher: Hash capability; defaults to MD5.

    Returns:
        Content. Input that is empty or only (Unicode) whitespace yields
        format "empty" with every other field unset.
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    trimmed = text.strip()
    if not trimmed:
        return Content(format="empty")

    # Frontmatter comes off before format detection so its closing fence
    # is never read as an RST underline
    if _rst_hint(filename_hint):
        meta: dict = {}
        body = text
    else:
        meta, body = split_frontmatter(text)
    fmt = detect_format(body, filename_hint)

    if fmt == "rst":
        title, lead = extract_rst_title_and_lead(body)
    else:
        title, lead = extract_markdown_title_and_lead(body)

    return Content(
        hash=(hasher or DEFAULT_HASHER).hash(trimmed.encode("utf-8")),
        title=title,
        lead=lead,
        body=body,
        frontmatter=meta,
        links=tuple(extract_numeric_links(body)),
        format=fmt,
    )


def _rst_hint(filename_hint: str) -> bool:
    return filename_hint.lower().endswith((".rst", ".rest"))


def detect_format(text: str, filename_hint: str = "") -> str:
    """Return "rst" or "markdown".

    A ``.rst``/``.rest`` hint forces RST. Otherwise a second line made
    only of ``=`` or only of ``-`` (an RST title underline) means RST.
    """
    if _rst_hint(filename_hint):
        return "rst"
    lines = text.lstrip(BOM).splitlines()
    if len(lines) >= 2 and _is_underline(lines[1].strip()):
        return "rst"
    return "markdown"


def _is_underline(line: str) -> bool:
    return bool(line) and (set(line) == {"="} or set(line) == {"-"})


def split_frontmatter(text: str) -> tuple[dict, str]:
    """Split a leading ``---`` YAML block from the document.

    Returns:
        Tuple of (frontmatter, body). When there is no frontmatter, or it
        is malformed, the frontmatter is empty and the body is the
        original text.
    """
    stripped = text[1:] if text.startswith(BOM) else text
    if not stripped.startswith(("---\n", "---\r\n")):
        return {}, text

    try:
        fm_text, body = _YAML_HANDLER.split(stripped)
        meta = _YAML_HANDLER.load(fm_text)
    except (ValueError, yaml.YAMLError) as e:
        log.debug("Ignoring malformed frontmatter: %s", e)
        return {}, text

    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        log.debug("Ignoring non-mapping frontmatter of type %s", type(meta).__name__)
        return {}, text

    return {str(k): v for k, v in meta.items()}, body.lstrip("\r\n")


def extract_markdown_title_and_lead(text: str) -> tuple[str, str]:
    """Find the title and lead paragraph of a markdown document.

    The title is the first ``# `` heading, falling back to the first
    non-blank line. The lead is the first run of non-blank lines after
    the title; a heading before any paragraph means there is no lead.
    """
    lines = text.splitlines()
    title_idx = None
    for i, line in enumerate(lines):
        trim = line.strip()
        if trim.startswith("# "):
            title_idx = i
            break

    if title_idx is None:
        for i, line in enumerate(lines):
            if line.strip():
                return line.strip(), _paragraph_after(lines, i + 1)
        return "", ""

    return lines[title_idx].strip()[2:].strip(), _paragraph_after(lines, title_idx + 1)


def extract_rst_title_and_lead(text: str) -> tuple[str, str]:
    """Find an RST title (line 1 underlined on line 2) and its lead.

    Falls back to the markdown heuristic when the underline pattern is
    absent.
    """
    lines = text.lstrip(BOM).splitlines()
    if len(lines) >= 2:
        first = lines[0].strip()
        if first and _is_underline(lines[1].strip()):
            return first, _paragraph_after(lines, 2, stop_at_heading=False)
    return extract_markdown_title_and_lead(text)


def _paragraph_after(lines: list[str], start: int, stop_at_heading: bool = True) -> str:
    i = start
    while i < len(lines) and not lines[i].strip():
        i += 1
    para: list[str] = []
    for line in lines[i:]:
        trim = line.strip()
        if not trim:
            break
        if stop_at_heading and trim.startswith("#"):
            break
        para.append(trim)
    return " ".join(para)


def extract_numeric_links(text: str) -> list[NodeId]:
    """Find ``../N`` references, deduplicated by id and sorted ascending."""
    ids = {int(m.group(1)) for m in NUMERIC_LINK_RE.finditer(text)}
    return [NodeId(i) for i in sorted(ids)]
