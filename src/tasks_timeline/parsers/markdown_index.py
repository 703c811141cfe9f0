"""
Markdown structural indexer.

Builds the DocumentMetadata a host document store hands to the task pipeline:
front matter, section blocks, list items (with parent linkage and block ids),
tag occurrences and internal link occurrences, all with line/column/offset
positions.

Main API:
    index_markdown(content)  → DocumentMetadata
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from tasks_timeline.models.metadata import (
    DocumentMetadata,
    LinkOccurrence,
    ListItem,
    Section,
    TagOccurrence,
)
from tasks_timeline.models.task import Loc, Pos

log = logging.getLogger(__name__)

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_LIST_ITEM = re.compile(r"^([ \t>]*)([-*+]|\d+[.)])(?:[ \t]+|$)")
_CHECKBOX = re.compile(r"^\[(.)\]")
_FENCE = re.compile(r"^\s*(```|~~~)")
_BLOCK_ID = re.compile(r"\s\^([a-zA-Z0-9-]+)\s*$")

WIKI_LINK_REGEX = re.compile(r"(!?)\[\[([^\]|]+)(?:\|([^\]]*))?\]\]")
MD_LINK_REGEX = re.compile(r"(!?)\[([^\]]*)\]\(([^)\s]+)\)")
_INLINE_CODE = re.compile(r"`[^`]*`")
# Obsidian tags: letters, digits, _, -, /; at least one non-digit
TAG_REGEX = re.compile(r"(?<![^\s(\[])#([\w/-]*[^\W\d][\w/-]*)")


def _width(indent: str) -> int:
    return len(indent.replace("\t", "    ").replace(">", " "))


def _mask(text: str, pattern: "re.Pattern[str]") -> str:
    """Replace matches with equal-length spaces so positions stay aligned."""
    return pattern.sub(lambda m: " " * len(m.group()), text)


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------

def _extract_front_matter(lines: List[str]) -> Tuple[Dict[str, Any], int]:
    """
    Parse YAML front matter at the top of the document.

    Returns:
        (front_matter, body_start_index). If there is no closed front matter
        block, returns ({}, 0).
    """
    if not lines or lines[0].strip() != "---":
        return {}, 0

    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            raw = "\n".join(lines[1:i])
            try:
                data = yaml.safe_load(raw) if raw.strip() else {}
            except yaml.YAMLError as e:
                log.warning("Invalid front matter: %s", e)
                data = {}
            return (data if isinstance(data, dict) else {}), i + 1

    # Never closed: no front matter
    return {}, 0


# ---------------------------------------------------------------------------
# Inline scanning
# ---------------------------------------------------------------------------

def _scan_inline(
    line: str,
    line_num: int,
    line_offset: int,
    tags: List[TagOccurrence],
    links: List[LinkOccurrence],
) -> None:
    """Collect tag and internal link occurrences on one line."""

    def pos(start: int, end: int) -> Pos:
        return Pos(
            Loc(line_num, start, line_offset + start),
            Loc(line_num, end, line_offset + end),
        )

    masked = _mask(line, _INLINE_CODE)

    for m in WIKI_LINK_REGEX.finditer(masked):
        links.append(
            LinkOccurrence(
                link=m.group(2).strip(),
                display=(m.group(3) or "").strip() or None,
                embed=bool(m.group(1)),
                position=pos(m.start(), m.end()),
            )
        )
    for m in MD_LINK_REGEX.finditer(masked):
        target = m.group(3)
        if "://" in target or target.startswith("mailto:"):
            continue
        links.append(
            LinkOccurrence(
                link=target,
                display=m.group(2) or None,
                embed=bool(m.group(1)),
                position=pos(m.start(), m.end()),
            )
        )

    # Links may contain "#" (heading references), never tags
    masked = _mask(_mask(masked, WIKI_LINK_REGEX), MD_LINK_REGEX)
    for m in TAG_REGEX.finditer(masked):
        tags.append(TagOccurrence(tag=f"#{m.group(1)}", position=pos(m.start(), m.end())))


# ---------------------------------------------------------------------------
# Main API
# ---------------------------------------------------------------------------

def index_markdown(content: str) -> DocumentMetadata:
    """Index markdown content into structural metadata."""
    lines = content.split("\n")
    offsets: List[int] = []
    running = 0
    for line in lines:
        offsets.append(running)
        running += len(line) + 1

    def line_end(i: int) -> Loc:
        return Loc(i, len(lines[i]), offsets[i] + len(lines[i]))

    front_matter, body_start = _extract_front_matter(lines)

    sections: List[Section] = []
    list_items: List[ListItem] = []
    tags: List[TagOccurrence] = []
    links: List[LinkOccurrence] = []

    if body_start:
        sections.append(Section(type="yaml", position=Pos(Loc(0, 0, 0), line_end(body_start - 1))))

    # Open block being accumulated: (type, start_line, last_line)
    block: Optional[List[Any]] = None
    # Items of the current list: [start_line, end_line, indent, parent, task]
    open_items: List[List[Any]] = []
    stack: List[Tuple[int, int]] = []  # (indent, start_line)
    list_start = -1
    in_fence = False

    def close_items() -> None:
        for start, end, _indent, parent, task in open_items:
            block_id = _BLOCK_ID.search(lines[end])
            list_items.append(
                ListItem(
                    position=Pos(Loc(start, 0, offsets[start]), line_end(end)),
                    parent=parent,
                    id=block_id.group(1) if block_id else None,
                    task=task,
                )
            )
        open_items.clear()
        stack.clear()

    def close_block() -> None:
        nonlocal block
        if block is not None:
            btype, start, last = block
            sections.append(Section(type=btype, position=Pos(Loc(start, 0, offsets[start]), line_end(last))))
            if btype == "list":
                close_items()
        block = None

    for i in range(body_start, len(lines)):
        line = lines[i]
        stripped = line.strip()

        if in_fence:
            block[2] = i
            if _FENCE.match(line):
                in_fence = False
                close_block()
            continue

        if _FENCE.match(line):
            close_block()
            block = ["code", i, i]
            in_fence = True
            continue

        if not stripped:
            # Blank lines end paragraphs; lists may continue past them
            if block is not None and block[0] != "list":
                close_block()
            continue

        heading = _HEADING.match(line)
        if heading:
            close_block()
            sections.append(
                Section(
                    type="heading",
                    position=Pos(Loc(i, 0, offsets[i]), line_end(i)),
                    heading=heading.group(2),
                    level=len(heading.group(1)),
                )
            )
            _scan_inline(line, i, offsets[i], tags, links)
            continue

        item = _LIST_ITEM.match(line)
        if item:
            if block is None or block[0] != "list":
                close_block()
                block = ["list", i, i]
                list_start = i
            block[2] = i

            indent = _width(item.group(1))
            while stack and stack[-1][0] >= indent:
                stack.pop()
            parent = stack[-1][1] if stack else -list_start
            checkbox = _CHECKBOX.match(line[item.end():])
            open_items.append([i, i, indent, parent, checkbox.group(1) if checkbox else None])
            stack.append((indent, i))
            _scan_inline(line, i, offsets[i], tags, links)
            continue

        if block is not None and block[0] == "list":
            leading = _width(line[: len(line) - len(line.lstrip())])
            if open_items and leading > open_items[-1][2] and lines[i - 1].strip():
                # Continuation of the previous item
                open_items[-1][1] = i
                block[2] = i
                _scan_inline(line, i, offsets[i], tags, links)
                continue
            close_block()

        if block is None:
            block = ["paragraph", i, i]
        block[2] = i
        _scan_inline(line, i, offsets[i], tags, links)

    if in_fence:
        log.debug("Unclosed code fence at end of document")
    close_block()

    sections.sort(key=lambda s: s.position.start.line)
    list_items.sort(key=lambda li: li.position.start.line)
    return DocumentMetadata(
        list_items=list_items,
        sections=sections,
        tags=tags,
        links=links,
        front_matter=front_matter,
    )
