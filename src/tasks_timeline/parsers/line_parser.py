"""
Line parser: raw list item text → minimal TaskRecord.

Main API:
    parse_line(line, ...)  → Optional[TaskRecord]
    resolve_item(item, ...)  → Optional[TaskRecord]

Only structural fields are extracted here (marker, body, block link, tags,
links, position, owning section). Dates, priority, recurrence and inline tags
are left inside ``visual`` for the modifier chain.
"""

import re
from typing import Any, Dict, List, Optional

from tasks_timeline.models.metadata import DocumentMetadata, ListItem, Section, front_matter_tags
from tasks_timeline.models.task import Link, Pos, TaskRecord

# indentation (spaces, tabs, quote markers), list marker, [status], body
TASK_REGEX = re.compile(r"^([\s\t>]*)([-*+]|[0-9]+[.)]) +\[(.)\] *(.*)")

# Block reference at the very end of the body, e.g. " ^abc-123"
BLOCK_LINK_REGEX = re.compile(r" \^[a-zA-Z0-9-]+$")


def parse_line(
    line: str,
    *,
    path: str,
    item_id: str,
    parent: Optional[Link] = None,
    position: Optional[Pos] = None,
    outlinks: Optional[List[Link]] = None,
    tags: Optional[List[str]] = None,
    front_matter: Optional[Dict[str, Any]] = None,
) -> Optional[TaskRecord]:
    """
    Parse the raw text of a list item.

    Returns None if the line is not a task line.
    """
    m = TASK_REGEX.match(line)
    if not m:
        return None

    symbol = m.group(2)
    marker = m.group(3)
    description = m.group(4).strip()

    block_link = ""
    block_match = BLOCK_LINK_REGEX.search(description)
    if block_match:
        block_link = block_match.group(0).strip()
        description = BLOCK_LINK_REGEX.sub("", description).strip()

    merged_tags: List[str] = []
    for tag in list(tags or []) + front_matter_tags(front_matter or {}):
        if tag not in merged_tags:
            merged_tags.append(tag)

    parent = parent or Link.file(path)
    line_number = position.start.line if position else 0

    return TaskRecord(
        id=item_id,
        path=path,
        text=line,
        visual=description,
        status_marker=marker,
        status=marker,
        symbol=symbol,
        tags=merged_tags,
        outlinks=list(outlinks or []),
        link=parent,
        section=parent,
        header=parent,
        front_matter=dict(front_matter or {}),
        line=line_number,
        line_count=position.line_count if position else 1,
        position=position,
        block_link=block_link,
        checked=len(description.replace(" ", "", 1)) != 0,
        completed=marker == "x",
        fully_completed=marker != " ",
    )


# ---------------------------------------------------------------------------
# Structural context lookup
# ---------------------------------------------------------------------------

def find_parent_section(item: ListItem, sections: List[Section]) -> Optional[Section]:
    """
    Find the heading that owns a list item.

    If the item's parent reference points at a heading, that heading wins;
    otherwise the nearest heading above the item is used.
    """
    if item.parent > 0:
        for section in sections:
            if section.position.start.line == item.parent and section.type == "heading":
                return section

    owner: Optional[Section] = None
    for section in sections:
        if section.type != "heading":
            continue
        if section.position.start.line >= item.position.start.line:
            break
        owner = section
    return owner


def resolve_item(
    item: ListItem,
    *,
    path: str,
    item_id: str,
    content: str,
    metadata: DocumentMetadata,
) -> Optional[TaskRecord]:
    """Slice an item's raw text from the document and parse it with its structural context."""
    line_number = item.position.start.line
    text = content[item.position.start.offset:item.position.end.offset]

    file_link = Link.file(path)
    section = find_parent_section(item, metadata.sections)
    parent = file_link.with_section(section.heading) if section and section.heading else file_link

    outlinks = [
        Link.parse(occ.link, display=occ.display, embed=occ.embed)
        for occ in metadata.links
        if occ.position.start.line == line_number
    ]
    tags = [occ.tag for occ in metadata.tags if occ.position.start.line == line_number]

    return parse_line(
        text,
        path=path,
        item_id=item_id,
        parent=parent,
        position=item.position,
        outlinks=outlinks,
        tags=tags,
        front_matter=metadata.front_matter,
    )
