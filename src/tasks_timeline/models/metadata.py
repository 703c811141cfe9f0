"""
Structural metadata supplied by the host document store.

These types describe one indexed markdown document: list items with their
parent linkage, section blocks, tag and link occurrences, and front matter.
The task pipeline only ever reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tasks_timeline.models.task import Pos


@dataclass(frozen=True)
class ListItem:
    """
    A list item occurrence.

    ``parent`` is the start line of the parent list item, or the negated start
    line of the enclosing list for root items. ``id`` is the item's block id
    (``^abc``) if it carries one. ``task`` is the checkbox character, if any.
    """

    position: Pos
    parent: int
    id: Optional[str] = None
    task: Optional[str] = None


@dataclass(frozen=True)
class Section:
    """A top-level block: heading, list, paragraph, code, yaml, ..."""

    type: str
    position: Pos
    heading: Optional[str] = None
    level: int = 0


@dataclass(frozen=True)
class TagOccurrence:
    tag: str
    position: Pos


@dataclass(frozen=True)
class LinkOccurrence:
    link: str
    position: Pos
    display: Optional[str] = None
    embed: bool = False


@dataclass
class DocumentMetadata:
    list_items: List[ListItem] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)
    tags: List[TagOccurrence] = field(default_factory=list)
    links: List[LinkOccurrence] = field(default_factory=list)
    front_matter: Dict[str, Any] = field(default_factory=dict)

    def document_tags(self) -> List[str]:
        """All tags of the document: inline occurrences plus front matter."""
        tags = [t.tag for t in self.tags]
        for tag in front_matter_tags(self.front_matter):
            if tag not in tags:
                tags.append(tag)
        return tags


def front_matter_tags(front_matter: Dict[str, Any]) -> List[str]:
    """
    Collect ``tag``/``tags`` values from front matter as ``#tag`` strings.

    ``tag`` may be a single string; ``tags`` may be a list or a comma/space
    separated string.
    """
    raw: List[str] = []
    tag = front_matter.get("tag")
    if isinstance(tag, str):
        raw.append(tag)
    tags = front_matter.get("tags")
    if isinstance(tags, list):
        raw.extend(str(t) for t in tags if t is not None)
    elif isinstance(tags, str):
        raw.extend(tags.replace(",", " ").split())

    result: List[str] = []
    for value in raw:
        value = value.strip()
        if not value:
            continue
        if not value.startswith("#"):
            value = f"#{value}"
        if value not in result:
            result.append(value)
    return result


def item_identity(path: str, item: ListItem) -> str:
    """
    Stable identity of a list item: document path + position key.

    The key is the item's block id when present, otherwise its parent
    reference combined with its start line.
    """
    if item.id:
        return f"{path}^{item.id}"
    return f"{path}:{item.parent}:{item.position.start.line}"
