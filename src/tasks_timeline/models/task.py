"""
Core task data models.

A TaskRecord is produced by the line parser from one raw list item and then
enriched in place by the modifier chain (see transforms.modifiers). Positions
and links mirror the structural metadata supplied by the host document store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskStatus(str, Enum):
    todo = "todo"
    unplanned = "unplanned"
    start = "start"
    process = "process"
    scheduled = "scheduled"
    due = "due"
    overdue = "overdue"
    done = "done"
    cancelled = "cancelled"


# Status marker character → status
STATUS_MARKER_MAP: Dict[str, TaskStatus] = {
    " ": TaskStatus.todo,
    "x": TaskStatus.done,
    "X": TaskStatus.done,
    "-": TaskStatus.cancelled,
    "/": TaskStatus.process,
    ">": TaskStatus.scheduled,
    "!": TaskStatus.due,
}

# Named dates with a dedicated shortcut attribute on TaskRecord
DATE_FIELDS = ("due", "scheduled", "start", "completion", "created", "cancelled_date")


@dataclass(frozen=True)
class Loc:
    """A zero-based location inside a document."""

    line: int
    col: int = 0
    offset: int = 0


@dataclass(frozen=True)
class Pos:
    start: Loc
    end: Loc

    @property
    def line_count(self) -> int:
        return self.end.line - self.start.line + 1


@dataclass
class Link:
    """
    A reference to a document, optionally narrowed to a heading or block.

    ``type`` is one of "file", "header" or "block".
    """

    path: str
    subpath: Optional[str] = None
    display: Optional[str] = None
    embed: bool = False
    type: str = "file"

    @classmethod
    def file(cls, path: str, display: Optional[str] = None) -> Link:
        return cls(path=path, display=display)

    @classmethod
    def header(cls, path: str, heading: str) -> Link:
        return cls(path=path, subpath=heading, type="header")

    @classmethod
    def block(cls, path: str, block_id: str) -> Link:
        return cls(path=path, subpath=block_id, type="block")

    @classmethod
    def parse(cls, target: str, display: Optional[str] = None, embed: bool = False) -> Link:
        """Build a link from a wiki-link target such as ``Note#Heading`` or ``Note#^abc``."""
        path, _, subpath = target.partition("#")
        if subpath.startswith("^"):
            return cls(path=path, subpath=subpath[1:], display=display, embed=embed, type="block")
        if subpath:
            return cls(path=path, subpath=subpath, display=display, embed=embed, type="header")
        return cls(path=path, display=display, embed=embed)

    def with_section(self, heading: str) -> Link:
        """Return a header link into the same document."""
        return Link.header(self.path, heading)

    @property
    def display_text(self) -> str:
        if self.display:
            return self.display
        if self.subpath:
            return self.subpath
        name = self.path.rsplit("/", 1)[-1]
        return name[:-3] if name.endswith(".md") else name

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "subpath": self.subpath,
            "display": self.display,
            "embed": self.embed,
            "type": self.type,
        }


@dataclass
class TaskRecord:
    """
    A single task parsed from a list item.

    ``id`` is the item identity (document path + structural position key) and
    is the key of the adapter's task table. ``status`` holds the raw marker
    until the status modifier maps it onto a TaskStatus.
    """

    id: str
    path: str
    text: str
    visual: str
    status_marker: str
    status: str
    symbol: str = "-"
    tags: List[str] = field(default_factory=list)
    dates: Dict[str, datetime] = field(default_factory=dict)
    due: Optional[datetime] = None
    scheduled: Optional[datetime] = None
    start: Optional[datetime] = None
    completion: Optional[datetime] = None
    created: Optional[datetime] = None
    cancelled_date: Optional[datetime] = None
    priority: str = ""
    recurrence: str = ""
    outlinks: List[Link] = field(default_factory=list)
    link: Optional[Link] = None
    section: Optional[Link] = None
    header: Optional[Link] = None
    front_matter: Dict[str, Any] = field(default_factory=dict)
    line: int = 0
    line_count: int = 1
    position: Optional[Pos] = None
    order: int = 0
    block_link: str = ""
    real: bool = True
    checked: bool = False
    completed: bool = False
    fully_completed: bool = False
    daily_note: bool = False
    is_tasks_task: bool = False
    annotated: bool = False

    def all_dates(self) -> Dict[str, datetime]:
        """Shortcut dates merged with the named ``dates`` mapping."""
        result = dict(self.dates)
        for name in DATE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result.setdefault(name, value)
        return result

    def has_any_date(self) -> bool:
        """True if the task carries any of due/scheduled/start/completion/created."""
        return any(
            value is not None
            for value in (self.completion, self.due, self.start, self.scheduled, self.created)
        )

    def add_tags(self, tags: List[str]) -> None:
        for tag in tags:
            if tag not in self.tags:
                self.tags.append(tag)

    def to_dict(self) -> dict:
        """Serialize to a JSON-friendly dict."""
        return {
            "id": self.id,
            "path": self.path,
            "text": self.text,
            "visual": self.visual,
            "status": self.status,
            "status_marker": self.status_marker,
            "symbol": self.symbol,
            "tags": list(self.tags),
            "dates": {name: value.isoformat() for name, value in self.all_dates().items()},
            "priority": self.priority,
            "recurrence": self.recurrence,
            "outlinks": [link.to_dict() for link in self.outlinks],
            "section": self.section.to_dict() if self.section else None,
            "line": self.line,
            "line_count": self.line_count,
            "order": self.order,
            "block_link": self.block_link,
            "checked": self.checked,
            "completed": self.completed,
            "fully_completed": self.fully_completed,
            "daily_note": self.daily_note,
            "is_tasks_task": self.is_tasks_task,
        }
