"""
Task modifiers.

A modifier takes a TaskRecord and returns it enriched (or None to drop it).
Stateless modifiers are plain functions; configurable ones are built by
factories. transforms.config assembles them in this order:

    tasks_plugin_parser → dataview_parser → daily_note_parser → tags_parser
    → remainder_parser → status_parser → link_parser → forward_modifier
    → order_modifier

The forward modifier stamps dates that filters and sorting later see, so it
must run after every syntax parser and the status pass.
"""

import re
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Callable, Iterable, List, Optional

from tasks_timeline.models.task import STATUS_MARKER_MAP, Link, TaskRecord, TaskStatus
from tasks_timeline.parsers.markdown_index import MD_LINK_REGEX, TAG_REGEX, WIKI_LINK_REGEX

TaskModifier = Callable[[TaskRecord], Optional[TaskRecord]]
Clock = Callable[[], datetime]

_VS = "\ufe0f?"  # optional emoji variation selector

PRIORITY_EMOJI = {
    "🔺": "highest",
    "⏫": "high",
    "🔼": "medium",
    "🔽": "low",
    "⏬": "lowest",
}

DATE_EMOJI = {
    "🛫": "start",
    "⏳": "scheduled",
    "⌛": "scheduled",
    "📅": "due",
    "📆": "due",
    "🗓": "due",
    "✅": "completion",
    "➕": "created",
    "❌": "cancelled_date",
}

_PRIORITY_RE = re.compile(rf"({'|'.join(PRIORITY_EMOJI)}){_VS}")
_DATE_RE = re.compile(rf"({'|'.join(DATE_EMOJI)}){_VS}\s*(\d{{4}}-\d{{2}}-\d{{2}})")
_RECURRENCE_RE = re.compile(rf"🔁{_VS}\s*([a-zA-Z0-9, !]+)")

_DATAVIEW_KEYS = "due|scheduled|start|completion|created|priority|repeat|recurrence"
_DATAVIEW_RE = re.compile(
    rf"\[(?P<k1>{_DATAVIEW_KEYS})::\s*(?P<v1>[^\]]*)\]"
    rf"|\((?P<k2>{_DATAVIEW_KEYS})::\s*(?P<v2>[^)]*)\)"
)
_DATAVIEW_DATE_KEYS = {"due", "scheduled", "start", "completion", "created"}


def parse_date(value: str) -> Optional[datetime]:
    """Parse an ISO date or date-time; None if unparseable."""
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def _cut(text: str, spans: Iterable[tuple]) -> str:
    """Remove character spans from text."""
    result = text
    for start, end in sorted(spans, reverse=True):
        result = result[:start] + result[end:]
    return result


def apply_modifiers(task: Optional[TaskRecord], modifiers: List[TaskModifier]) -> Optional[TaskRecord]:
    """Fold the task through every modifier; the first None stops the chain."""
    for modifier in modifiers:
        if task is None:
            return None
        task = modifier(task)
    return task


def filter_date(day: datetime) -> Callable[[TaskRecord], bool]:
    """Predicate: does the task have any date on the same day as ``day``?"""
    target = day.date()

    def predicate(task: TaskRecord) -> bool:
        return any(value.date() == target for value in task.all_dates().values())

    return predicate


def filter_date_range(start: Optional[datetime], end: Optional[datetime]) -> Callable[[TaskRecord], bool]:
    """Predicate: does the task have any date between ``start`` and ``end`` (whole days, inclusive)?"""
    first = start.date() if start else None
    last = end.date() if end else None

    def predicate(task: TaskRecord) -> bool:
        for value in task.all_dates().values():
            day = value.date()
            if (first is None or day >= first) and (last is None or day <= last):
                return True
        return False

    return predicate


# ---------------------------------------------------------------------------
# Task syntax parsers
# ---------------------------------------------------------------------------

def tasks_plugin_parser(task: TaskRecord) -> TaskRecord:
    """Tasks-plugin emoji syntax: priority, recurrence and dates."""
    spans = []
    text = task.visual

    for m in _DATE_RE.finditer(text):
        value = parse_date(m.group(2))
        if value is not None:
            setattr(task, DATE_EMOJI[m.group(1)], value)
            spans.append(m.span())

    for m in _PRIORITY_RE.finditer(text):
        task.priority = PRIORITY_EMOJI[m.group(1)]
        spans.append(m.span())

    m = _RECURRENCE_RE.search(text)
    if m:
        task.recurrence = m.group(1).strip()
        spans.append(m.span())

    if spans:
        task.is_tasks_task = True
        task.visual = _cut(text, spans).strip()
    return task


def dataview_parser(task: TaskRecord) -> TaskRecord:
    """Dataview inline fields, e.g. ``[due:: 2024-05-01]`` or ``(priority:: high)``."""
    spans = []
    for m in _DATAVIEW_RE.finditer(task.visual):
        key = m.group("k1") or m.group("k2")
        value = (m.group("v1") if m.group("k1") else m.group("v2")).strip()
        if key in _DATAVIEW_DATE_KEYS:
            parsed = parse_date(value)
            if parsed is None:
                continue
            setattr(task, key, parsed)
        elif key == "priority":
            task.priority = value
        else:
            task.recurrence = value
        spans.append(m.span())

    if spans:
        task.visual = _cut(task.visual, spans).strip()
    return task


# ---------------------------------------------------------------------------
# Daily notes
# ---------------------------------------------------------------------------

_MOMENT_TOKENS = re.compile(r"\[[^\]]*\]|YYYY|YY|MMMM|MMM|MM|M|DD|D|dddd|ddd|.", re.S)
_MOMENT_TO_STRPTIME = {
    "YYYY": "%Y",
    "YY": "%y",
    "MMMM": "%B",
    "MMM": "%b",
    "MM": "%m",
    "M": "%m",
    "DD": "%d",
    "D": "%d",
    "dddd": "%A",
    "ddd": "%a",
}


def moment_to_strptime(fmt: str) -> str:
    """Translate a moment.js date format into a strptime format."""
    parts = []
    for token in _MOMENT_TOKENS.findall(fmt):
        if token in _MOMENT_TO_STRPTIME:
            parts.append(_MOMENT_TO_STRPTIME[token])
        elif token.startswith("[") and token.endswith("]") and len(token) > 1:
            parts.append(token[1:-1].replace("%", "%%"))
        else:
            parts.append(token.replace("%", "%%"))
    return "".join(parts)


def daily_note_date(path: str, fmt: str, folder: str = "") -> Optional[datetime]:
    """Return the date encoded in a daily note's path, or None if it is not one."""
    if not fmt:
        return None
    note = PurePosixPath(path)
    if folder:
        try:
            note = note.relative_to(folder.strip("/"))
        except ValueError:
            return None
    name = note.with_suffix("").as_posix() if "/" in fmt else note.stem
    try:
        return datetime.strptime(name, moment_to_strptime(fmt))
    except ValueError:
        return None


def daily_note_parser(fmt: str, folder: str = "") -> TaskModifier:
    """Tasks in a daily note without start/scheduled/due are scheduled on the note's date."""

    def modifier(task: TaskRecord) -> TaskRecord:
        note_date = daily_note_date(task.path, fmt, folder)
        if note_date is None:
            return task
        task.daily_note = True
        task.dates["dailynote"] = note_date
        if task.start is None and task.scheduled is None and task.due is None:
            task.scheduled = note_date
        return task

    return modifier


# ---------------------------------------------------------------------------
# Text cleanup
# ---------------------------------------------------------------------------

def _mask(text: str) -> str:
    masked = WIKI_LINK_REGEX.sub(lambda m: " " * len(m.group()), text)
    return MD_LINK_REGEX.sub(lambda m: " " * len(m.group()), masked)


def tags_parser(task: TaskRecord) -> TaskRecord:
    """Move ``#tags`` embedded in the description into ``tags``."""
    matches = list(TAG_REGEX.finditer(_mask(task.visual)))
    if matches:
        task.add_tags([f"#{m.group(1)}" for m in matches])
        task.visual = _cut(task.visual, [m.span() for m in matches]).strip()
    return task


def remainder_parser(task: TaskRecord) -> TaskRecord:
    """Collapse whitespace left behind by the parsers and trim stray separators."""
    task.visual = re.sub(r"\s{2,}", " ", task.visual).strip().strip(",;|").strip()
    return task


def status_parser(clock: Clock = datetime.now) -> TaskModifier:
    """Map the status marker onto a TaskStatus, deriving open-task status from dates."""

    def day(value: Optional[datetime]) -> Optional[date]:
        return value.date() if value is not None else None

    def modifier(task: TaskRecord) -> TaskRecord:
        mapped = STATUS_MARKER_MAP.get(task.status_marker, TaskStatus.todo)
        if mapped is not TaskStatus.todo:
            task.status = mapped.value
            return task

        today = clock().date()
        due, start, scheduled = day(task.due), day(task.start), day(task.scheduled)
        if due is not None and due < today:
            status = TaskStatus.overdue
        elif due is not None and due == today:
            status = TaskStatus.due
        elif start is not None and start <= today:
            status = TaskStatus.process if due is not None else TaskStatus.start
        elif scheduled is not None and scheduled <= today:
            status = TaskStatus.scheduled
        elif due or start or scheduled:
            status = TaskStatus.scheduled
        else:
            status = TaskStatus.unplanned
        task.status = status.value
        return task

    return modifier


def link_parser(task: TaskRecord) -> TaskRecord:
    """Replace links in the description with their display text and record them as outlinks."""
    known = {(link.path, link.subpath) for link in task.outlinks}
    found: List[Link] = []

    def wiki(m: "re.Match[str]") -> str:
        link = Link.parse(m.group(2).strip(), display=(m.group(3) or "").strip() or None, embed=bool(m.group(1)))
        found.append(link)
        return link.display_text

    def markdown(m: "re.Match[str]") -> str:
        target = m.group(3)
        if "://" not in target:
            found.append(Link.parse(target, display=m.group(2) or None, embed=bool(m.group(1))))
        return m.group(2)

    visual = WIKI_LINK_REGEX.sub(wiki, task.visual)
    visual = MD_LINK_REGEX.sub(markdown, visual)
    if visual != task.visual:
        task.visual = visual
        task.annotated = True

    for link in found:
        if (link.path, link.subpath) not in known:
            task.outlinks.append(link)
            known.add((link.path, link.subpath))
    return task


# ---------------------------------------------------------------------------
# Option-driven modifiers
# ---------------------------------------------------------------------------

def forward_modifier(enabled: bool, clock: Clock = datetime.now) -> TaskModifier:
    """
    Surface unplanned, undated-done and overdue tasks in the current view.

    Unplanned tasks get an ``unplanned`` date of now, done tasks without any
    date get ``done-unplanned``, and overdue tasks with no date on today get
    an ``overdue`` date of now.
    """

    def modifier(task: TaskRecord) -> TaskRecord:
        if not enabled:
            return task
        now = clock()
        if task.status == TaskStatus.unplanned.value:
            task.dates[TaskStatus.unplanned.value] = now
        elif task.status == TaskStatus.done.value and not task.has_any_date():
            task.dates["done-unplanned"] = now
        elif task.status == TaskStatus.overdue.value and not filter_date(now)(task):
            task.dates[TaskStatus.overdue.value] = now
        return task

    return modifier


def order_modifier(status_order: List[str]) -> TaskModifier:
    """Set ``order`` to the 1-based rank of the task's status in ``status_order``."""

    def modifier(task: TaskRecord) -> TaskRecord:
        if task.status in status_order:
            task.order = status_order.index(task.status) + 1
        return task

    return modifier
