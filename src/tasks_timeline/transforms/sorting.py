"""
Sort comparators.

The user picks the ordering of the task view by name rather than by writing
code. A sort spec is one of:

    "status(ascending)"  "due descending"  "text"     (field + direction)
    "(t1, t2) => t1.order <= t2.order ? -1 : 1"      (settings-UI alias)

or, programmatically, a two-argument callable. Every comparator is probed on
two canonical records before it is installed; anything that raises or
answers with the wrong sign is replaced by default_sort.
"""

import functools
import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from tasks_timeline.models.task import TaskRecord

log = logging.getLogger(__name__)

Comparator = Callable[[Any, Any], int]
SortSpec = Union[str, Comparator]


class SortSpecError(ValueError):
    """Raised when a sort spec does not name a known strategy."""


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def default_sort(t1: TaskRecord, t2: TaskRecord) -> int:
    """Ascending by ``order``; a missing order counts as 0."""
    o1 = getattr(t1, "order", 0) or 0
    o2 = getattr(t2, "order", 0) or 0
    return _cmp(o1, o2)


# ---------------------------------------------------------------------------
# Named strategies
# ---------------------------------------------------------------------------

_PRIORITY_RANK = {"lowest": 1, "low": 2, "": 3, "medium": 4, "high": 5, "highest": 6}


def _date_key(value: Optional[datetime]) -> Tuple[int, datetime]:
    # Undated tasks sort after dated ones
    return (1, datetime.min) if value is None else (0, value)


SORT_KEYS: Dict[str, Callable[[TaskRecord], Any]] = {
    "status": lambda t: t.order,
    "text": lambda t: t.visual.strip(),
    "start": lambda t: _date_key(t.start),
    "due": lambda t: _date_key(t.due),
    "scheduled": lambda t: _date_key(t.scheduled),
    "tags": lambda t: list(t.tags),
    "priority": lambda t: _PRIORITY_RANK.get(t.priority, 3),
    "path": lambda t: (t.path, t.line),
}

# Sort lambdas stored by older settings files
_LEGACY_ALIASES = {
    "(t1, t2) => t1.order <= t2.order ? -1 : 1": "status(ascending)",
    "(t1, t2) => t1.order >= t2.order ? -1 : 1": "status(descending)",
    "(t1, t2) => t1.visual.trim() <= t2.visual.trim() ? -1 : 1": "text(ascending)",
    "(t1, t2) => t1.visual.trim() >= t2.visual.trim() ? -1 : 1": "text(descending)",
    "(t1, t2) => t1.start <= t2.start ? -1 : 1": "start(ascending)",
    "(t1, t2) => t1.start >= t2.start ? -1 : 1": "start(descending)",
    "(t1, t2) => t1.due <= t2.due ? -1 : 1": "due(ascending)",
    "(t1, t2) => t1.due >= t2.due ? -1 : 1": "due(descending)",
    "(t1, t2) => t1.tags <= t2.tags ? -1 : 1": "tags(ascending)",
    "(t1, t2) => t1.tags >= t2.tags ? -1 : 1": "tags(descending)",
}

_SPEC_RE = re.compile(r"^\s*(\w+)\s*(?:\(\s*(\w+)\s*\)|\s+(\w+))?\s*$")
_DIRECTIONS = {"ascending": False, "asc": False, "descending": True, "desc": True}


def parse_sort_spec(spec: str) -> Tuple[str, bool]:
    """
    Parse a sort spec into (field, descending).

    Raises:
        SortSpecError: If the field or direction is unknown.
    """
    spec = _LEGACY_ALIASES.get(spec.strip(), spec)
    m = _SPEC_RE.match(spec)
    if not m:
        raise SortSpecError(f"Unrecognised sort spec: {spec!r}")
    field = m.group(1).lower()
    direction = (m.group(2) or m.group(3) or "ascending").lower()
    if field not in SORT_KEYS:
        raise SortSpecError(f"Unknown sort field {field!r}; expected one of {sorted(SORT_KEYS)}")
    if direction not in _DIRECTIONS:
        raise SortSpecError(f"Unknown sort direction {direction!r}")
    return field, _DIRECTIONS[direction]


def field_comparator(field: str, descending: bool = False) -> Comparator:
    """Build a comparator over one sort field; ties fall back to ``order``."""
    key = SORT_KEYS[field]
    sign = -1 if descending else 1

    def compare(t1: TaskRecord, t2: TaskRecord) -> int:
        result = _cmp(key(t1), key(t2))
        if result == 0 and field != "status":
            result = _cmp(t1.order, t2.order)
        return sign * result

    compare.__name__ = f"{field}_{'descending' if descending else 'ascending'}"
    return compare


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _probe_records() -> Tuple[TaskRecord, TaskRecord]:
    """Two synthetic records where the first sorts after the second on every field."""
    high = TaskRecord(
        id="probe:2", path="probe/b.md", text="- [ ] b", visual="b",
        status_marker=" ", status="unplanned", tags=["#b"], priority="highest",
        due=datetime(2000, 1, 2), start=datetime(2000, 1, 2), scheduled=datetime(2000, 1, 2),
        order=2, line=2,
    )
    low = TaskRecord(
        id="probe:1", path="probe/a.md", text="- [ ] a", visual="a",
        status_marker=" ", status="unplanned", tags=["#a"], priority="lowest",
        due=datetime(2000, 1, 1), start=datetime(2000, 1, 1), scheduled=datetime(2000, 1, 1),
        order=1, line=1,
    )
    return high, low


def validate_comparator(comparator: Comparator, descending: bool = False) -> bool:
    """
    Probe a comparator with two records of known relative order.

    The result must be positive (negative for comparators declared
    descending). Raising, returning zero or a non-number fails the probe.
    """
    high, low = _probe_records()
    try:
        result = comparator(high, low)
    except Exception as e:
        log.warning("Sort comparator raised on probe: %s", e)
        return False
    if not isinstance(result, (int, float)) or isinstance(result, bool):
        return False
    return result < 0 if descending else result > 0


def resolve_sort(spec: Optional[SortSpec]) -> Comparator:
    """
    Build and validate the comparator for a sort spec.

    Falls back to default_sort, with a warning, when the spec is unknown or
    the comparator fails validation.
    """
    if spec is None or spec == "":
        return default_sort
    try:
        if callable(spec):
            comparator, descending = spec, False
        else:
            field, descending = parse_sort_spec(spec)
            comparator = field_comparator(field, descending)
    except SortSpecError as e:
        log.warning("Sort spec is not applicable or invalid, using default: %s", e)
        return default_sort

    if not validate_comparator(comparator, descending):
        log.warning("Sort comparator %r failed validation, using default", spec)
        return default_sort
    return comparator


def sort_tasks(tasks: List[TaskRecord], comparator: Comparator) -> List[TaskRecord]:
    """Return a new sorted list; comparator exceptions propagate to the caller."""
    return sorted(tasks, key=functools.cmp_to_key(comparator))
