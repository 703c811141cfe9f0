"""
Task filters.

A filter is a predicate over a fully modified TaskRecord; a task is kept only
if every filter returns True. build_filters() returns them in fixed order:
hidden status, tag include, tag exclude, empty description.
"""

from typing import Callable, List

from tasks_timeline.models.options import UserOptions
from tasks_timeline.models.task import STATUS_MARKER_MAP, TaskRecord

TaskFilter = Callable[[TaskRecord], bool]


def status_filter(hidden: List[str]) -> TaskFilter:
    """Hide tasks whose marker, marker-mapped status or status name is listed."""
    hidden_statuses = {STATUS_MARKER_MAP[m].value for m in hidden if m in STATUS_MARKER_MAP}
    hidden_statuses.update(h for h in hidden if len(h) > 1)

    def predicate(task: TaskRecord) -> bool:
        if not hidden:
            return True
        if task.status_marker in hidden:
            return False
        return task.status not in hidden_statuses

    return predicate


def include_tags_filter(enabled: bool, tags: List[str]) -> TaskFilter:
    def predicate(task: TaskRecord) -> bool:
        if not enabled or not tags:
            return True
        return any(tag in task.tags for tag in tags)

    return predicate


def exclude_tags_filter(enabled: bool, tags: List[str]) -> TaskFilter:
    def predicate(task: TaskRecord) -> bool:
        if not enabled or not tags:
            return True
        return all(tag not in task.tags for tag in tags)

    return predicate


def empty_filter(enabled: bool) -> TaskFilter:
    def predicate(task: TaskRecord) -> bool:
        return not enabled or task.visual.strip() != ""

    return predicate


def build_filters(options: UserOptions) -> List[TaskFilter]:
    return [
        status_filter(list(options.hide_status_tasks)),
        include_tags_filter(options.use_include_tags, list(options.task_include_tags)),
        exclude_tags_filter(options.use_exclude_tags, list(options.task_exclude_tags)),
        empty_filter(options.filter_empty),
    ]


def passes(task: TaskRecord, filters: List[TaskFilter]) -> bool:
    return all(f(task) for f in filters)
