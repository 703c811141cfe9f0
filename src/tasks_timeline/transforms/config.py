"""
Transform configuration: user options → modifiers, filters and comparator.

TaskOptions keeps the pipeline derived from the current options. set() merges
a partial update and rebuilds the pipeline only when the effective options
actually changed; otherwise the existing lists are reused as-is.
"""

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from tasks_timeline.models.options import UserOptions
from tasks_timeline.transforms.filters import TaskFilter, build_filters
from tasks_timeline.transforms.modifiers import (
    Clock,
    TaskModifier,
    daily_note_parser,
    dataview_parser,
    forward_modifier,
    link_parser,
    order_modifier,
    remainder_parser,
    status_parser,
    tags_parser,
    tasks_plugin_parser,
)
from tasks_timeline.transforms.sorting import Comparator, default_sort, resolve_sort

log = logging.getLogger(__name__)


def build_modifiers(options: UserOptions, clock: Clock = datetime.now) -> List[TaskModifier]:
    return [
        tasks_plugin_parser,
        dataview_parser,
        daily_note_parser(options.daily_note_format, options.daily_note_folder),
        tags_parser,
        remainder_parser,
        status_parser(clock),
        link_parser,
        forward_modifier(options.forward, clock),
        order_modifier(list(options.task_status_order)),
    ]


class TaskOptions:
    """Current options plus the pipeline derived from them."""

    def __init__(self, options: Optional[UserOptions] = None, clock: Clock = datetime.now) -> None:
        self._clock = clock
        self._options = options or UserOptions()
        self.modifiers: List[TaskModifier] = []
        self.filters: List[TaskFilter] = []
        self.sort_function: Comparator = default_sort
        self._rebuild()

    @property
    def options(self) -> UserOptions:
        return self._options

    def set(self, partial: Optional[Mapping[str, Any]] = None) -> "TaskOptions":
        """
        Merge option changes and rebuild the pipeline if anything changed.

        Raises:
            OptionsError: If the merged options fail validation.
        """
        merged = self._options.merged(partial or {})
        if merged != self._options:
            self._options = merged
            self._rebuild()
        return self

    def replace(self, options: UserOptions) -> "TaskOptions":
        if options != self._options:
            self._options = options
            self._rebuild()
        return self

    def _rebuild(self) -> None:
        log.debug("Rebuilding task pipeline")
        self.sort_function = resolve_sort(self._options.sort)
        self.modifiers = build_modifiers(self._options, self._clock)
        self.filters = build_filters(self._options)
