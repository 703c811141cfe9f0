from .config import TaskOptions, build_modifiers
from .filters import TaskFilter, build_filters, passes
from .modifiers import TaskModifier, apply_modifiers, filter_date, filter_date_range
from .sorting import SortSpecError, default_sort, resolve_sort, sort_tasks, validate_comparator

__all__ = [
    "TaskOptions",
    "build_modifiers",
    "TaskFilter",
    "build_filters",
    "passes",
    "TaskModifier",
    "apply_modifiers",
    "filter_date",
    "filter_date_range",
    "SortSpecError",
    "default_sort",
    "resolve_sort",
    "sort_tasks",
    "validate_comparator",
]
