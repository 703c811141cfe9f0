from .adapter import TaskAdapter, is_parent
from .entries import DocumentTaskCache, ItemTaskCache
from .registry import PendingRegistry
from .service import TaskService

__all__ = [
    "TaskAdapter",
    "is_parent",
    "DocumentTaskCache",
    "ItemTaskCache",
    "PendingRegistry",
    "TaskService",
]
