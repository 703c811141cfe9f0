from .task import DATE_FIELDS, STATUS_MARKER_MAP, Link, Loc, Pos, TaskRecord, TaskStatus
from .metadata import (
    DocumentMetadata,
    LinkOccurrence,
    ListItem,
    Section,
    TagOccurrence,
    front_matter_tags,
    item_identity,
)
from .options import DEFAULT_STATUS_ORDER, OptionsError, UserOptions, load_options

__all__ = [
    "DATE_FIELDS",
    "STATUS_MARKER_MAP",
    "Link",
    "Loc",
    "Pos",
    "TaskRecord",
    "TaskStatus",
    "DocumentMetadata",
    "LinkOccurrence",
    "ListItem",
    "Section",
    "TagOccurrence",
    "front_matter_tags",
    "item_identity",
    "DEFAULT_STATUS_ORDER",
    "OptionsError",
    "UserOptions",
    "load_options",
]
