from .line_parser import BLOCK_LINK_REGEX, TASK_REGEX, find_parent_section, parse_line, resolve_item
from .markdown_index import index_markdown

__all__ = [
    "BLOCK_LINK_REGEX",
    "TASK_REGEX",
    "find_parent_section",
    "parse_line",
    "resolve_item",
    "index_markdown",
]
