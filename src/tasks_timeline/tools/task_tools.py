"""
Task tool handlers.

Core logic lives in handle_* functions (return dicts).
MCP wrappers in register_task_tools() serialize to JSON strings.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from tasks_timeline.cache.adapter import is_parent
from tasks_timeline.models.options import OptionsError
from tasks_timeline.transforms.modifiers import filter_date_range, parse_date

log = logging.getLogger(__name__)


def _split(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


# ---------------------------------------------------------------------------
# Handler functions (return dicts, shared by MCP tools and REST API)
# ---------------------------------------------------------------------------


def handle_task_refresh(
    service,
    *,
    include_paths: Optional[List[str]] = None,
    exclude_paths: Optional[List[str]] = None,
    include_tags: Optional[List[str]] = None,
    exclude_tags: Optional[List[str]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> dict:
    try:
        batch = service.refresh(
            include_paths=include_paths,
            exclude_paths=exclude_paths,
            include_tags=include_tags,
            exclude_tags=exclude_tags,
            options=options,
        )
    except OptionsError as e:
        return {"error": f"Invalid options: {e}"}
    status = service.status()
    return {
        "refreshed": len(batch),
        "tasks_indexed": status["tasks_indexed"],
        "errors": status["last_errors"],
        "last_error": status["last_error"],
    }


def _parse_bound(raw: Optional[str], name: str) -> Optional[datetime]:
    if not raw:
        return None
    value = parse_date(raw)
    if value is None:
        raise ValueError(f"Invalid {name} date '{raw}', expected YYYY-MM-DD")
    return value


def handle_task_list(
    service,
    *,
    status: Optional[str] = None,
    tag: Optional[str] = None,
    path: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    priority: Optional[str] = None,
    limit: int = 200,
) -> list[dict]:
    """
    Sorted task view, optionally narrowed.

    Args:
        status: Comma-separated status names, e.g. "overdue,due"
        tag: Comma-separated tags; a task matches if it carries any of them
        path: Folder or document path; matches whole path segments
        start: Keep tasks with a date on or after this day (YYYY-MM-DD)
        end: Keep tasks with a date on or before this day (YYYY-MM-DD)
        priority: Comma-separated priorities, e.g. "highest,high"
        limit: Max results

    Raises:
        ValueError: If start or end is not a date.
    """
    statuses = set(_split(status))
    tags = {t if t.startswith("#") else f"#{t}" for t in _split(tag)}
    priorities = set(_split(priority))
    start_date = _parse_bound(start, "start")
    end_date = _parse_bound(end, "end")
    in_range = filter_date_range(start_date, end_date) if start_date or end_date else None

    result = []
    for task in service.tasks():
        if statuses and task.status not in statuses:
            continue
        if tags and not tags.intersection(task.tags):
            continue
        if path and not is_parent(path, task.path):
            continue
        if priorities and task.priority not in priorities:
            continue
        if in_range and not in_range(task):
            continue
        result.append(task.to_dict())
        if len(result) >= limit:
            break
    return result


def handle_task_get(service, *, task_id: str) -> dict:
    task = service.get_task(task_id)
    if task is None:
        return {"error": f"Task '{task_id}' not found"}
    return task.to_dict()


def handle_task_files(service) -> dict:
    return {"files": service.files()}


def handle_options_get(service) -> dict:
    return service.get_options().model_dump()


def handle_options_update(service, *, changes: Dict[str, Any]) -> dict:
    try:
        options = service.update_options(changes)
    except OptionsError as e:
        return {"error": f"Invalid options: {e}"}
    return options.model_dump()


def handle_cache_status(service) -> dict:
    return service.status()


# ---------------------------------------------------------------------------
# MCP tool registration (thin wrappers)
# ---------------------------------------------------------------------------


def register_task_tools(mcp: FastMCP, service) -> None:
    """Register all task-related MCP tools onto the FastMCP instance."""

    @mcp.tool()
    def task_refresh(
        include_paths: Optional[List[str]] = None,
        exclude_paths: Optional[List[str]] = None,
        include_tags: Optional[List[str]] = None,
        exclude_tags: Optional[List[str]] = None,
    ) -> str:
        """
        Re-scan the vault and merge the tasks found into the task table.

        Documents already being scanned are skipped. Filters left empty fall
        back to the configured options.

        Args:
            include_paths: Only scan documents under these folders
            exclude_paths: Skip documents under these folders
            include_tags: Only scan documents carrying one of these tags
            exclude_tags: Skip documents carrying any of these tags

        Returns:
            JSON with refreshed/indexed counts and per-document errors
        """
        return json.dumps(
            handle_task_refresh(
                service,
                include_paths=include_paths,
                exclude_paths=exclude_paths,
                include_tags=include_tags,
                exclude_tags=exclude_tags,
            ),
            indent=2,
        )

    @mcp.tool()
    def task_list(
        status: Optional[str] = None,
        tag: Optional[str] = None,
        path: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 200,
    ) -> str:
        """
        List tasks in timeline order.

        Args:
            status: Comma-separated statuses to include, from overdue, due,
                    scheduled, start, process, unplanned, done, cancelled.
                    Omit for all.
            tag: Comma-separated tags (with or without "#"); any match
            path: Restrict to a folder or a single document
            start: Only tasks with a date on or after this day (YYYY-MM-DD)
            end: Only tasks with a date on or before this day (YYYY-MM-DD)
            priority: Comma-separated priorities: highest, high, medium,
                      low, lowest
            limit: Maximum number of results (default 200)

        Returns:
            JSON array of task objects, or error message
        """
        try:
            result = handle_task_list(
                service,
                status=status,
                tag=tag,
                path=path,
                start=start,
                end=end,
                priority=priority,
                limit=limit,
            )
        except ValueError as e:
            return json.dumps({"error": str(e)}, indent=2)
        return json.dumps(result, indent=2)

    @mcp.tool()
    def task_get(task_id: str) -> str:
        """
        Get a single task by identity.

        Args:
            task_id: Task identity as returned by task_list, e.g.
                     "Projects/roadmap.md^abc123" or "Daily/2024-01-01.md:-3:4"

        Returns:
            JSON task object, or error message
        """
        return json.dumps(handle_task_get(service, task_id=task_id), indent=2)

    @mcp.tool()
    def task_files() -> str:
        """
        List the documents that contribute tasks, in task order.

        Returns:
            JSON with a "files" array of vault-relative paths
        """
        return json.dumps(handle_task_files(service), indent=2)

    @mcp.tool()
    def options_get() -> str:
        """
        Show the current task pipeline options.

        Returns:
            JSON options object
        """
        return json.dumps(handle_options_get(service), indent=2)

    @mcp.tool()
    def options_update(changes: Dict[str, Any]) -> str:
        """
        Change task pipeline options. Takes effect on the next refresh.

        Args:
            changes: Option fields to replace, e.g.
                     {"hide_status_tasks": ["x"], "sort": "due(ascending)"}.
                     camelCase keys are accepted too.

        Returns:
            JSON of the merged options, or error message
        """
        return json.dumps(handle_options_update(service, changes=changes), indent=2)

    @mcp.tool()
    def cache_status() -> str:
        """
        Show task cache statistics.

        Returns:
            JSON with task count, last refresh time, pending work, errors, etc.
        """
        return json.dumps(handle_cache_status(service), indent=2)
