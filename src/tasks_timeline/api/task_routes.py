"""REST API routes for task operations."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from tasks_timeline.tools.task_tools import (
    handle_cache_status,
    handle_options_get,
    handle_options_update,
    handle_task_files,
    handle_task_get,
    handle_task_list,
    handle_task_refresh,
)


class RefreshBody(BaseModel):
    include_paths: Optional[List[str]] = None
    exclude_paths: Optional[List[str]] = None
    include_tags: Optional[List[str]] = None
    exclude_tags: Optional[List[str]] = None
    options: Optional[Dict[str, Any]] = None


def register_task_routes(app_router: APIRouter, service) -> None:
    """Attach task REST routes that use the shared service."""

    @app_router.post("/tasks/refresh")
    def refresh_tasks(body: Optional[RefreshBody] = None):
        body = body or RefreshBody()
        result = handle_task_refresh(
            service,
            include_paths=body.include_paths,
            exclude_paths=body.exclude_paths,
            include_tags=body.include_tags,
            exclude_tags=body.exclude_tags,
            options=body.options,
        )
        if "error" in result:
            raise HTTPException(status_code=400, detail=result["error"])
        return result

    @app_router.get("/tasks")
    def list_tasks(
        status: Optional[str] = Query(None),
        tag: Optional[str] = Query(None),
        path: Optional[str] = Query(None),
        start: Optional[str] = Query(None),
        end: Optional[str] = Query(None),
        priority: Optional[str] = Query(None),
        limit: int = Query(200),
    ):
        try:
            return handle_task_list(
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
            raise HTTPException(status_code=400, detail=str(e))

    # Identities contain the document path, slashes included
    @app_router.get("/tasks/{task_id:path}")
    def get_task(task_id: str):
        result = handle_task_get(service, task_id=task_id)
        if "error" in result:
            raise HTTPException(status_code=404, detail=result["error"])
        return result

    @app_router.get("/files")
    def list_files():
        return handle_task_files(service)

    @app_router.get("/options")
    def get_options():
        return handle_options_get(service)

    @app_router.patch("/options")
    def update_options(changes: Dict[str, Any]):
        result = handle_options_update(service, changes=changes)
        if "error" in result:
            raise HTTPException(status_code=400, detail=result["error"])
        return result

    @app_router.get("/cache/status")
    def cache_status():
        return handle_cache_status(service)
