"""FastAPI application factory for the task timeline REST API."""

from fastapi import APIRouter, FastAPI

from tasks_timeline.api.task_routes import register_task_routes


def create_app(service) -> FastAPI:
    """Build and return a FastAPI app wired to the given TaskService."""
    app = FastAPI(title="tasks-timeline", docs_url="/api/docs", openapi_url="/api/openapi.json")

    api = APIRouter(prefix="/api")
    register_task_routes(api, service)
    app.include_router(api)

    return app
