"""
Tasks timeline server entry point.

Startup sequence:
1. Read VAULT_ROOT, EXCLUDE_DIRS and OPTIONS_FILE from environment
2. Start TaskService (event loop + update worker) and run the initial refresh
3. Start VaultWatcher daemon thread
4. Start REST API server in background thread (if API_ENABLED)
5. Register MCP tools and run the MCP server (stdio transport)
"""

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional, Set

from mcp.server.fastmcp import FastMCP

from tasks_timeline.cache.service import TaskService
from tasks_timeline.models.options import OptionsError, UserOptions, load_options
from tasks_timeline.tools import register_task_tools
from tasks_timeline.vault.store import LocalVault
from tasks_timeline.watcher.vault_watcher import VaultWatcher

log = logging.getLogger(__name__)

DEFAULT_EXCLUDE_DIRS = ".git,.obsidian,node_modules,.trash"
DEFAULT_API_PORT = 9410


def _parse_exclude_dirs(raw: str) -> Set[str]:
    """Parse a comma-separated list of directory names to exclude."""
    return {part.strip() for part in raw.split(",") if part.strip()}


def _load_user_options(raw: str) -> Optional[UserOptions]:
    if not raw:
        return None
    options = load_options(Path(raw))
    log.info("Loaded options from %s", raw)
    return options


def _start_api_server(service: TaskService, port: int) -> None:
    """Run the FastAPI/uvicorn server in a daemon thread."""
    import uvicorn

    from tasks_timeline.api.app import create_app

    app = create_app(service)
    log.info("Starting REST API on port %d", port)
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="warning")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    vault_root_env = os.environ.get("VAULT_ROOT", "")
    if not vault_root_env:
        log.error("VAULT_ROOT environment variable is not set")
        sys.exit(1)

    vault_root = Path(vault_root_env)
    if not vault_root.is_dir():
        log.error("VAULT_ROOT does not exist or is not a directory: %s", vault_root)
        sys.exit(1)

    exclude_dirs = _parse_exclude_dirs(os.environ.get("EXCLUDE_DIRS", DEFAULT_EXCLUDE_DIRS))

    try:
        options = _load_user_options(os.environ.get("OPTIONS_FILE", ""))
    except OptionsError as e:
        log.error("%s", e)
        sys.exit(1)

    log.info("Vault root: %s", vault_root)
    log.info("Excluded dirs: %s", exclude_dirs)

    service = TaskService(LocalVault(vault_root, exclude_dirs), options=options)
    service.start()
    log.info("Scanning vault...")
    tasks = service.refresh()
    log.info("Vault scan complete: %d tasks", len(tasks))

    watcher = VaultWatcher(service, vault_root, exclude_dirs)
    watcher.start()

    api_enabled = os.environ.get("API_ENABLED", "true").lower() in ("true", "1", "yes")
    if api_enabled:
        api_port = int(os.environ.get("API_PORT", str(DEFAULT_API_PORT)))
        api_thread = threading.Thread(
            target=_start_api_server, args=(service, api_port), daemon=True
        )
        api_thread.start()

    mcp = FastMCP("tasks-timeline")
    register_task_tools(mcp, service)

    log.info("Starting tasks-timeline server")
    try:
        mcp.run(transport="stdio")
    finally:
        watcher.stop()
        service.stop()


if __name__ == "__main__":
    main()
