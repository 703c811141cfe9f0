"""
Thread-facing front end for the task adapter.

The adapter is single-loop asyncio code. TaskService owns that loop in a
daemon thread and exposes blocking methods that the MCP tools, the REST API
and the watcher can call from their own threads; every call is marshalled
onto the loop with run_coroutine_threadsafe, so the adapter never sees two
threads.

The watcher calls enqueue_refresh(); a worker thread drains the update
queue, invalidates the changed documents and runs one refresh per batch of
queued changes.
"""

import asyncio
import logging
import queue
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Coroutine, List, Mapping, Optional, Sequence, TypeVar, Union

from tasks_timeline.cache.adapter import TaskAdapter
from tasks_timeline.models.options import UserOptions
from tasks_timeline.models.task import TaskRecord
from tasks_timeline.transforms.modifiers import Clock
from tasks_timeline.vault.store import LocalVault

log = logging.getLogger(__name__)

T = TypeVar("T")

# Queue item meaning "refresh without invalidating a particular document"
_FULL_REFRESH = ""


class TaskService:
    """
    Usage:
        service = TaskService(LocalVault(root, exclude_dirs))
        service.start()
        service.refresh()
        ...
        service.stop()
    """

    def __init__(
        self,
        vault: LocalVault,
        *,
        options: Optional[UserOptions] = None,
        clock: Clock = datetime.now,
        on_add: Optional[Callable[[TaskRecord], None]] = None,
        on_finished: Optional[Callable[[List[TaskRecord]], None]] = None,
        timeout: Optional[float] = 60.0,
    ) -> None:
        self._vault = vault
        self._adapter = TaskAdapter(vault, clock=clock, on_add=on_add, on_finished=on_finished)
        if options is not None:
            self._adapter.set_options(options)
        self._timeout = timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._update_queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._worker_thread: Optional[threading.Thread] = None

    @property
    def vault(self) -> LocalVault:
        return self._vault

    @property
    def adapter(self) -> TaskAdapter:
        return self._adapter

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the event loop thread and the update-queue worker (both daemons)."""
        if self._loop is not None:
            return
        self._loop = asyncio.new_event_loop()
        started = threading.Event()
        self._loop_thread = threading.Thread(
            target=self._run_loop, args=(started,), daemon=True, name="task-service-loop"
        )
        self._loop_thread.start()
        started.wait()

        self._worker_thread = threading.Thread(
            target=self._worker_loop, daemon=True, name="task-service-worker"
        )
        self._worker_thread.start()

    def stop(self) -> None:
        """Stop the worker and the loop, and wait for both threads."""
        self._update_queue.put(None)  # sentinel
        if self._worker_thread:
            self._worker_thread.join(timeout=5)
            self._worker_thread = None

        loop = self._loop
        if loop is None:
            return
        try:
            asyncio.run_coroutine_threadsafe(loop.shutdown_default_executor(), loop).result(5)
        except Exception:
            log.exception("Failed to shut down the file reader threads")
        loop.call_soon_threadsafe(loop.stop)
        if self._loop_thread:
            self._loop_thread.join(timeout=5)
            self._loop_thread = None
        loop.close()
        self._loop = None

    def _run_loop(self, started: threading.Event) -> None:
        assert self._loop is not None
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(started.set)
        self._loop.run_forever()

    def _submit(self, factory: Callable[[], Coroutine[Any, Any, T]]) -> T:
        if self._loop is None:
            raise RuntimeError("TaskService is not started")
        future = asyncio.run_coroutine_threadsafe(factory(), self._loop)
        return future.result(self._timeout)

    def _call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain function on the loop thread and return its result."""

        async def _run() -> T:
            return fn(*args)

        return self._submit(_run)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(
        self,
        include_paths: Optional[Sequence[str]] = None,
        exclude_paths: Optional[Sequence[str]] = None,
        include_tags: Optional[Sequence[str]] = None,
        exclude_tags: Optional[Sequence[str]] = None,
        options: Union[UserOptions, Mapping[str, Any], None] = None,
    ) -> List[TaskRecord]:
        """
        Run one refresh and block until it completes.

        Document filters left as None come from the current options.

        Raises:
            OptionsError: If ``options`` fails validation.
        """
        return self._submit(
            lambda: self._refresh(include_paths, exclude_paths, include_tags, exclude_tags, options)
        )

    async def _refresh(
        self,
        include_paths: Optional[Sequence[str]],
        exclude_paths: Optional[Sequence[str]],
        include_tags: Optional[Sequence[str]],
        exclude_tags: Optional[Sequence[str]],
        options: Union[UserOptions, Mapping[str, Any], None],
    ) -> List[TaskRecord]:
        if options is not None:
            self._adapter.set_options(options)
        current = self._adapter.options.options
        return await self._adapter.refresh(
            current.include_paths if include_paths is None else include_paths,
            current.exclude_paths if exclude_paths is None else exclude_paths,
            current.file_include_tags if include_tags is None else include_tags,
            current.file_exclude_tags if exclude_tags is None else exclude_tags,
        )

    def enqueue_refresh(self, path: Union[Path, str, None] = None) -> None:
        """
        Schedule a refresh from a watcher callback (non-blocking).

        ``path`` names the document that changed, as an absolute path under
        the vault or a vault-relative key; None schedules a plain refresh.
        """
        if path is None:
            self._update_queue.put(_FULL_REFRESH)
            return
        if isinstance(path, Path) and path.is_absolute():
            try:
                path = self._vault.to_key(path)
            except ValueError:
                log.warning("Ignoring change outside the vault: %s", path)
                return
        self._update_queue.put(str(path))

    def _worker_loop(self) -> None:
        """Drain the update queue; one refresh covers every change queued so far."""
        while True:
            item = self._update_queue.get()
            if item is None:  # sentinel → stop
                break
            changed = [item]
            stop = False
            while True:
                try:
                    more = self._update_queue.get_nowait()
                except queue.Empty:
                    break
                if more is None:
                    stop = True
                    break
                changed.append(more)
            try:
                for key in changed:
                    if key != _FULL_REFRESH:
                        self._call(self._vault.invalidate, key)
                self.refresh()
            except Exception:
                log.exception("Worker failed to refresh after changes to %s", changed)
            if stop:
                break

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def tasks(self) -> List[TaskRecord]:
        return self._call(lambda: self._adapter.tasks)

    def files(self) -> List[str]:
        return self._call(lambda: self._adapter.files)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return self._call(self._adapter.get_task, task_id)

    def get_options(self) -> UserOptions:
        return self._call(lambda: self._adapter.options.options)

    def update_options(self, partial: Mapping[str, Any]) -> UserOptions:
        """
        Merge option changes; the next refresh uses the rebuilt pipeline.

        Raises:
            OptionsError: If the merged options fail validation.
        """
        return self._call(lambda: self._adapter.set_options(dict(partial)).options)

    def status(self) -> dict:
        adapter_status = self._call(self._adapter.status)
        return {
            **self._vault.status(),
            **adapter_status,
            "running": self.running,
            "queued_updates": self._update_queue.qsize(),
        }
