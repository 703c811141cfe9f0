"""
Task adapter: documents in, deduplicated and ordered task table out.

A refresh selects the documents to scan (path and file-tag filters, skipping
documents already being resolved), resolves them concurrently and merges the
results into the table keyed by task identity. Reading the table applies the
current comparator.

Design:
    Task table     — Dict[str, TaskRecord]   (identity → latest record)
    Registry       — PendingRegistry         (in-flight documents/items only)
    Pipeline       — TaskOptions             (modifiers, filters, comparator)

All coroutines run on a single event loop; nothing here is thread-safe on
its own. TaskService marshals calls from other threads onto that loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from tasks_timeline.cache.entries import DocumentTaskCache
from tasks_timeline.cache.registry import PendingRegistry
from tasks_timeline.models.metadata import DocumentMetadata
from tasks_timeline.models.options import UserOptions
from tasks_timeline.models.task import TaskRecord
from tasks_timeline.transforms.config import TaskOptions
from tasks_timeline.transforms.filters import TaskFilter
from tasks_timeline.transforms.modifiers import Clock, TaskModifier
from tasks_timeline.transforms.sorting import sort_tasks
from tasks_timeline.vault.store import DocumentStore

log = logging.getLogger(__name__)

OptionsInput = Union[UserOptions, Mapping[str, Any], None]


# ---------------------------------------------------------------------------
# Document selection helpers
# ---------------------------------------------------------------------------

def _segments(path: str) -> List[str]:
    return [part for part in path.strip().strip("/").split("/") if part]


def is_parent(parent: str, path: str) -> bool:
    """
    True if ``parent`` is ``path`` or one of its ancestor folders.

    Matching is by whole path segments: "note" is a parent of "note/a.md"
    but not of "note2/a.md".
    """
    parent_parts = _segments(parent)
    if not parent_parts:
        return False
    path_parts = _segments(path)
    return path_parts[: len(parent_parts)] == parent_parts


def _normalize_tag(tag: str) -> str:
    tag = tag.strip()
    return tag if tag.startswith("#") else f"#{tag}"


def _document_tags(metadata: Optional[DocumentMetadata]) -> List[str]:
    return metadata.document_tags() if metadata is not None else []


# ---------------------------------------------------------------------------
# TaskAdapter
# ---------------------------------------------------------------------------

class TaskAdapter:
    """
    Owns the task table for one document store.

    Callbacks:
        on_add(record)       — once per record merged by a refresh
        on_finished(records) — once per completed refresh, with its batch
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        clock: Clock = datetime.now,
        on_add: Optional[Callable[[TaskRecord], None]] = None,
        on_finished: Optional[Callable[[List[TaskRecord]], None]] = None,
    ) -> None:
        self._store = store
        self._tasks: Dict[str, TaskRecord] = {}
        self._options = TaskOptions(clock=clock)
        self.registry = PendingRegistry()
        self.on_add = on_add
        self.on_finished = on_finished
        self.last_errors: List[str] = []
        self.last_error: Optional[str] = None
        self._last_refresh: Optional[datetime] = None
        self._refresh_count = 0

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def options(self) -> TaskOptions:
        return self._options

    def set_options(self, options: OptionsInput = None) -> TaskOptions:
        """
        Apply a full options object or a partial mapping.

        Raises:
            OptionsError: If the merged options fail validation.
        """
        if isinstance(options, UserOptions):
            return self._options.replace(options)
        return self._options.set(options or {})

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def generate_tasks_list(
        self,
        include_paths: Sequence[str],
        exclude_paths: Sequence[str],
        include_tags: Sequence[str],
        exclude_tags: Sequence[str],
        modifiers: List[TaskModifier],
        filters: List[TaskFilter],
    ) -> List[DocumentTaskCache]:
        """Select documents for a refresh and create their cache entries."""
        include_tag_set = {_normalize_tag(t) for t in include_tags if t.strip()}
        exclude_tag_set = {_normalize_tag(t) for t in exclude_tags if t.strip()}

        documents: List[DocumentTaskCache] = []
        try:
            for path in self._store.list_documents():
                if include_paths and not any(is_parent(p, path) for p in include_paths):
                    continue
                if any(is_parent(p, path) for p in exclude_paths):
                    continue
                if include_tag_set or exclude_tag_set:
                    tags = set(_document_tags(self._store.get_metadata(path)))
                    if include_tag_set and not (tags & include_tag_set):
                        continue
                    if tags & exclude_tag_set:
                        continue
                if self.registry.is_document_pending(path):
                    log.debug("Skipping %s: resolution already in flight", path)
                    continue
                documents.append(
                    DocumentTaskCache(self._store, self.registry, path, modifiers, filters)
                )
        except Exception:
            # Entries that will never be resolved must not stay pending
            for document in documents:
                self.registry.release_document(document)
            raise
        return documents

    async def refresh(
        self,
        include_paths: Sequence[str] = (),
        exclude_paths: Sequence[str] = (),
        include_tags: Sequence[str] = (),
        exclude_tags: Sequence[str] = (),
        options: OptionsInput = None,
    ) -> List[TaskRecord]:
        """
        Scan the selected documents and merge their tasks into the table.

        Returns the records collected by this refresh (empty if the refresh
        itself failed; the table is left untouched in that case). Failures
        of individual documents are logged and recorded in last_errors.
        """
        self.last_errors = []
        try:
            config = self.set_options(options)
            documents = self.generate_tasks_list(
                include_paths,
                exclude_paths,
                include_tags,
                exclude_tags,
                config.modifiers,
                config.filters,
            )
            log.info("Refreshing tasks from %d documents", len(documents))
            results = await asyncio.gather(
                *(document.tasks() for document in documents), return_exceptions=True
            )

            batch: List[TaskRecord] = []
            scanned: List[str] = []
            for document, result in zip(documents, results):
                if isinstance(result, Exception):
                    log.error("Failed to resolve %s: %s", document.path, result)
                    self.last_errors.append(f"{document.path}: {result}")
                    continue
                if isinstance(result, BaseException):
                    raise result
                if document.error is not None:
                    self.last_errors.append(f"{document.path}: {document.error}")
                scanned.append(document.path)
                batch.extend(result)

            self._merge(batch, scanned)
        except Exception as e:
            log.exception("Task refresh failed")
            self.last_error = str(e)
            return []

        self.last_error = None
        self._last_refresh = datetime.now()
        self._refresh_count += 1
        log.info("Refresh complete: %d tasks found, %d in table", len(batch), len(self._tasks))

        for record in batch:
            self._notify(self.on_add, record)
        self._notify(self.on_finished, list(batch))
        return batch

    def _merge(self, batch: Iterable[TaskRecord], scanned: Sequence[str]) -> None:
        """Replace the table's records for every scanned document with the new batch."""
        scanned_set = set(scanned)
        existing = set(self._store.list_documents())
        for task_id in [
            tid for tid, task in self._tasks.items()
            if task.path in scanned_set or task.path not in existing
        ]:
            del self._tasks[task_id]
        for record in batch:
            self._tasks[record.id] = record

    @staticmethod
    def _notify(callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception:
            log.exception("Task callback %r failed", callback)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> List[TaskRecord]:
        """All table records ordered by the active comparator."""
        records = list(self._tasks.values())
        try:
            return sort_tasks(records, self._options.sort_function)
        except Exception as e:
            log.warning("Sort comparator failed, returning unsorted tasks: %s", e)
            return records

    @property
    def files(self) -> List[str]:
        """Distinct document paths contributing tasks, in task order."""
        seen: Dict[str, None] = {}
        for task in self.tasks:
            seen.setdefault(task.path, None)
        return list(seen)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.get(task_id)

    def clear(self) -> None:
        self._tasks.clear()

    def status(self) -> dict:
        registry = self.registry.status()
        return {
            "tasks_indexed": len(self._tasks),
            "files_with_tasks": len({t.path for t in self._tasks.values()}),
            "refresh_count": self._refresh_count,
            "last_refresh": self._last_refresh.isoformat() if self._last_refresh else None,
            "last_error": self.last_error,
            "last_errors": list(self.last_errors),
            "pending_documents": registry["pending_documents"],
            "pending_items": registry["pending_items"],
        }
