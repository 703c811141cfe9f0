"""
Per-document and per-item task caches.

DocumentTaskCache wraps one document and derives one ItemTaskCache per list
item. Each ItemTaskCache owns a single memoized asyncio resolution of its
item to a TaskRecord (or None). Concurrent requests for the same item
identity, on the same entry or on another entry while the first is still
running, await the same future, so an item is parsed at most once per
refresh cycle.
"""

import asyncio
import copy
import logging
from typing import TYPE_CHECKING, List, Optional

from tasks_timeline.models.metadata import DocumentMetadata, ListItem, item_identity
from tasks_timeline.models.task import TaskRecord
from tasks_timeline.parsers.line_parser import resolve_item
from tasks_timeline.transforms.filters import TaskFilter, passes
from tasks_timeline.transforms.modifiers import TaskModifier, apply_modifiers

if TYPE_CHECKING:
    from tasks_timeline.cache.registry import PendingRegistry
    from tasks_timeline.vault.store import DocumentStore

log = logging.getLogger(__name__)

_UNSET = object()


class ItemTaskCache:
    """One list item of one document, resolved at most once."""

    def __init__(self, document: "DocumentTaskCache", item: ListItem) -> None:
        self._document = document
        self._item = item
        self.id = item_identity(document.path, item)
        self._future: Optional["asyncio.Future[Optional[TaskRecord]]"] = None

    @property
    def started(self) -> bool:
        return self._future is not None

    @property
    def done(self) -> bool:
        return self._future is not None and self._future.done()

    async def task(self) -> Optional[TaskRecord]:
        """Resolve the item; the first call starts the resolution, later calls share it."""
        if self._future is None:
            registry = self._document.registry
            inflight = registry.inflight_item(self.id)
            if inflight is not None and inflight is not self:
                self._future = inflight._future
            else:
                registry.register_item(self)
                self._future = asyncio.ensure_future(self._resolve())
        return await asyncio.shield(self._future)

    async def _resolve(self) -> Optional[TaskRecord]:
        try:
            return await self._document.from_item(self._item, self.id)
        except Exception as e:
            log.warning("Failed to resolve item %s: %s", self.id, e)
            return None
        finally:
            self._document.registry.release_item(self)


class DocumentTaskCache:
    """
    One document's contribution to the task table.

    The entry is registered as pending in the registry from construction
    until its resolution has finished, which keeps the adapter from
    scheduling a second scan of the same document meanwhile.
    """

    def __init__(
        self,
        store: "DocumentStore",
        registry: "PendingRegistry",
        path: str,
        modifiers: List[TaskModifier],
        filters: List[TaskFilter],
    ) -> None:
        self.store = store
        self.registry = registry
        self.path = path
        self._modifiers = modifiers
        self._filters = filters
        self._metadata = _UNSET
        self._items: Optional[List[ItemTaskCache]] = None
        self._content: Optional["asyncio.Future[str]"] = None
        self._resolution: Optional["asyncio.Future[List[TaskRecord]]"] = None
        self.error: Optional[str] = None
        registry.register_document(self)

    @property
    def metadata(self) -> Optional[DocumentMetadata]:
        if self._metadata is _UNSET:
            self._metadata = self.store.get_metadata(self.path)
        return self._metadata

    @property
    def items(self) -> List[ItemTaskCache]:
        """Item entries, derived once from the document's list items."""
        if self._items is None:
            metadata = self.metadata
            if metadata is None:
                self._items = []
            else:
                self._items = [ItemTaskCache(self, item) for item in metadata.list_items]
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        """True for a valid document without list items."""
        metadata = self.metadata
        return metadata is None or not metadata.list_items

    async def content(self) -> str:
        """Raw document content, read once per entry."""
        if self._content is None:
            self._content = asyncio.ensure_future(self.store.read(self.path))
        return await asyncio.shield(self._content)

    async def from_item(self, item: ListItem, item_id: str) -> Optional[TaskRecord]:
        content = await self.content()
        metadata = self.metadata
        if metadata is None:
            return None
        return resolve_item(item, path=self.path, item_id=item_id, content=content, metadata=metadata)

    async def tasks(self) -> List[TaskRecord]:
        """The document's modified and filtered tasks (memoized)."""
        if self._resolution is None:
            self._resolution = asyncio.ensure_future(self._resolve())
        return list(await asyncio.shield(self._resolution))

    async def _resolve(self) -> List[TaskRecord]:
        tasks: List[TaskRecord] = []
        try:
            if self.is_empty:
                log.debug("No list items in %s", self.path)
                return tasks
            for item in self.items:
                task = await item.task()
                if task is None:
                    continue
                # Records may be shared between entries; modifiers mutate
                transformed = apply_modifiers(copy.deepcopy(task), self._modifiers)
                if transformed is not None and passes(transformed, self._filters):
                    tasks.append(transformed)
        except Exception as e:
            log.exception("Exception while resolving %s", self.path)
            self.error = str(e)
        finally:
            self.registry.release_document(self)
        return tasks
