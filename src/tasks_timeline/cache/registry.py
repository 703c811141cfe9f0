"""
Pending-resolution registry.

Book-keeping for in-flight work only: which documents are currently being
resolved, and which item identities have a resolution running. Completed
work is never kept here. One registry belongs to one TaskAdapter and is
passed explicitly to every cache entry it creates.
"""

from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from tasks_timeline.cache.entries import DocumentTaskCache, ItemTaskCache


class PendingRegistry:
    def __init__(self) -> None:
        self.documents: Dict[str, List["DocumentTaskCache"]] = {}
        self.items: Dict[str, "ItemTaskCache"] = {}

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def is_document_pending(self, path: str) -> bool:
        return bool(self.documents.get(path))

    def register_document(self, entry: "DocumentTaskCache") -> None:
        self.documents.setdefault(entry.path, []).append(entry)

    def release_document(self, entry: "DocumentTaskCache") -> None:
        entries = self.documents.get(entry.path)
        if not entries:
            return
        if entry in entries:
            entries.remove(entry)
        if not entries:
            del self.documents[entry.path]

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def inflight_item(self, identity: str) -> Optional["ItemTaskCache"]:
        """Return the entry resolving ``identity`` if its resolution is still running."""
        entry = self.items.get(identity)
        if entry is not None and not entry.done:
            return entry
        return None

    def register_item(self, entry: "ItemTaskCache") -> None:
        self.items[entry.id] = entry

    def release_item(self, entry: "ItemTaskCache") -> None:
        if self.items.get(entry.id) is entry:
            del self.items[entry.id]

    def status(self) -> dict:
        return {
            "pending_documents": sorted(self.documents),
            "pending_items": len(self.items),
        }
