"""
Host document store.

The task pipeline only needs three things from its host: the list of
documents, the cached structural metadata of a document and its raw content.
DocumentStore is that boundary; LocalVault implements it over a directory of
markdown files.

Paths handed to the pipeline are vault-relative POSIX strings
(e.g. "Projects/roadmap.md").
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Set

from tasks_timeline.models.metadata import DocumentMetadata
from tasks_timeline.parsers.markdown_index import index_markdown

log = logging.getLogger(__name__)

MARKDOWN_SUFFIX = ".md"


class DocumentStore(Protocol):
    def list_documents(self) -> List[str]:
        ...

    def get_metadata(self, path: str) -> Optional[DocumentMetadata]:
        ...

    async def read(self, path: str) -> str:
        ...


@dataclass
class CachedDocument:
    """An indexed document held in the vault cache."""

    path: str
    metadata: DocumentMetadata
    mtime: float


def iter_markdown_files(root: Path, exclude_dirs: Set[str]) -> Iterator[Path]:
    """Yield all markdown files under root, skipping excluded directory names."""
    for path in root.rglob(f"*{MARKDOWN_SUFFIX}"):
        if not path.is_file():
            continue
        try:
            rel = path.relative_to(root)
        except ValueError:
            continue
        if any(part in exclude_dirs for part in rel.parts[:-1]):
            continue
        yield path


class LocalVault:
    """
    File-system backed document store.

    Metadata is indexed lazily and cached per document; a cached entry is
    re-indexed when the file's mtime moves past the cached one.
    """

    def __init__(self, root: Path, exclude_dirs: Optional[Set[str]] = None) -> None:
        self._root = root
        self._exclude_dirs = set(exclude_dirs or ())
        self._documents: Dict[str, CachedDocument] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def exclude_dirs(self) -> Set[str]:
        return set(self._exclude_dirs)

    def to_path(self, path: str) -> Path:
        return self._root / path

    def to_key(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    def list_documents(self) -> List[str]:
        return sorted(self.to_key(p) for p in iter_markdown_files(self._root, self._exclude_dirs))

    def get_metadata(self, path: str) -> Optional[DocumentMetadata]:
        full = self.to_path(path)
        try:
            mtime = full.stat().st_mtime
        except OSError:
            self._documents.pop(path, None)
            return None

        cached = self._documents.get(path)
        if cached and cached.mtime >= mtime:
            return cached.metadata

        try:
            metadata = index_markdown(full.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            log.exception("Failed to index %s", path)
            return None

        self._documents[path] = CachedDocument(path=path, metadata=metadata, mtime=mtime)
        return metadata

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(self.to_path(path).read_text, encoding="utf-8")

    def invalidate(self, path: Optional[str] = None) -> None:
        """Drop cached metadata for one document, or for all of them."""
        if path is None:
            self._documents.clear()
        else:
            self._documents.pop(path, None)

    def status(self) -> dict:
        return {
            "vault_root": str(self._root),
            "exclude_dirs": sorted(self._exclude_dirs),
            "documents_indexed": len(self._documents),
        }
