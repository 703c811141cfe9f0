"""
Markdown change detection by mtime polling.

Filesystem events are not forwarded through every mount (Docker volumes from
Windows hosts, network shares), so changes are found by diffing mtime
snapshots of the vault's markdown files. Every path that appeared, changed or
disappeared between two snapshots is handed to the service's update queue.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Set

from tasks_timeline.vault.store import iter_markdown_files

log = logging.getLogger(__name__)

_DEFAULT_POLL_INTERVAL = 5.0

Snapshot = Dict[Path, float]


def diff_snapshots(before: Snapshot, after: Snapshot) -> List[Path]:
    """Paths added, modified or removed between two snapshots, sorted."""
    added = after.keys() - before.keys()
    removed = before.keys() - after.keys()
    modified = {p for p in after.keys() & before.keys() if after[p] > before[p]}
    for path in sorted(added):
        log.debug("New markdown file: %s", path)
    for path in sorted(removed):
        log.debug("Deleted markdown file: %s", path)
    return sorted(added | removed | modified)


class VaultWatcher:
    """Feeds the task service's update queue from a background polling thread."""

    def __init__(
        self,
        service,
        vault_root: Path,
        exclude_dirs: Set[str],
        poll_interval: Optional[float] = None,
    ) -> None:
        self._service = service
        self._vault_root = vault_root
        self._exclude_dirs = exclude_dirs
        self._poll_interval = poll_interval or float(
            os.environ.get("POLL_INTERVAL", _DEFAULT_POLL_INTERVAL)
        )
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last: Snapshot = {}

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        log.info("Watching %s for markdown changes every %.1fs", self._vault_root, self._poll_interval)
        # Files present at startup were covered by the initial refresh
        self._last = self.snapshot()
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="vault-watcher")
        self._thread.start()

    def stop(self) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stopping.set()
        thread.join(timeout=self._poll_interval + 2)
        log.info("Vault watcher stopped")

    def _run(self) -> None:
        while not self._stopping.wait(self._poll_interval):
            try:
                self.check_for_changes()
            except Exception:
                log.exception("Markdown change check failed")

    def check_for_changes(self) -> int:
        """Diff against the previous snapshot; returns the number of refreshes enqueued."""
        current = self.snapshot()
        changed = diff_snapshots(self._last, current)
        self._last = current
        for path in changed:
            self._service.enqueue_refresh(path)
        return len(changed)

    def snapshot(self) -> Snapshot:
        """{absolute path: mtime} for every markdown file outside the excluded dirs."""
        result: Snapshot = {}
        try:
            for path in iter_markdown_files(self._vault_root, self._exclude_dirs):
                try:
                    result[path] = path.stat().st_mtime
                except FileNotFoundError:
                    # Deleted between the walk and the stat
                    continue
        except OSError:
            log.exception("Cannot walk vault %s", self._vault_root)
        return result
