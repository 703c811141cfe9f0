from .vault_watcher import VaultWatcher, diff_snapshots

__all__ = ["VaultWatcher", "diff_snapshots"]
