from .store import DocumentStore, LocalVault, iter_markdown_files

__all__ = ["DocumentStore", "LocalVault", "iter_markdown_files"]
