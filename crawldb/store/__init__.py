"""CrawlDB storage adapters."""

from pathlib import Path
from typing import Optional

from ..config import StorageConfig
from ..errors import SetupError
from .base import FrontierStore
from .file import FileStore, table_file_name
from .memory import MemoryStore

__all__ = ["FrontierStore", "FileStore", "MemoryStore", "create_store", "table_file_name"]


def create_store(storage: StorageConfig, crawl_id: str = "", workspace: Optional[Path] = None) -> FrontierStore:
    """Create the store for a crawl.

    Raises:
        SetupError: if the backend is unknown or cannot be opened
    """
    if storage.backend == "memory":
        return MemoryStore()
    if storage.backend == "file":
        root = Path(storage.path)
        if not root.is_absolute() and workspace is not None:
            root = Path(workspace) / root
        return FileStore(str(root), crawl_id=crawl_id, compress=storage.compress)
    raise SetupError(f"Unknown storage backend: {storage.backend}")
