from .filesystem import FilesystemStateStore
from .sqlite import SQLiteStateStore

__all__ = ["FilesystemStateStore", "SQLiteStateStore"]
