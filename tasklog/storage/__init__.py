"""Task stores for tasklog."""

from tasklog.storage.base import StoreSnapshot, TaskStore
from tasklog.storage.task_file import MarkdownTaskFile

__all__ = [
    "StoreSnapshot",
    "TaskStore",
    "MarkdownTaskFile",
]
