"""tally - keep a TODO.md and a release history that outlives it."""

__version__ = "0.1.0"

from .domain import (
    Change,
    Changelog,
    HistoryEntry,
    HistoryStorage,
    ListStorage,
    Priority,
    Release,
    Task,
    TaskList,
    Version,
)
from .errors import KeyNotFoundError, NotFoundError, ParseError, StorageError, TallyError

__all__ = [
    "Change",
    "Changelog",
    "HistoryEntry",
    "HistoryStorage",
    "ListStorage",
    "Priority",
    "Release",
    "Task",
    "TaskList",
    "Version",
    "TallyError",
    "ParseError",
    "NotFoundError",
    "StorageError",
    "KeyNotFoundError",
    "__version__",
]
