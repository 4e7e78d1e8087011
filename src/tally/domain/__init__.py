"""Domain models and storages for tally."""

from ..changelog import Changelog, Release, build_changelog
from ..history import Change, HistoryEntry, HistoryStorage
from ..serializer import deserialize, serialize
from ..storage import ListStorage
from ..todo import Priority, Task, TaskList
from ..version import Version

__all__ = [
    "Version",
    "Priority",
    "Task",
    "TaskList",
    "serialize",
    "deserialize",
    "ListStorage",
    "Change",
    "HistoryEntry",
    "HistoryStorage",
    "Release",
    "Changelog",
    "build_changelog",
]
