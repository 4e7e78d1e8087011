"""Append-only ledger of completed tasks.

The ledger lives in ``.tally/history.json`` and survives removal and pruning of
tasks from TODO.md, so changelogs can still be built for old releases.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import StorageError
from .todo import Priority, Task
from .utils.datetime import from_iso_string, now_utc, to_iso_string
from .version import Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Change:
    """Snapshot of a completed task at the moment it was recorded."""

    description: str
    priority: Priority
    tags: tuple = field(default_factory=tuple)
    commit: Optional[str] = None
    completed_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_task(cls, task: Task) -> "Change":
        return cls(
            description=task.description,
            priority=task.priority,
            tags=tuple(task.tags),
            commit=task.completed_at_commit,
            completed_at=task.completed_at_time or now_utc(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "priority": self.priority.value,
            "tags": list(self.tags),
            "commit": self.commit,
            "completed_at": to_iso_string(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Change":
        return cls(
            description=data["description"],
            priority=Priority.parse(data.get("priority", "medium")),
            tags=tuple(data.get("tags") or ()),
            commit=data.get("commit"),
            completed_at=from_iso_string(data["completed_at"]),
        )


@dataclass
class HistoryEntry:
    """A recorded Change and the release it shipped in, once known."""

    change: Change
    version: Optional[Version] = None

    @classmethod
    def from_task(cls, task: Task) -> "HistoryEntry":
        return cls(change=Change.from_task(task), version=task.completed_at_version)

    def is_same_task(self, other: "HistoryEntry") -> bool:
        """Whether two entries describe the same completion.

        Entries match on an equal non-empty commit hash, or else on equal
        description and version. The latter keeps a task re-done under a new
        release distinct from the earlier one.
        """
        if self.change.commit and other.change.commit and self.change.commit == other.change.commit:
            return True
        return self.change.description == other.change.description and self.version == other.version

    def to_dict(self) -> Dict[str, Any]:
        return {
            "change": self.change.to_dict(),
            "version": self.version.to_dict() if self.version else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        version = data.get("version")
        return cls(
            change=Change.from_dict(data["change"]),
            version=Version.from_dict(version) if version else None,
        )


class HistoryStorage:
    """File-backed, append-only list of HistoryEntry records."""

    def __init__(self, history_file: Union[str, Path]):
        self.history_file = Path(history_file)
        self.entries: List[HistoryEntry] = []
        self.load()

    def load(self):
        """Load entries from disk.

        A missing file gives an empty ledger. Content that is not a valid
        ledger is also treated as empty, with a warning.

        Raises:
            StorageError: If the file exists but cannot be read
        """
        self.entries = []
        if not self.history_file.exists():
            return

        try:
            content = self.history_file.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read history file ({e})", self.history_file) from e

        if not content.strip():
            return

        try:
            data = json.loads(content)
            self.entries = [HistoryEntry.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable history file {self.history_file}: {e}")
            self.entries = []

    def save(self):
        """Write all entries as pretty-printed JSON.

        Raises:
            StorageError: If the directory or file cannot be written
        """
        payload = json.dumps([entry.to_dict() for entry in self.entries], indent=2, ensure_ascii=False)

        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            self.history_file.write_text(payload, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write history file ({e})", self.history_file) from e

        logger.debug(f"Saved {len(self.entries)} history entries to {self.history_file}")

    def __len__(self) -> int:
        return len(self.entries)

    def _add_if_new(self, task: Task) -> bool:
        if not task.completed:
            return False

        candidate = HistoryEntry.from_task(task)
        if any(entry.is_same_task(candidate) for entry in self.entries):
            logger.debug(f"Already recorded: {task.description}")
            return False

        self.entries.append(candidate)
        return True

    def record(self, task: Task) -> bool:
        """Record a completed task, persisting if it was new.

        Returns:
            True if an entry was added
        """
        added = self._add_if_new(task)
        if added:
            self.save()
        return added

    def record_all(self, tasks: Iterable[Task]) -> int:
        """Record several tasks with a single write at the end.

        Returns:
            Number of entries added
        """
        added = sum(1 for task in tasks if self._add_if_new(task))
        self.save()
        return added

    def assign_version(self, version: Version) -> int:
        """Give every unversioned entry ``version``.

        Entries that already carry a version are never changed.

        Returns:
            Number of entries updated
        """
        count = 0
        for entry in self.entries:
            if entry.version is None:
                entry.version = version
                count += 1

        if count:
            self.save()

        return count

    def entries_for_version(self, version: Version) -> List[HistoryEntry]:
        return [e for e in self.entries if e.version == version]

    def entries_between_versions(self, from_version: Version, to_version: Version) -> List[HistoryEntry]:
        """Entries whose version lies in ``[from_version, to_version]``, by version."""
        selected = [
            e for e in self.entries
            if e.version is not None and from_version <= e.version <= to_version
        ]
        return sorted(selected, key=lambda e: e.version)

    def entries_by_version(self) -> Dict[Version, List[HistoryEntry]]:
        """Group versioned entries, keys in ascending version order."""
        grouped: Dict[Version, List[HistoryEntry]] = {}
        for entry in self.entries:
            if entry.version is not None:
                grouped.setdefault(entry.version, []).append(entry)
        return {version: grouped[version] for version in sorted(grouped)}

    def unversioned_entries(self) -> List[HistoryEntry]:
        return [e for e in self.entries if e.version is None]
