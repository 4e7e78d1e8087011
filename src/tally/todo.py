"""Task and task list data model for tally."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional

from .utils.datetime import ensure_aware, now_utc, today_utc
from .version import Version


class Priority(Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, text: str) -> "Priority":
        """Parse a priority name case-insensitively ("High", "high", ...)."""
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown priority: '{text}'") from None


_PRIORITY_RANK = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2}


@dataclass
class Task:
    """A single TODO.md entry with its creation and completion metadata."""

    description: str
    priority: Priority = Priority.MEDIUM
    tags: List[str] = field(default_factory=list)
    completed: bool = False

    # Creation metadata
    created_at_time: datetime = field(default_factory=now_utc)
    created_at_version: Optional[Version] = None
    created_at_commit: Optional[str] = None

    # Completion metadata
    completed_at_time: Optional[datetime] = None
    completed_at_version: Optional[Version] = None
    completed_at_commit: Optional[str] = None

    def __post_init__(self):
        self.created_at_time = ensure_aware(self.created_at_time)
        self.completed_at_time = ensure_aware(self.completed_at_time)

        deduped: List[str] = []
        for tag in self.tags:
            if tag not in deduped:
                deduped.append(tag)
        self.tags = deduped

        # completed <=> completed_at_time is set
        if self.completed and self.completed_at_time is None:
            self.completed_at_time = now_utc()
        if not self.completed:
            self.completed_at_time = None
            self.completed_at_version = None
            self.completed_at_commit = None

    @classmethod
    def create(
        cls,
        description: str,
        priority: Priority = Priority.MEDIUM,
        tags: Optional[Iterable[str]] = None,
    ) -> "Task":
        """Create a new incomplete task stamped with the current time."""
        return cls(description=description, priority=priority, tags=list(tags or []))

    def mark_complete(self, commit: Optional[str] = None, version: Optional[Version] = None):
        """Mark the task as completed now."""
        self.completed = True
        self.completed_at_time = now_utc()
        if commit is not None:
            self.completed_at_commit = commit
        if version is not None:
            self.completed_at_version = version

    def add_tag(self, tag: str) -> bool:
        """Append a tag unless already present. Returns True if it was added."""
        if tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return any(tag in self.tags for tag in tags)

    def has_all_tags(self, tags: Iterable[str]) -> bool:
        return all(tag in self.tags for tag in tags)

    def is_older_than(self, age: timedelta, now: Optional[datetime] = None) -> bool:
        """Check whether the task was completed more than ``age`` ago."""
        if self.completed_at_time is None:
            return False
        now = ensure_aware(now) if now else now_utc()
        return now - self.completed_at_time > age

    @property
    def sort_time(self) -> datetime:
        """Completion time for finished tasks, creation time otherwise."""
        return self.completed_at_time or self.created_at_time


@dataclass
class TaskList:
    """The contents of one TODO.md file."""

    project_name: str
    project_version: Version
    created_at: date = field(default_factory=today_utc)
    modified_at: date = field(default_factory=today_utc)
    tasks: List[Task] = field(default_factory=list)

    @classmethod
    def new(cls, project_name: str, project_version: Version) -> "TaskList":
        today = today_utc()
        return cls(project_name, project_version, created_at=today, modified_at=today)

    def touch(self):
        """Record a mutation."""
        self.modified_at = today_utc()

    def add_task(self, task: Task):
        self.tasks.append(task)
        self.touch()

    def tasks_for_version(self, version: Version) -> List[Task]:
        """Get all tasks completed in a specific version."""
        return [t for t in self.tasks if t.completed_at_version == version]

    def tasks_between_versions(self, from_version: Version, to_version: Version) -> List[Task]:
        """Get all tasks completed between two versions (inclusive)."""
        return [
            t for t in self.tasks
            if t.completed_at_version is not None
            and from_version <= t.completed_at_version <= to_version
        ]

    def unversioned_completed_tasks(self) -> List[Task]:
        return [t for t in self.tasks if t.completed and t.completed_at_version is None]

    def tasks_by_version(self) -> Dict[Version, List[Task]]:
        """Group completed tasks by version, in ascending version order."""
        grouped: Dict[Version, List[Task]] = {}
        for task in self.tasks:
            if task.completed_at_version is not None:
                grouped.setdefault(task.completed_at_version, []).append(task)
        return {version: grouped[version] for version in sorted(grouped)}

    def assign_version_to_completed(self, version: Version) -> int:
        """Assign ``version`` to completed tasks that have none.

        Returns:
            Number of tasks updated
        """
        count = 0
        for task in self.tasks:
            if task.completed and task.completed_at_version is None:
                task.completed_at_version = version
                count += 1

        if count:
            self.touch()

        return count
