"""File-backed storage for the TODO.md task list."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import NotFoundError, ParseError, StorageError
from .serializer import ListMarkdownFormat
from .todo import Task, TaskList
from .version import Version

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Untitled"
DEFAULT_PROJECT_VERSION = Version(0, 1, 0)


class ListStorage:
    """Owns the TaskList loaded from one TODO.md file.

    Every mutating method updates the in-memory list and immediately rewrites
    the whole file. A missing file yields a default list and is only created
    on the first save.
    """

    def __init__(self, list_file: Union[str, Path]):
        self.list_file = Path(list_file)
        self.task_list = TaskList.new(DEFAULT_PROJECT_NAME, DEFAULT_PROJECT_VERSION)
        self.load()

    def load(self):
        """(Re)load the list from disk.

        Raises:
            ParseError: If the file exists but is not valid TODO.md
            StorageError: If the file cannot be read
        """
        if not self.list_file.exists():
            logger.debug(f"No TODO file at {self.list_file}, using default list")
            self.task_list = TaskList.new(DEFAULT_PROJECT_NAME, DEFAULT_PROJECT_VERSION)
            return

        try:
            content = self.list_file.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read TODO file ({e})", self.list_file) from e

        try:
            self.task_list = ListMarkdownFormat.from_markdown(content)
        except ParseError as e:
            raise ParseError(
                f"Failed to parse TODO file {self.list_file}: {e}",
                field=e.field,
                line=e.line,
            ) from e

        logger.debug(f"Loaded {len(self.task_list.tasks)} task(s) from {self.list_file}")

    def save(self):
        """Write the whole list to disk.

        Raises:
            StorageError: If the directory or file cannot be written
        """
        content = ListMarkdownFormat.to_markdown(self.task_list)

        try:
            self.list_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory ({e})", self.list_file.parent) from e

        try:
            self.list_file.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write TODO file ({e})", self.list_file) from e

        logger.debug(f"Saved {len(self.task_list.tasks)} task(s) to {self.list_file}")

    @property
    def tasks(self) -> List[Task]:
        return self.task_list.tasks

    @property
    def project_name(self) -> str:
        return self.task_list.project_name

    @property
    def project_version(self) -> Version:
        return self.task_list.project_version

    def get_task(self, index: int) -> Task:
        """Return the task at ``index``.

        Raises:
            NotFoundError: If the index is out of range
        """
        if not 0 <= index < len(self.task_list.tasks):
            raise NotFoundError(index, len(self.task_list.tasks))
        return self.task_list.tasks[index]

    def tasks_for_version(self, version: Version) -> List[Task]:
        return self.task_list.tasks_for_version(version)

    def add_task(self, task: Task):
        """Append a task and save."""
        self.task_list.add_task(task)
        self.save()

    def remove_task(self, index: int) -> Task:
        """Remove the task at ``index`` and save.

        Raises:
            NotFoundError: If the index is out of range
        """
        self.get_task(index)
        task = self.task_list.tasks.pop(index)
        self.task_list.touch()
        self.save()
        return task

    def remove_tasks(self, indices: Iterable[int]) -> List[Task]:
        """Remove several tasks with a single save.

        Raises:
            NotFoundError: If any index is out of range; nothing is removed
        """
        indices = sorted(set(indices))
        for index in indices:
            self.get_task(index)

        removed = [self.task_list.tasks.pop(index) for index in reversed(indices)]
        removed.reverse()
        self.task_list.touch()
        self.save()
        return removed

    def complete_task(
        self,
        index: int,
        version: Optional[Version] = None,
        commit: Optional[str] = None,
    ) -> Task:
        """Mark the task at ``index`` as completed now and save.

        Raises:
            NotFoundError: If the index is out of range
        """
        task = self.get_task(index)
        task.mark_complete(commit=commit, version=version)
        self.task_list.touch()
        self.save()
        return task

    def assign_version_to_completed(self, version: Version) -> int:
        """Assign ``version`` to completed, unversioned tasks.

        Returns:
            Number of tasks updated; the file is only written when non-zero
        """
        count = self.task_list.assign_version_to_completed(version)
        if count:
            self.save()
        return count

    def set_project_version(self, version: Version):
        """Update the project version and save."""
        self.task_list.project_version = version
        self.task_list.touch()
        self.save()
