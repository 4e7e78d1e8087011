"""Tests for Task and TaskList models."""

from datetime import date, datetime, timedelta, timezone

from tally.todo import Priority, Task, TaskList
from tally.version import Version

from conftest import make_completed_task, utc


class TestTask:
    """Test Task model functionality."""

    def test_task_creation(self):
        """Test basic task creation."""
        task = Task.create("Test task")

        assert task.description == "Test task"
        assert task.priority == Priority.MEDIUM
        assert task.tags == []
        assert task.completed is False
        assert task.completed_at_time is None
        assert task.created_at_time.tzinfo is not None

    def test_naive_datetimes_become_utc(self):
        task = Task("Naive", created_at_time=datetime(2026, 1, 1, 12, 0))
        assert task.created_at_time == utc(2026, 1, 1, 12, 0)

    def test_mark_complete(self):
        """Completing sets the completion time and optional metadata."""
        task = Task.create("Test task")
        task.mark_complete(commit="abc1234", version=Version(0, 2, 0))

        assert task.completed is True
        assert task.completed_at_time is not None
        assert task.completed_at_commit == "abc1234"
        assert task.completed_at_version == Version(0, 2, 0)

    def test_completed_flag_implies_completion_time(self):
        task = Task("Done already", completed=True)
        assert task.completed_at_time is not None

    def test_open_task_drops_completion_fields(self):
        task = Task("Still open", completed_at_time=utc(2026, 1, 1), completed_at_commit="abc")
        assert task.completed_at_time is None
        assert task.completed_at_commit is None

    def test_tags_deduplicated_in_order(self):
        task = Task("Tagged", tags=["b", "a", "b"])
        assert task.tags == ["b", "a"]
        assert task.add_tag("a") is False
        assert task.add_tag("c") is True
        assert task.tags == ["b", "a", "c"]

    def test_tag_queries(self):
        task = Task.create("Tagged", tags=["bug", "ui"])
        assert task.has_any_tag(["docs", "ui"])
        assert not task.has_any_tag(["docs"])
        assert task.has_all_tags(["bug", "ui"])
        assert not task.has_all_tags(["bug", "docs"])

    def test_is_older_than(self):
        task = make_completed_task("Old", completed_at=utc(2026, 1, 1))
        now = utc(2026, 1, 10)
        assert task.is_older_than(timedelta(days=7), now)
        assert not task.is_older_than(timedelta(days=30), now)
        assert not Task.create("Open").is_older_than(timedelta(0))

    def test_priority_parse_is_case_insensitive(self):
        assert Priority.parse("High") == Priority.HIGH
        assert Priority.parse("low") == Priority.LOW

    def test_priority_ordering(self):
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH
        assert max([Priority.MEDIUM, Priority.HIGH, Priority.LOW]) == Priority.HIGH


class TestTaskList:
    """Test TaskList queries and version assignment."""

    def make_list(self):
        return TaskList(
            project_name="demo",
            project_version=Version(0, 3, 0),
            created_at=date(2026, 1, 1),
            modified_at=date(2026, 1, 1),
            tasks=[
                make_completed_task("one", version=Version(0, 1, 0)),
                make_completed_task("two", version=Version(0, 2, 0)),
                make_completed_task("three", version=Version(0, 2, 0)),
                make_completed_task("four"),
                Task.create("open"),
            ],
        )

    def test_tasks_for_version(self):
        task_list = self.make_list()
        assert [t.description for t in task_list.tasks_for_version(Version(0, 2, 0))] == ["two", "three"]

    def test_tasks_between_versions_inclusive(self):
        task_list = self.make_list()
        found = task_list.tasks_between_versions(Version(0, 1, 0), Version(0, 2, 0))
        assert [t.description for t in found] == ["one", "two", "three"]

    def test_tasks_by_version_sorted(self):
        grouped = self.make_list().tasks_by_version()
        assert list(grouped) == [Version(0, 1, 0), Version(0, 2, 0)]

    def test_unversioned_completed_tasks(self):
        assert [t.description for t in self.make_list().unversioned_completed_tasks()] == ["four"]

    def test_assign_version_to_completed(self):
        task_list = self.make_list()

        assert task_list.assign_version_to_completed(Version(0, 3, 0)) == 1
        assert task_list.tasks[3].completed_at_version == Version(0, 3, 0)
        assert task_list.tasks[0].completed_at_version == Version(0, 1, 0)
        assert task_list.tasks[4].completed_at_version is None
        assert task_list.modified_at == datetime.now(timezone.utc).date()

        assert task_list.assign_version_to_completed(Version(0, 4, 0)) == 0
