"""Tests for the file-backed ListStorage."""

from datetime import date

import pytest

from tally.errors import NotFoundError, ParseError
from tally.serializer import serialize
from tally.storage import ListStorage
from tally.todo import Priority, Task
from tally.version import Version

from conftest import utc


@pytest.fixture
def todo_file(tmp_path, sample_list):
    path = tmp_path / "TODO.md"
    path.write_text(serialize(sample_list), encoding="utf-8")
    return path


class TestListStorageLoad:
    """Loading behaviour."""

    def test_missing_file_gives_default_list_without_writing(self, tmp_path):
        path = tmp_path / "TODO.md"
        storage = ListStorage(path)

        assert storage.project_name == "Untitled"
        assert storage.project_version == Version(0, 1, 0)
        assert storage.tasks == []
        assert not path.exists()

    def test_loads_existing_file(self, todo_file, sample_list):
        storage = ListStorage(todo_file)
        assert storage.task_list == sample_list

    def test_parse_error_names_file(self, tmp_path):
        path = tmp_path / "TODO.md"
        path.write_text("# TODO — demo v1.0.0\n\n@modified: 2026-01-01\n", encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            ListStorage(path)

        assert str(path) in str(exc_info.value)
        assert "Missing @created metadata" in str(exc_info.value)


class TestListStorageMutations:
    """Every mutation writes the whole file."""

    def test_add_task_writes_through(self, tmp_path):
        path = tmp_path / "nested" / "TODO.md"
        storage = ListStorage(path)
        storage.add_task(Task("first", priority=Priority.HIGH, created_at_time=utc(2026, 3, 1, 9, 0)))

        assert path.exists()
        reloaded = ListStorage(path)
        assert [t.description for t in reloaded.tasks] == ["first"]
        assert reloaded.tasks[0].priority == Priority.HIGH
        assert reloaded.task_list.modified_at == storage.task_list.modified_at

    def test_remove_task(self, todo_file):
        storage = ListStorage(todo_file)
        removed = storage.remove_task(0)

        assert removed.description == "keep parser compatibility"
        assert [t.description for t in ListStorage(todo_file).tasks] == ["fix the login form", "write docs"]

    @pytest.mark.parametrize("index", [3, -1, 100])
    def test_remove_out_of_range(self, todo_file, index):
        storage = ListStorage(todo_file)
        before = todo_file.read_text(encoding="utf-8")

        with pytest.raises(NotFoundError):
            storage.remove_task(index)

        assert todo_file.read_text(encoding="utf-8") == before

    def test_complete_task(self, todo_file):
        storage = ListStorage(todo_file)
        task = storage.complete_task(1, version=Version(1, 3, 0), commit="feedbeef")

        assert task.completed
        reloaded = ListStorage(todo_file)
        done = [t for t in reloaded.tasks if t.description == "fix the login form"][0]
        assert done.completed
        assert done.completed_at_version == Version(1, 3, 0)
        assert done.completed_at_commit == "feedbeef"
        assert done.completed_at_time is not None

    def test_complete_out_of_range(self, todo_file):
        with pytest.raises(NotFoundError):
            ListStorage(todo_file).complete_task(5)

    def test_assign_version_to_completed(self, tmp_path):
        path = tmp_path / "TODO.md"
        storage = ListStorage(path)
        storage.add_task(Task("a", created_at_time=utc(2026, 1, 1)))
        storage.add_task(Task("b", created_at_time=utc(2026, 1, 2)))
        storage.complete_task(0)

        assert storage.assign_version_to_completed(Version(0, 2, 0)) == 1
        reloaded = ListStorage(path)
        assert reloaded.tasks_for_version(Version(0, 2, 0))[0].description == "a"

    def test_assign_version_second_call_does_not_write(self, tmp_path):
        path = tmp_path / "TODO.md"
        storage = ListStorage(path)
        storage.add_task(Task("a", created_at_time=utc(2026, 1, 1)))
        storage.complete_task(0)
        assert storage.assign_version_to_completed(Version(0, 2, 0)) == 1

        path.write_text("sentinel", encoding="utf-8")
        assert storage.assign_version_to_completed(Version(0, 3, 0)) == 0
        assert path.read_text(encoding="utf-8") == "sentinel"

    def test_set_project_version(self, todo_file):
        storage = ListStorage(todo_file)
        storage.set_project_version(Version(2, 0, 0))

        reloaded = ListStorage(todo_file)
        assert reloaded.project_version == Version(2, 0, 0)
        assert reloaded.task_list.created_at == date(2026, 2, 20)
        assert reloaded.task_list.modified_at != date(2026, 2, 21)

    def test_remove_tasks_saves_once(self, todo_file, monkeypatch):
        storage = ListStorage(todo_file)
        saves = []
        real_save = storage.save
        monkeypatch.setattr(storage, "save", lambda: saves.append(1) or real_save())

        removed = storage.remove_tasks([2, 0])

        assert [t.description for t in removed] == ["keep parser compatibility", "write docs"]
        assert len(saves) == 1
        assert [t.description for t in ListStorage(todo_file).tasks] == ["fix the login form"]

    def test_remove_tasks_with_bad_index_removes_nothing(self, todo_file):
        storage = ListStorage(todo_file)
        before = todo_file.read_text(encoding="utf-8")

        with pytest.raises(NotFoundError):
            storage.remove_tasks([0, 7])

        assert len(storage.tasks) == 3
        assert todo_file.read_text(encoding="utf-8") == before
