"""Tests for the TODO.md serializer."""

from datetime import date

import pytest

from tally.errors import ParseError
from tally.serializer import ListMarkdownFormat, TaskMarkdownFormat, deserialize, serialize
from tally.todo import Priority, Task, TaskList
from tally.version import Version

from conftest import utc

DEMO = (
    "# TODO — demo v1.2.3\n"
    "\n"
    "@created: 2026-02-20\n"
    "@modified: 2026-02-21\n"
    "\n"
    "## Tasks\n"
    "\n"
    "- [ ] keep parser compatibility\n"
    "      @created 2026-02-20 10:00\n"
)


class TestTaskMarkdownFormat:
    """Tests for single task blocks."""

    def test_open_task_rendering(self):
        task = Task(
            description="fix the login form",
            priority=Priority.HIGH,
            tags=["bug", "ui"],
            created_at_time=utc(2026, 2, 20, 11, 30),
            created_at_version=Version(1, 2, 0),
            created_at_commit="abc1234",
        )

        assert TaskMarkdownFormat.to_markdown(task) == (
            "- [ ] fix the login form (high) #bug #ui\n"
            "      @created 2026-02-20 11:30\n"
            "      @created_version 1.2.0\n"
            "      @created_commit abc1234"
        )

    def test_completed_task_rendering(self):
        task = Task(
            description="write docs",
            priority=Priority.LOW,
            completed=True,
            created_at_time=utc(2026, 2, 19, 9, 0),
            completed_at_time=utc(2026, 2, 21, 8, 15, 42),
            completed_at_version=Version(1, 2, 3),
            completed_at_commit="0123456789abcdef",
        )

        assert TaskMarkdownFormat.to_markdown(task) == (
            "- [x] write docs (low)\n"
            "      @created 2026-02-19 09:00\n"
            "      @completed 2026-02-21 08:15\n"
            "      @completed_version 1.2.3\n"
            "      @completed_commit 0123456789abcdef"
        )

    def test_medium_priority_has_no_suffix(self):
        task = Task("plain", created_at_time=utc(2026, 1, 1))
        assert TaskMarkdownFormat.to_markdown(task).splitlines()[0] == "- [ ] plain"

    def test_tokens_split_into_description_priority_and_tags(self):
        task = TaskMarkdownFormat.from_markdown([
            "- [X] ship   the #release (high) build #ci",
            "      @created 2026-02-20 10:00",
            "      @completed 2026-02-20 12:00",
        ])

        assert task.completed is True
        assert task.description == "ship the build"
        assert task.priority == Priority.HIGH
        assert task.tags == ["release", "ci"]
        assert task.completed_at_time == utc(2026, 2, 20, 12, 0)

    def test_explicit_medium_token(self):
        task = TaskMarkdownFormat.from_markdown(["- [ ] normal (medium)", "  @created 2026-02-20 10:00"])
        assert task.priority == Priority.MEDIUM
        assert task.description == "normal"

    def test_missing_created_names_the_field(self):
        with pytest.raises(ParseError) as exc_info:
            TaskMarkdownFormat.from_markdown(["- [ ] no timestamp", "      @created_version 1.0.0"])

        assert exc_info.value.field == "@created"
        assert "@created" in str(exc_info.value)

    def test_empty_description_rejected(self):
        with pytest.raises(ParseError):
            TaskMarkdownFormat.from_markdown(["- [ ] #tag (high)", "      @created 2026-02-20 10:00"])

    def test_bad_datetime_includes_line(self):
        with pytest.raises(ParseError) as exc_info:
            TaskMarkdownFormat.from_markdown(["- [ ] task", "      @created yesterday"])

        assert "@created yesterday" in str(exc_info.value)

    def test_bad_version_includes_line(self):
        with pytest.raises(ParseError) as exc_info:
            TaskMarkdownFormat.from_markdown([
                "- [ ] task",
                "      @created 2026-02-20 10:00",
                "      @created_version one.two",
            ])

        assert exc_info.value.field == "@created_version"


class TestListMarkdownFormat:
    """Tests for whole documents."""

    def test_demo_scenario(self):
        task_list = deserialize(DEMO)

        assert task_list.project_name == "demo"
        assert task_list.project_version == Version(1, 2, 3)
        assert task_list.created_at == date(2026, 2, 20)
        assert task_list.modified_at == date(2026, 2, 21)
        assert len(task_list.tasks) == 1
        assert task_list.tasks[0].description == "keep parser compatibility"
        assert task_list.tasks[0].completed is False

    def test_missing_created_metadata(self):
        content = DEMO.replace("@created: 2026-02-20\n", "")

        with pytest.raises(ParseError, match="Missing @created metadata"):
            deserialize(content)

    def test_missing_modified_metadata(self):
        content = DEMO.replace("@modified: 2026-02-21\n", "")

        with pytest.raises(ParseError, match="Missing @modified metadata"):
            deserialize(content)

    def test_metadata_in_either_order_with_blank_lines(self):
        content = (
            "# TODO - demo v1\n"
            "\n"
            "@modified: 2026-02-21\n"
            "\n"
            "\n"
            "@created: 2026-02-20\n"
            "## Tasks\n"
        )
        task_list = deserialize(content)

        assert task_list.project_version == Version(1, 0, 0)
        assert task_list.created_at == date(2026, 2, 20)
        assert task_list.modified_at == date(2026, 2, 21)
        assert task_list.tasks == []

    def test_project_name_uses_last_version_marker(self):
        content = DEMO.replace("demo v1.2.3", "my vast project v2.0")
        task_list = deserialize(content)

        assert task_list.project_name == "my vast project"
        assert task_list.project_version == Version(2, 0, 0)

    @pytest.mark.parametrize(
        "header, message",
        [
            ("# NOTES — demo v1.0.0", "Invalid header format"),
            ("# TODO — demo", "No version found"),
            ("# TODO — demo vX", "Failed to parse version"),
        ],
    )
    def test_bad_headers(self, header, message):
        content = DEMO.replace("# TODO — demo v1.2.3", header)

        with pytest.raises(ParseError, match=message):
            deserialize(content)

    def test_empty_file(self):
        with pytest.raises(ParseError, match="Empty TODO file"):
            deserialize("")

    def test_serialized_layout(self, sample_list):
        text = serialize(sample_list)

        assert text == (
            "# TODO — demo v1.2.3\n"
            "\n"
            "@created: 2026-02-20\n"
            "@modified: 2026-02-21\n"
            "\n"
            "## Tasks\n"
            "\n"
            "- [ ] keep parser compatibility\n"
            "      @created 2026-02-20 10:00\n"
            "\n"
            "- [ ] fix the login form (high) #bug #ui\n"
            "      @created 2026-02-20 11:30\n"
            "      @created_version 1.2.0\n"
            "      @created_commit abc1234\n"
            "\n"
            "\n"
            "## Completed\n"
            "\n"
            "- [x] write docs (low) #docs\n"
            "      @created 2026-02-19 09:00\n"
            "      @completed 2026-02-21 08:15\n"
            "      @completed_version 1.2.3\n"
            "      @completed_commit 0123456789abcdef\n"
            "\n"
        )

    def test_completed_section_omitted_when_empty(self):
        task_list = TaskList("demo", Version(0, 1, 0), date(2026, 1, 1), date(2026, 1, 1))
        assert "## Completed" not in serialize(task_list)

    def test_round_trip(self, sample_list):
        assert deserialize(serialize(sample_list)) == sample_list

    def test_serialize_is_stable(self, sample_list):
        text = serialize(sample_list)
        assert serialize(deserialize(text)) == text

    def test_tasks_sorted_by_time(self):
        task_list = TaskList(
            "demo",
            Version(0, 1, 0),
            date(2026, 1, 1),
            date(2026, 1, 1),
            tasks=[
                Task("later", created_at_time=utc(2026, 1, 2)),
                Task("done late", completed=True, created_at_time=utc(2025, 1, 1), completed_at_time=utc(2026, 1, 5)),
                Task("earlier", created_at_time=utc(2026, 1, 1)),
                Task("done early", completed=True, created_at_time=utc(2026, 1, 3), completed_at_time=utc(2026, 1, 4)),
            ],
        )

        parsed = deserialize(serialize(task_list))
        assert [t.description for t in parsed.tasks] == ["earlier", "later", "done early", "done late"]

    def test_equal_timestamps_keep_list_order(self):
        same = utc(2026, 1, 1, 9, 0)
        task_list = TaskList(
            "demo",
            Version(0, 1, 0),
            date(2026, 1, 1),
            date(2026, 1, 1),
            tasks=[Task("b", created_at_time=same), Task("a", created_at_time=same), Task("c", created_at_time=same)],
        )

        parsed = ListMarkdownFormat.from_markdown(ListMarkdownFormat.to_markdown(task_list))
        assert [t.description for t in parsed.tasks] == ["b", "a", "c"]

    def test_lines_outside_sections_ignored(self):
        content = DEMO.replace("## Tasks\n", "Some notes\n- [ ] stray\n\n## Tasks\n")
        content = content.replace("Some notes", "## Notes\nSome notes")

        task_list = deserialize(content)
        assert [t.description for t in task_list.tasks] == ["keep parser compatibility"]

    def test_tasks_after_other_headings_are_kept(self):
        content = DEMO + "\n## Notes\n\n- [ ] noted later\n      @created 2026-02-20 12:00\n"

        task_list = deserialize(content)
        assert [t.description for t in task_list.tasks] == ["keep parser compatibility", "noted later"]

    def test_prerelease_project_version_does_not_read_back(self, sample_list):
        sample_list.project_version = Version(1, 2, 3, is_prerelease=True)
        text = serialize(sample_list)

        assert text.startswith("# TODO — demo v1.2.3-pre\n")
        with pytest.raises(ParseError, match="Failed to parse version"):
            deserialize(text)
