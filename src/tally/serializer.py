"""Conversion between a TaskList and its TODO.md text form."""

from typing import Iterator, List, Optional, Tuple

from .errors import ParseError
from .todo import Priority, Task, TaskList
from .utils.datetime import format_date, format_datetime, parse_date, parse_datetime
from .version import Version

METADATA_INDENT = " " * 6
TASK_PREFIX = "- ["
SECTION_TASKS = "## Tasks"
SECTION_COMPLETED = "## Completed"

PRIORITY_SUFFIX = {
    Priority.HIGH: " (high)",
    Priority.MEDIUM: "",
    Priority.LOW: " (low)",
}

PRIORITY_TOKENS = {
    "(high)": Priority.HIGH,
    "(medium)": Priority.MEDIUM,
    "(low)": Priority.LOW,
}


class TaskMarkdownFormat:
    """Handles conversion between a Task and its checkbox line plus metadata."""

    @staticmethod
    def to_markdown(task: Task) -> str:
        """Render a task as its checkbox line followed by indented metadata."""
        checkbox = "x" if task.completed else " "
        tags = "".join(f" #{tag}" for tag in task.tags)
        lines = [f"- [{checkbox}] {task.description}{PRIORITY_SUFFIX[task.priority]}{tags}"]

        metadata = [("@created", format_datetime(task.created_at_time))]
        if task.created_at_version is not None:
            metadata.append(("@created_version", str(task.created_at_version)))
        if task.created_at_commit is not None:
            metadata.append(("@created_commit", task.created_at_commit))

        if task.completed:
            if task.completed_at_time is not None:
                metadata.append(("@completed", format_datetime(task.completed_at_time)))
            if task.completed_at_version is not None:
                metadata.append(("@completed_version", str(task.completed_at_version)))
            if task.completed_at_commit is not None:
                metadata.append(("@completed_commit", task.completed_at_commit))

        lines.extend(f"{METADATA_INDENT}{key} {value}" for key, value in metadata)
        return "\n".join(lines)

    @staticmethod
    def from_markdown(lines: List[str]) -> Task:
        """Parse a task block: the checkbox line and its metadata lines.

        Raises:
            ParseError: If the description is empty, ``@created`` is missing or
                a metadata value cannot be parsed
        """
        first_line = lines[0]
        completed = "[x]" in first_line or "[X]" in first_line

        content = first_line.strip()[len(TASK_PREFIX):]
        content = content.lstrip("xX ").lstrip("]").strip()

        description, priority, tags = TaskMarkdownFormat.parse_content(content, first_line)
        fields = TaskMarkdownFormat.parse_metadata(lines[1:])

        if "created_at_time" not in fields:
            raise ParseError(
                f"Task missing @created timestamp: '{first_line.strip()}'",
                field="@created",
                line=first_line,
            )

        return Task(
            description=description,
            priority=priority,
            tags=tags,
            completed=completed,
            **fields,
        )

    @staticmethod
    def parse_content(content: str, raw_line: str = "") -> Tuple[str, Priority, List[str]]:
        """Split a task line into description, priority and tags."""
        tags: List[str] = []
        words: List[str] = []
        priority = Priority.MEDIUM

        for token in content.split():
            if token.startswith("#"):
                tags.append(token[1:])
            elif token in PRIORITY_TOKENS:
                priority = PRIORITY_TOKENS[token]
            else:
                words.append(token)

        description = " ".join(words)
        if not description:
            raise ParseError(
                f"Task has no description: '{raw_line.strip()}'",
                field="description",
                line=raw_line,
            )

        return description, priority, tags

    @staticmethod
    def parse_metadata(lines: List[str]) -> dict:
        """Map ``@key value`` metadata lines onto Task keyword arguments.

        Unknown lines are ignored.
        """
        fields = {}
        for raw in lines:
            line = raw.strip()
            if line.startswith("@created_version "):
                fields["created_at_version"] = _parse_version_value(line, "@created_version ")
            elif line.startswith("@created_commit "):
                fields["created_at_commit"] = line[len("@created_commit "):].strip()
            elif line.startswith("@created "):
                fields["created_at_time"] = _parse_datetime_value(line, "@created ")
            elif line.startswith("@completed_version "):
                fields["completed_at_version"] = _parse_version_value(line, "@completed_version ")
            elif line.startswith("@completed_commit "):
                fields["completed_at_commit"] = line[len("@completed_commit "):].strip()
            elif line.startswith("@completed "):
                fields["completed_at_time"] = _parse_datetime_value(line, "@completed ")
        return fields


class ListMarkdownFormat:
    """Handles conversion between a TaskList and a whole TODO.md document.

    The header only carries the version triple: a prerelease project version
    is written as ``v1.2.3-pre``, which the header parser rejects.
    """

    @staticmethod
    def to_markdown(task_list: TaskList) -> str:
        """Render the canonical TODO.md text for a list.

        Open tasks are ordered by creation time, completed tasks by completion
        time. Both sorts are stable, so equal timestamps keep list order.
        """
        open_tasks = sorted(
            (t for t in task_list.tasks if not t.completed),
            key=lambda t: t.created_at_time,
        )
        done_tasks = sorted(
            (t for t in task_list.tasks if t.completed),
            key=lambda t: t.sort_time,
        )

        out = [
            f"# TODO — {task_list.project_name} v{task_list.project_version}",
            "",
            f"@created: {format_date(task_list.created_at)}",
            f"@modified: {format_date(task_list.modified_at)}",
            "",
            SECTION_TASKS,
            "",
        ]
        for task in open_tasks:
            out.append(TaskMarkdownFormat.to_markdown(task))
            out.append("")

        if done_tasks:
            out.extend(["", SECTION_COMPLETED, ""])
            for task in done_tasks:
                out.append(TaskMarkdownFormat.to_markdown(task))
                out.append("")

        return "\n".join(out) + "\n"

    @staticmethod
    def from_markdown(content: str) -> TaskList:
        """Parse a TODO.md document.

        Raises:
            ParseError: On a malformed header, missing ``@created:`` or
                ``@modified:`` lines, or a malformed task block
        """
        lines = content.splitlines()
        if not lines:
            raise ParseError("Empty TODO file", field="header")

        project_name, project_version = _parse_header(lines[0])

        position = 1
        created_at = modified_at = None
        while position < len(lines):
            line = lines[position]
            if line.startswith("@created:"):
                created_at = _parse_date_line(line)
            elif line.startswith("@modified:"):
                modified_at = _parse_date_line(line)
            elif line.strip():
                break
            position += 1

        if created_at is None:
            raise ParseError("Missing @created metadata", field="@created:")
        if modified_at is None:
            raise ParseError("Missing @modified metadata", field="@modified:")

        tasks: List[Task] = []
        in_section = False
        for block in _task_blocks(lines[position:]):
            if isinstance(block, str):
                # once a task section opens, tasks are read to the end of the file
                in_section = in_section or block in (SECTION_TASKS, SECTION_COMPLETED)
            elif in_section:
                tasks.append(TaskMarkdownFormat.from_markdown(block))

        return TaskList(
            project_name=project_name,
            project_version=project_version,
            created_at=created_at,
            modified_at=modified_at,
            tasks=tasks,
        )


def serialize(task_list: TaskList) -> str:
    """Render a TaskList as TODO.md text."""
    return ListMarkdownFormat.to_markdown(task_list)


def deserialize(content: str) -> TaskList:
    """Parse TODO.md text into a TaskList."""
    return ListMarkdownFormat.from_markdown(content)


def _parse_header(line: str) -> Tuple[str, Version]:
    text = line.lstrip("#").strip()

    for prefix in ("TODO —", "TODO -"):
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
            break
    else:
        raise ParseError(
            f"Invalid header format: expected 'TODO — [PROJECT] v[VERSION]', got '{line}'",
            field="header",
            line=line,
        )

    # An empty project name leaves no space before the version token
    marker = text.rfind(" v")
    if marker == -1:
        if not text.startswith("v"):
            raise ParseError(f"No version found in header: '{line}'", field="header", line=line)
        name, version_text = "", text[1:]
    else:
        name, version_text = text[:marker].strip(), text[marker + 2:].strip()

    try:
        version = Version.parse(version_text)
    except ParseError as exc:
        raise ParseError(
            f"Failed to parse version in header '{line}': {exc}",
            field="header",
            line=line,
        ) from exc

    return name, version


def _parse_date_line(line: str):
    _, _, value = line.partition(":")
    try:
        return parse_date(value)
    except ValueError as exc:
        raise ParseError(f"Failed to parse date: '{line}'", field=line.split(":")[0], line=line) from exc


def _parse_datetime_value(line: str, prefix: str):
    try:
        return parse_datetime(line[len(prefix):])
    except ValueError as exc:
        raise ParseError(
            f"Failed to parse datetime: '{line}'",
            field=prefix.strip(),
            line=line,
        ) from exc


def _parse_version_value(line: str, prefix: str) -> Version:
    try:
        return Version.parse(line[len(prefix):])
    except ParseError as exc:
        raise ParseError(f"{exc}: '{line}'", field=prefix.strip(), line=line) from exc


def _task_blocks(lines: List[str]) -> Iterator:
    """Yield section headers as strings and task blocks as lists of lines."""
    current: Optional[List[str]] = None
    for line in lines:
        if line.startswith("## "):
            if current:
                yield current
            current = None
            yield line.strip()
        elif line.startswith(TASK_PREFIX):
            if current:
                yield current
            current = [line]
        elif current is not None and line.strip():
            current.append(line)

    if current:
        yield current
