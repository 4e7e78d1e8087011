"""tally command-line interface."""

import json
import logging
import sys
from datetime import timedelta
from typing import Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from ..changelog import build_changelog, to_json, to_markdown
from ..config import load_config, save_config
from ..errors import TallyError
from ..history import HistoryStorage
from ..matching import find_best_match
from ..paths import ProjectPaths
from ..serializer import PRIORITY_SUFFIX
from ..storage import ListStorage
from ..todo import Priority, Task, TaskList
from ..utils.datetime import format_datetime, now_utc
from ..version import Version

logger = logging.getLogger(__name__)

PRIORITY_STYLES = {
    Priority.HIGH: "red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "dim",
}

STATUS_TAG_LIMIT = 10


def get_console() -> Console:
    return Console(highlight=False)


def format_task(task: Task) -> str:
    """Plain one-line rendering, as the task appears in TODO.md."""
    checkbox = "x" if task.completed else " "
    tags = "".join(f" #{tag}" for tag in task.tags)
    return f"[{checkbox}] {task.description}{PRIORITY_SUFFIX[task.priority]}{tags}"


def parse_tags(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [tag.strip().lstrip("#") for tag in value.split(",") if tag.strip()]


def parse_version_option(ctx, param, value):
    """click callback turning a version string into a Version."""
    if value is None:
        return None
    try:
        return Version.parse(value)
    except TallyError as e:
        raise click.BadParameter(str(e)) from e


class Project:
    """Paths, config and storages for the project the command runs in."""

    def __init__(self, paths: ProjectPaths):
        self.paths = paths
        self.config = load_config(paths.config_file)
        self._storage: Optional[ListStorage] = None
        self._history: Optional[HistoryStorage] = None

    @property
    def storage(self) -> ListStorage:
        if self._storage is None:
            self._storage = ListStorage(self.paths.todo_file)
        return self._storage

    @property
    def history(self) -> HistoryStorage:
        if self._history is None:
            self._history = HistoryStorage(self.paths.history_file)
        return self._history


def fail(message: str):
    get_console().print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def get_project(ctx: click.Context) -> Project:
    try:
        return Project(ProjectPaths.find(ctx.obj.get("root")))
    except TallyError as e:
        fail(str(e))


@click.group()
@click.option("--root", type=click.Path(file_okay=False), help="Project directory (default: search upward from cwd)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, root, verbose):
    """tally - a TODO.md with release history."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["root"] = root
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--name", help="Project name (default: directory name)")
@click.pass_context
def init(ctx, name):
    """Create .tally/, history.json and TODO.md in the current directory."""
    console = get_console()
    try:
        paths = ProjectPaths.init_here(ctx.obj.get("root"))

        if not paths.history_file.exists():
            HistoryStorage(paths.history_file).save()
            console.print(f"Created {paths.history_file.relative_to(paths.root)}")

        if paths.todo_file.exists():
            console.print(f"Using existing {paths.todo_file.name}")
        else:
            storage = ListStorage(paths.todo_file)
            storage.task_list = TaskList.new(name or paths.root.name or "Untitled", Version(0, 1, 0))
            storage.save()
            console.print(f"Created {paths.todo_file.name}")
    except TallyError as e:
        fail(str(e))

    console.print(f"[green]✓ Initialized tally project in {paths.root}[/green]")


@main.command()
@click.argument("description")
@click.option("--priority", "-p", type=click.Choice([p.value for p in Priority]), default="medium", help="Task priority")
@click.option("--tags", "-t", help="Comma-separated tags (e.g. bug,frontend)")
@click.option("--dry-run", is_flag=True, help="Show what would be added without modifying TODO.md")
@click.pass_context
def add(ctx, description, priority, tags, dry_run):
    """Add a new task."""
    console = get_console()
    task = Task.create(description, Priority(priority), parse_tags(tags))

    if dry_run:
        console.print("Would add task:")
        console.print(f"  {format_task(task)}", markup=False)
        return

    project = get_project(ctx)
    try:
        project.storage.add_task(task)
    except TallyError as e:
        fail(str(e))

    console.print("[green]✓ Added task:[/green]")
    console.print(f"  {format_task(task)}", markup=False)


@main.command()
@click.argument("query")
@click.option("--commit", help="Commit hash associated with the completion")
@click.option("--version", "version", callback=parse_version_option, help="Release version (e.g. v0.2.3)")
@click.option("--dry-run", is_flag=True, help="Show the match without modifying TODO.md")
@click.pass_context
def done(ctx, query, commit, version, dry_run):
    """Mark the open task best matching QUERY as completed."""
    console = get_console()
    project = get_project(ctx)

    try:
        tasks = project.storage.tasks
        match = find_best_match(tasks, query, threshold=project.config.matching.threshold)
        if match is None:
            fail(f"No matching task found for: '{query}'")
        index, score = match

        if dry_run:
            console.print(f"Would mark as done (score: {score}):")
            console.print(f"  [x] {tasks[index].description}", markup=False)
            if commit:
                console.print(f"      @completed_commit {commit}", markup=False)
            if version:
                console.print(f"      @completed_version {version}", markup=False)
            return

        task = project.storage.complete_task(index, version=version, commit=commit)
        project.history.record(task)
    except TallyError as e:
        fail(str(e))

    console.print(f"[green]✓ Marked as done:[/green] {task.description}")


@main.command()
@click.argument("query")
@click.option("--dry-run", is_flag=True, help="Show the match without modifying TODO.md")
@click.pass_context
def remove(ctx, query, dry_run):
    """Remove the task best matching QUERY.

    Completed tasks are saved to history before removal.
    """
    console = get_console()
    project = get_project(ctx)

    try:
        tasks = project.storage.tasks
        match = find_best_match(tasks, query, include_completed=True)
        if match is None:
            fail(f"No matching task found for: '{query}'")
        index, score = match
        if score < project.config.matching.threshold:
            fail(f"Best match too low ({score}%): '{tasks[index].description}'")

        if dry_run:
            console.print(f"Would remove (match: {score}%):")
            console.print(f"  {format_task(tasks[index])}", markup=False)
            if tasks[index].completed:
                console.print("  (completed task - will be saved to history first)")
            return

        if tasks[index].completed:
            project.history.record(tasks[index])
        removed = project.storage.remove_task(index)
    except TallyError as e:
        fail(str(e))

    console.print(f"[green]✓ Removed (match: {score}%):[/green] {removed.description}")


@main.command(name="list")
@click.option("--all", "show_all", is_flag=True, help="Show done and open tasks")
@click.option("--done", "only_done", is_flag=True, help="Show only completed tasks")
@click.option("--undone", "only_undone", is_flag=True, help="Show only open tasks (default)")
@click.option("--tags", "-t", help="Filter by tags (comma-separated, any match)")
@click.option("--priority", "-p", type=click.Choice([p.value for p in Priority]), help="Filter by priority")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format")
@click.pass_context
def list_tasks(ctx, show_all, only_done, only_undone, tags, priority, as_json):
    """Display tasks."""
    if sum([show_all, only_done, only_undone]) > 1:
        raise click.UsageError("--all, --done and --undone are mutually exclusive")

    console = get_console()
    project = get_project(ctx)
    try:
        storage = project.storage
    except TallyError as e:
        fail(str(e))

    tasks = storage.tasks
    if only_done:
        tasks = [t for t in tasks if t.completed]
    elif not show_all:
        tasks = [t for t in tasks if not t.completed]

    tag_filter = parse_tags(tags)
    if tag_filter:
        tasks = [t for t in tasks if t.has_any_tag(tag_filter)]
    if priority:
        tasks = [t for t in tasks if t.priority == Priority(priority)]

    if as_json:
        payload = [
            {
                "description": t.description,
                "priority": t.priority.value,
                "tags": t.tags,
                "completed": t.completed,
                "created_at": format_datetime(t.created_at_time),
                "completed_at": format_datetime(t.completed_at_time) if t.completed_at_time else None,
                "completed_version": str(t.completed_at_version) if t.completed_at_version else None,
                "completed_commit": t.completed_at_commit,
            }
            for t in tasks
        ]
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    if not tasks:
        console.print("[dim]No tasks[/dim]")
        return

    table = Table(title=f"{storage.project_name} v{storage.project_version}")
    table.add_column("", width=3)
    table.add_column("Task")
    table.add_column("Priority")
    table.add_column("Tags")
    table.add_column("Version")
    for task in tasks:
        style = PRIORITY_STYLES[task.priority]
        table.add_row(
            "x" if task.completed else " ",
            task.description,
            f"[{style}]{task.priority.value}[/{style}]",
            ", ".join(task.tags),
            str(task.completed_at_version or ""),
        )
    console.print(table)


@main.command()
@click.pass_context
def status(ctx):
    """Show task counts, open tasks by priority and the most used tags."""
    console = get_console()
    project = get_project(ctx)
    try:
        storage = project.storage
    except TallyError as e:
        fail(str(e))

    tasks = storage.tasks
    done_count = sum(1 for t in tasks if t.completed)
    open_count = len(tasks) - done_count

    console.print(f"[bold]Project:[/bold] {storage.project_name} v{storage.project_version}\n")
    if tasks:
        console.print(f"{len(tasks)} Task(s), {done_count / len(tasks) * 100:.0f}% done:")
    else:
        console.print("0 Task(s):")
    console.print(f"  Open: {open_count}")
    console.print(f"  Done: {done_count}")

    if open_count:
        console.print("\n[bold]Open Tasks:[/bold]")
        for priority in (Priority.HIGH, Priority.MEDIUM, Priority.LOW):
            count = sum(1 for t in tasks if not t.completed and t.priority == priority)
            if count:
                style = PRIORITY_STYLES[priority]
                console.print(f"  [{style}]{priority.value.capitalize()}:[/{style}] {count}")

    # tag -> [open, done]
    tag_counts: Dict[str, List[int]] = {}
    for task in tasks:
        for tag in task.tags:
            tag_counts.setdefault(tag, [0, 0])[1 if task.completed else 0] += 1

    if tag_counts:
        ranked = sorted(tag_counts.items(), key=lambda item: (-sum(item[1]), item[0]))
        console.print("\n[bold]Tags:[/bold]")
        for tag, (open_tags, done_tags) in ranked[:STATUS_TAG_LIMIT]:
            if open_tags:
                line = f"  #{tag}: {open_tags} open, {done_tags} done ({open_tags + done_tags} total)"
            else:
                line = f"  #{tag}: {done_tags} done"
            console.print(line, markup=False)
        if len(ranked) > STATUS_TAG_LIMIT:
            console.print(f"  ... and {len(ranked) - STATUS_TAG_LIMIT} more")


@main.command()
@click.argument("version", callback=parse_version_option)
@click.option("--dry-run", is_flag=True, help="Show what would be assigned without modifying tasks")
@click.option("--summary", is_flag=True, help="List the tasks in this version afterwards")
@click.pass_context
def release(ctx, version, dry_run, summary):
    """Assign VERSION to completed tasks and history entries that have no version yet."""
    console = get_console()
    project = get_project(ctx)

    try:
        unversioned = project.storage.task_list.unversioned_completed_tasks()
        if not unversioned:
            console.print("No completed tasks without a version.")
            return

        if dry_run:
            console.print(f"Would assign version {version} to {len(unversioned)} task(s):")
            for task in unversioned:
                console.print(f"  [x] {task.description}", markup=False)
            return

        project.history.record_all(unversioned)
        count = project.storage.assign_version_to_completed(version)
        project.history.assign_version(version)
    except TallyError as e:
        fail(str(e))

    console.print(f"[green]✓ Assigned version {version} to {count} task(s)[/green]")
    if summary:
        console.print(f"\nTasks in {version}:")
        for task in project.storage.tasks_for_version(version):
            console.print(f"  • {task.description}", markup=False)


@main.command()
@click.argument("version", callback=parse_version_option)
@click.option("--dry-run", is_flag=True, help="Show what would change without writing")
@click.option("--summary", is_flag=True, help="List the history entries in this version afterwards")
@click.pass_context
def semver(ctx, version, dry_run, summary):
    """Set the project version and version all unversioned completions."""
    console = get_console()
    project = get_project(ctx)

    try:
        storage = project.storage
        history = project.history
        unversioned = storage.task_list.unversioned_completed_tasks()

        if dry_run:
            console.print(f"Would set project version to {version}")
            console.print(f"Would assign version {version} to {len(unversioned)} task(s):")
            for task in unversioned:
                console.print(f"  [x] {task.description}", markup=False)
            return

        storage.set_project_version(version)
        console.print(f"Set project version to {version}")

        history.record_all(unversioned)
        count = storage.assign_version_to_completed(version)
        history_count = history.assign_version(version)
    except TallyError as e:
        fail(str(e))

    if not count and not history_count:
        console.print("Nothing to do: no completed tasks without a version.")
        return

    console.print(f"[green]✓ Assigned version {version} to {count} task(s)[/green]")
    if summary:
        console.print(f"\nTasks in {version}:")
        for entry in history.entries_for_version(version):
            console.print(f"  • {entry.change.description}", markup=False)


@main.command()
@click.option("--days", type=click.IntRange(min=0), help="Prune tasks completed more than N days ago")
@click.option("--hours", type=click.IntRange(min=0), help="Prune tasks completed more than N hours ago (adds to --days)")
@click.option("--dry-run", is_flag=True, help="Show what would be pruned without modifying files")
@click.pass_context
def prune(ctx, days, hours, dry_run):
    """Move old completed tasks out of TODO.md into history."""
    console = get_console()
    project = get_project(ctx)

    if days is None and hours is None:
        days = project.config.prune.default_days
    age = timedelta(days=days or 0, hours=hours or 0)
    now = now_utc()

    try:
        storage = project.storage
        to_prune = [
            (index, task) for index, task in enumerate(storage.tasks)
            if task.completed and task.is_older_than(age, now)
        ]
        if not to_prune:
            console.print(f"No completed tasks older than {age} to prune.")
            return

        if dry_run:
            console.print(f"Would prune {len(to_prune)} completed task(s) older than {age}:")
            for _, task in to_prune:
                console.print(
                    f"  [x] {task.description} (completed: {format_datetime(task.completed_at_time)})",
                    markup=False,
                )
            return

        project.history.record_all(task for _, task in to_prune)
        storage.remove_tasks([index for index, _ in to_prune])
    except TallyError as e:
        fail(str(e))

    console.print(f"[green]✓ Pruned {len(to_prune)} completed task(s) older than {age}[/green]")
    console.print("  All pruned tasks saved to history.json")


@main.command()
@click.option("--from", "from_version", callback=parse_version_option, help="First version to include")
@click.option("--to", "to_version", callback=parse_version_option, help="Last version to include")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format")
@click.pass_context
def changelog(ctx, from_version, to_version, as_json):
    """Print release notes built from history and TODO.md."""
    console = get_console()
    project = get_project(ctx)

    try:
        log = build_changelog(project.storage.project_name, project.storage.tasks, project.history.entries)
    except TallyError as e:
        fail(str(e))

    if not log.releases:
        console.print("No versioned tasks found.")
        return

    log = log.filter_versions(from_version, to_version)
    if not log.releases:
        console.print("No releases found in the specified range.")
        return

    click.echo(to_json(log) if as_json else to_markdown(log))


@main.group()
def config():
    """Manage preferences."""


@config.command(name="get")
@click.argument("key")
@click.pass_context
def config_get(ctx, key):
    """Print a configuration value."""
    project = get_project(ctx)
    try:
        value = project.config.get_value(key)
    except TallyError as e:
        fail(str(e))
    if isinstance(value, bool):
        value = str(value).lower()
    click.echo("" if value is None else value)


@config.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx, key, value):
    """Set a configuration value."""
    project = get_project(ctx)
    try:
        project.config.set_value(key, value)
        save_config(project.config, project.paths.config_file)
    except ValueError as e:
        fail(f"Invalid value for '{key}': {e}")
    except TallyError as e:
        fail(str(e))
    get_console().print(f"[green]✓ Set {key} = {value}[/green]")


@config.command(name="list")
@click.pass_context
def config_list(ctx):
    """List all configuration keys and values.

    The preferences.* and git.* keys are kept for the editor and git
    integrations; the commands in this tool do not read them.
    """
    project = get_project(ctx)
    console = get_console()
    console.print("Configuration:")
    for key, value in project.config.flatten():
        console.print(f"  {key}: {value}", markup=False)


if __name__ == "__main__":
    main()
