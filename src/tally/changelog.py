"""Release grouping and changelog rendering."""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .history import Change, HistoryEntry
from .todo import Priority, Task
from .utils.datetime import now_utc, to_iso_string, truncate_to_minute
from .version import Version

SECTION_TITLES = [
    (Priority.HIGH, "High Priority"),
    (Priority.MEDIUM, "Changes"),
    (Priority.LOW, "Minor Changes"),
]

SHORT_COMMIT_LENGTH = 7


@dataclass
class Release:
    """Changes shipped in one version, grouped by priority and by tag."""

    version: Version
    date: datetime
    changes_by_priority: Dict[Priority, List[Change]] = field(default_factory=dict)
    changes_by_tag: Dict[str, List[Change]] = field(default_factory=dict)

    @classmethod
    def from_changes(
        cls,
        version: Version,
        changes: Iterable[Change],
        date: Optional[datetime] = None,
    ) -> "Release":
        """Group changes into one release.

        A change lands in exactly one priority bucket and in one bucket per
        tag. The release date defaults to the latest completion time, or now
        when there are no changes.
        """
        changes = list(changes)
        if date is None:
            date = max((c.completed_at for c in changes), default=None) or now_utc()

        by_priority: Dict[Priority, List[Change]] = {}
        by_tag: Dict[str, List[Change]] = {}
        for change in changes:
            by_priority.setdefault(change.priority, []).append(change)
            for tag in change.tags:
                by_tag.setdefault(tag, []).append(change)

        return cls(version, date, by_priority, by_tag)

    @classmethod
    def from_tasks(cls, version: Version, tasks: Iterable[Task]) -> "Release":
        return cls.from_changes(version, [Change.from_task(t) for t in tasks])

    @property
    def changes(self) -> List[Change]:
        """All changes, highest priority first."""
        ordered: List[Change] = []
        for priority, _ in SECTION_TITLES:
            ordered.extend(self.changes_by_priority.get(priority, []))
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": str(self.version),
            "date": to_iso_string(self.date),
            "changes_by_priority": {
                priority.value: [c.to_dict() for c in self.changes_by_priority[priority]]
                for priority, _ in SECTION_TITLES
                if priority in self.changes_by_priority
            },
            "changes_by_tag": {
                tag: [c.to_dict() for c in changes]
                for tag, changes in sorted(self.changes_by_tag.items())
            },
        }


@dataclass
class Changelog:
    """A project's releases, as rendered into release notes."""

    project_name: str
    releases: List[Release] = field(default_factory=list)
    generated_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_history(
        cls,
        project_name: str,
        entries_by_version: Mapping[Version, Iterable[HistoryEntry]],
    ) -> "Changelog":
        """Build one release per version, newest first."""
        releases = [
            Release.from_changes(version, [e.change for e in entries])
            for version, entries in sorted(entries_by_version.items(), reverse=True)
        ]
        return cls(project_name, releases)

    def filter_versions(self, from_version: Optional[Version] = None, to_version: Optional[Version] = None) -> "Changelog":
        """Keep releases with ``from_version <= version <= to_version``.

        Either bound may be omitted.
        """
        releases = [
            r for r in self.releases
            if (from_version is None or r.version >= from_version)
            and (to_version is None or r.version <= to_version)
        ]
        return replace(self, releases=releases)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "generated_at": to_iso_string(self.generated_at),
            "releases": [r.to_dict() for r in self.releases],
        }


def collect_releases(tasks: Iterable[Task], entries: Iterable[HistoryEntry]) -> Dict[Version, List[Change]]:
    """Merge the ledger with versioned, completed tasks still in TODO.md.

    Ledger entries win; a live task is only added when no ledger entry
    describes the same completion. Besides the ledger's own match rule, an
    entry with the same description completed in the same minute is the same
    completion, even when the two carry different versions.
    """
    merged: List[HistoryEntry] = [e for e in entries if e.version is not None]
    for task in tasks:
        if not task.completed or task.completed_at_version is None:
            continue
        candidate = HistoryEntry.from_task(task)
        if not any(_same_completion(existing, candidate) for existing in merged):
            merged.append(candidate)

    grouped: Dict[Version, List[Change]] = {}
    for entry in merged:
        grouped.setdefault(entry.version, []).append(entry.change)
    return {version: grouped[version] for version in sorted(grouped, reverse=True)}


def _same_completion(recorded: HistoryEntry, live: HistoryEntry) -> bool:
    if recorded.is_same_task(live):
        return True
    return (
        recorded.change.description == live.change.description
        and truncate_to_minute(recorded.change.completed_at) == truncate_to_minute(live.change.completed_at)
    )


def build_changelog(
    project_name: str,
    tasks: Iterable[Task],
    entries: Iterable[HistoryEntry],
) -> Changelog:
    """Changelog over both the ledger and the live list, newest release first."""
    releases = [
        Release.from_changes(version, changes)
        for version, changes in collect_releases(tasks, entries).items()
    ]
    return Changelog(project_name, releases)


def _format_change(change: Change) -> str:
    line = f"- {change.description}"
    if change.tags:
        line += " " + ", ".join(f"`{tag}`" for tag in change.tags)
    if change.commit:
        line += f" ({change.commit[:SHORT_COMMIT_LENGTH]})"
    return line


def release_to_markdown(release: Release) -> str:
    out = [f"## {release.version} — {release.date.strftime('%Y-%m-%d')}", ""]

    for priority, title in SECTION_TITLES:
        changes = release.changes_by_priority.get(priority)
        if not changes:
            continue
        out.append(f"### {title}")
        out.append("")
        out.extend(_format_change(c) for c in changes)
        out.append("")

    return "\n".join(out) + "\n"


def to_markdown(changelog: Changelog) -> str:
    """Render a changelog as Markdown release notes."""
    out = [
        f"# Changelog — {changelog.project_name}",
        "",
        f"*Generated on {changelog.generated_at.strftime('%Y-%m-%d')}*",
        "",
        "",
    ]
    text = "\n".join(out)
    for release in changelog.releases:
        text += release_to_markdown(release) + "\n"
    return text


def to_json(changelog: Changelog) -> str:
    return json.dumps(changelog.to_dict(), indent=2, ensure_ascii=False)
