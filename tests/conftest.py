"""Pytest configuration and shared fixtures."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tally.todo import Priority, Task, TaskList  # noqa: E402
from tally.version import Version  # noqa: E402


def utc(year, month, day, hour=0, minute=0, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def make_completed_task(description, commit=None, version=None, completed_at=None, priority=Priority.HIGH, tags=None):
    completed_at = completed_at or utc(2026, 2, 2, 19, 19)
    return Task(
        description=description,
        priority=priority,
        tags=list(tags or []),
        completed=True,
        created_at_time=completed_at,
        completed_at_time=completed_at,
        completed_at_version=version,
        completed_at_commit=commit,
    )


@pytest.fixture
def sample_list():
    """A list already in canonical order with minute/day precision values."""
    return TaskList(
        project_name="demo",
        project_version=Version(1, 2, 3),
        created_at=date(2026, 2, 20),
        modified_at=date(2026, 2, 21),
        tasks=[
            Task(
                description="keep parser compatibility",
                created_at_time=utc(2026, 2, 20, 10, 0),
            ),
            Task(
                description="fix the login form",
                priority=Priority.HIGH,
                tags=["bug", "ui"],
                created_at_time=utc(2026, 2, 20, 11, 30),
                created_at_version=Version(1, 2, 0),
                created_at_commit="abc1234",
            ),
            Task(
                description="write docs",
                priority=Priority.LOW,
                tags=["docs"],
                completed=True,
                created_at_time=utc(2026, 2, 19, 9, 0),
                completed_at_time=utc(2026, 2, 21, 8, 15),
                completed_at_version=Version(1, 2, 3),
                completed_at_commit="0123456789abcdef",
            ),
        ],
    )
