"""Exception types raised by tally."""

from pathlib import Path
from typing import Optional


class TallyError(Exception):
    """Base class for errors that can be shown directly to the user."""


class ParseError(TallyError):
    """Raised when TODO.md, a version string or a config file cannot be parsed."""

    def __init__(self, message: str, field: Optional[str] = None, line: Optional[str] = None):
        self.field = field
        self.line = line
        super().__init__(message)


class NotFoundError(TallyError):
    """Raised when a task index does not exist in the list."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Task index {index} out of bounds (list has {size} task(s))")


class StorageError(TallyError):
    """Raised when reading or writing a file fails."""

    def __init__(self, message: str, path: Path):
        self.path = path
        super().__init__(f"{message}: {path}")


class KeyNotFoundError(TallyError):
    """Raised for an unknown dotted configuration key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unknown configuration key: '{key}'")
