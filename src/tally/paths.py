"""Location of a tally project's files."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import StorageError, TallyError

TALLY_DIR = ".tally"
TODO_FILE = "TODO.md"
HISTORY_FILE = "history.json"
CONFIG_FILE = "config.yaml"


class ProjectNotFoundError(TallyError):
    """Raised when no ``.tally/`` directory exists above the start directory."""

    def __init__(self, start: Path):
        self.start = start
        super().__init__(f"No {TALLY_DIR}/ directory found from {start}. Use 'tally init' to create one")


@dataclass(frozen=True)
class ProjectPaths:
    """Paths for one project rooted at ``root``."""

    root: Path

    @property
    def tally_dir(self) -> Path:
        return self.root / TALLY_DIR

    @property
    def todo_file(self) -> Path:
        return self.root / TODO_FILE

    @property
    def history_file(self) -> Path:
        return self.tally_dir / HISTORY_FILE

    @property
    def config_file(self) -> Path:
        return self.tally_dir / CONFIG_FILE

    @classmethod
    def find(cls, start: Optional[Union[str, Path]] = None) -> "ProjectPaths":
        """Walk up from ``start`` (default: cwd) to the nearest ``.tally/`` directory.

        Raises:
            ProjectNotFoundError: If no ancestor holds a ``.tally/`` directory
        """
        start = Path(start or Path.cwd()).resolve()
        for candidate in (start, *start.parents):
            if (candidate / TALLY_DIR).is_dir():
                return cls(candidate)
        raise ProjectNotFoundError(start)

    @classmethod
    def init_here(cls, root: Optional[Union[str, Path]] = None) -> "ProjectPaths":
        """Create ``.tally/`` under ``root`` (default: cwd) if needed."""
        paths = cls(Path(root or Path.cwd()).resolve())
        try:
            paths.tally_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory ({e})", paths.tally_dir) from e
        return paths
