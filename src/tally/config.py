"""Configuration management for tally.

Settings are stored per project in ``.tally/config.yaml``. Each setting is
addressed by a dotted key such as ``preferences.auto_commit_todo``; the keys
that exist are listed in ``CONFIG_KEYS``.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .errors import KeyNotFoundError, ParseError, StorageError

logger = logging.getLogger(__name__)


@dataclass
class Preferences:
    auto_commit_todo: bool = False
    auto_complete_tasks: bool = False
    editor: Optional[str] = None


@dataclass
class GitSettings:
    done_prefix: str = "done:"


@dataclass
class MatchingSettings:
    threshold: int = 50  # minimum fuzzy score for done/remove


@dataclass
class PruneSettings:
    default_days: int = 30


@dataclass
class ConfigModel:
    """Project configuration."""

    preferences: Preferences = field(default_factory=Preferences)
    git: GitSettings = field(default_factory=GitSettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    prune: PruneSettings = field(default_factory=PruneSettings)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        data: Dict[str, Dict[str, Any]] = {}
        for key, value in self.flatten():
            section, name = key.split(".", 1)
            data.setdefault(section, {})[name] = value
        return data

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML.

        Unknown keys are ignored; missing keys keep their defaults.

        Raises:
            ParseError: If the document is not a mapping of sections or a
                value has the wrong type
        """
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid config YAML: {e}", field="config") from e

        if not isinstance(data, dict):
            raise ParseError("Config must be a mapping of sections", field="config")

        config = cls()
        for section, values in data.items():
            if not isinstance(values, dict):
                continue
            for name, value in values.items():
                key = f"{section}.{name}"
                if key not in CONFIG_KEYS:
                    logger.warning(f"Ignoring unknown config key '{key}'")
                    continue
                try:
                    CONFIG_KEYS[key].assign(config, value)
                except ValueError as e:
                    raise ParseError(f"Invalid value for '{key}': {e}", field=key) from e
        return config

    def get_value(self, key: str) -> Any:
        """Get a setting by dotted key.

        Raises:
            KeyNotFoundError: If the key does not exist
        """
        return _lookup(key).get(self)

    def set_value(self, key: str, text: str):
        """Set a setting from its text form.

        Raises:
            KeyNotFoundError: If the key does not exist
            ValueError: If the text cannot be converted to the setting's type
        """
        _lookup(key).set(self, text)

    def flatten(self) -> List[Tuple[str, Any]]:
        """All ``(dotted key, value)`` pairs in table order."""
        return [(key, entry.get(self)) for key, entry in CONFIG_KEYS.items()]


def _parse_bool(text: str) -> bool:
    value = text.strip().lower()
    if value in ("true", "yes", "on", "1"):
        return True
    if value in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"expected true or false, got '{text}'")


def _parse_int(text: str) -> int:
    try:
        value = int(text.strip())
    except ValueError:
        raise ValueError(f"expected an integer, got '{text}'") from None
    if value < 0:
        raise ValueError(f"expected a non-negative integer, got '{text}'")
    return value


def _parse_optional_str(text: str) -> Optional[str]:
    text = text.strip()
    return text or None


def _parse_str(text: str) -> str:
    return text.strip()


@dataclass(frozen=True)
class ConfigKey:
    """Typed accessor for one dotted configuration key."""

    getter: Callable[[ConfigModel], Any]
    setter: Callable[[ConfigModel, Any], None]
    parse: Callable[[str], Any]
    value_type: type

    def get(self, config: ConfigModel) -> Any:
        return self.getter(config)

    def set(self, config: ConfigModel, text: str):
        self.setter(config, self.parse(text))

    def assign(self, config: ConfigModel, value: Any):
        """Assign an already-typed value, e.g. one loaded from YAML."""
        if value is None and self.parse is _parse_optional_str:
            self.setter(config, None)
        elif isinstance(value, self.value_type) and not (self.value_type is int and isinstance(value, bool)):
            self.setter(config, value)
        else:
            self.set(config, str(value))


def _setattr(section: str, name: str) -> Callable[[ConfigModel, Any], None]:
    return lambda config, value: setattr(getattr(config, section), name, value)


CONFIG_KEYS: Dict[str, ConfigKey] = {
    "preferences.auto_commit_todo": ConfigKey(
        lambda c: c.preferences.auto_commit_todo,
        _setattr("preferences", "auto_commit_todo"),
        _parse_bool,
        bool,
    ),
    "preferences.auto_complete_tasks": ConfigKey(
        lambda c: c.preferences.auto_complete_tasks,
        _setattr("preferences", "auto_complete_tasks"),
        _parse_bool,
        bool,
    ),
    "preferences.editor": ConfigKey(
        lambda c: c.preferences.editor,
        _setattr("preferences", "editor"),
        _parse_optional_str,
        str,
    ),
    "git.done_prefix": ConfigKey(
        lambda c: c.git.done_prefix,
        _setattr("git", "done_prefix"),
        _parse_str,
        str,
    ),
    "matching.threshold": ConfigKey(
        lambda c: c.matching.threshold,
        _setattr("matching", "threshold"),
        _parse_int,
        int,
    ),
    "prune.default_days": ConfigKey(
        lambda c: c.prune.default_days,
        _setattr("prune", "default_days"),
        _parse_int,
        int,
    ),
}


def _lookup(key: str) -> ConfigKey:
    try:
        return CONFIG_KEYS[key]
    except KeyError:
        raise KeyNotFoundError(key) from None


def load_config(config_path: Path) -> ConfigModel:
    """Load configuration from file, or defaults if it does not exist.

    Raises:
        ParseError: If the file is not valid configuration
        StorageError: If the file cannot be read
    """
    if not config_path.exists():
        return ConfigModel()

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to read config ({e})", config_path) from e

    try:
        return ConfigModel.from_yaml(content)
    except ParseError as e:
        raise ParseError(f"{config_path}: {e}", field=e.field) from e


def save_config(config: ConfigModel, config_path: Path):
    """Save configuration to file."""
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_yaml(), encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Failed to write config ({e})", config_path) from e

    logger.debug(f"Configuration saved to {config_path}")
