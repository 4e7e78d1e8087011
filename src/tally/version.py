"""Release version identifier used to bucket completed tasks."""

from dataclasses import dataclass
from functools import total_ordering
from typing import Any, Dict

from .errors import ParseError


@total_ordering
@dataclass(frozen=True)
class Version:
    """A ``major.minor.patch`` version with a prerelease flag.

    Versions order by their numeric triple; at equal triples a prerelease
    sorts before the corresponding stable release.
    """

    major: int
    minor: int
    patch: int
    is_prerelease: bool = False

    def __post_init__(self):
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"Version {name} must be a non-negative integer, got {value!r}")

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``[v|V]MAJOR[.MINOR[.PATCH]]``.

        Missing groups default to 0. Parsing never produces a prerelease.

        Raises:
            ParseError: On empty input, more than three groups, or a
                non-numeric group
        """
        raw = text
        text = text.strip()
        if not text:
            raise ParseError("Cannot parse empty version", field="version", line=raw)

        if text[0] in ("v", "V"):
            text = text[1:]

        parts = text.split(".")
        if len(parts) > 3:
            raise ParseError(f"Invalid version format: '{raw}'", field="version", line=raw)

        numbers = []
        for name, part in zip(("major", "minor", "patch"), parts):
            # isdigit() alone accepts unicode digits int() may still reject
            if not (part.isascii() and part.isdigit()):
                raise ParseError(f"Invalid {name} in version '{raw}'", field="version", line=raw)
            numbers.append(int(part))

        while len(numbers) < 3:
            numbers.append(0)

        return cls(numbers[0], numbers[1], numbers[2], False)

    def _key(self):
        return (self.major, self.minor, self.patch, not self.is_prerelease)

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def is_newer_than(self, other: "Version") -> bool:
        return self > other

    def __str__(self) -> str:
        suffix = "-pre" if self.is_prerelease else ""
        return f"{self.major}.{self.minor}.{self.patch}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
            "is_prerelease": self.is_prerelease,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Version":
        return cls(
            int(data["major"]),
            int(data["minor"]),
            int(data["patch"]),
            bool(data.get("is_prerelease", False)),
        )
